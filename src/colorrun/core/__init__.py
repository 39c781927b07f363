"""Core configuration, logging and error types."""

from colorrun.core.config import Settings, get_settings
from colorrun.core.errors import (
    ColorRunError,
    EmptySeedError,
    EncoderExitError,
    FrameEncodeError,
    IngestError,
    PaletteError,
    PaletteRequestError,
    PaletteResponseError,
    PipelineCancelled,
    QueueClosedError,
    StageError,
)

__all__ = [
    "ColorRunError",
    "EmptySeedError",
    "EncoderExitError",
    "FrameEncodeError",
    "IngestError",
    "PaletteError",
    "PaletteRequestError",
    "PaletteResponseError",
    "PipelineCancelled",
    "QueueClosedError",
    "StageError",
    "Settings",
    "get_settings",
]
