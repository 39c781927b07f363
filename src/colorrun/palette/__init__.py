"""Palette API access."""

from colorrun.palette.client import (
    DEFAULT_MODEL,
    ModelListResponse,
    PaletteClient,
    PaletteResponse,
    encode_seed,
)

__all__ = [
    "DEFAULT_MODEL",
    "ModelListResponse",
    "PaletteClient",
    "PaletteResponse",
    "encode_seed",
]
