"""Error types shared across the pipeline.

Recoverable errors (palette fetch failures, per-frame encoding failures) are
reported to the coordinator's error channel and never stop a stage. Only
``EncoderExitError`` and ``StageError`` are fatal.
"""


class ColorRunError(Exception):
    """Base class for all colorrun errors."""


class PaletteError(ColorRunError):
    """Palette API call failed."""


class PaletteRequestError(PaletteError):
    """Palette API could not be reached (connection error, timeout)."""


class PaletteResponseError(PaletteError):
    """Palette API answered with an unusable response."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class EmptySeedError(PaletteError, ValueError):
    """Continuation seed has no colors in it."""


class FrameEncodeError(ColorRunError):
    """A single frame could not be encoded. The frame is dropped."""

    def __init__(self, index: int, cause: Exception):
        super().__init__(f"encoding frame {index:06d}: {cause}")
        self.index = index
        self.cause = cause


class EncoderExitError(ColorRunError):
    """The encoder process exited. Fatal for the pipeline."""

    def __init__(self, returncode: int | None, stderr: str = ""):
        message = f"ffmpeg exited with code {returncode}"
        if stderr:
            message = f"{message}: {stderr}"
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class StageError(ColorRunError):
    """A pipeline stage thread crashed. Fatal for the pipeline."""

    def __init__(self, stage: str, cause: Exception):
        super().__init__(f"{stage} failed: {type(cause).__name__}: {cause}")
        self.stage = stage
        self.cause = cause


class IngestError(ColorRunError):
    """Streaming ingest URL could not be resolved."""


class QueueClosedError(ColorRunError):
    """Put into, or close of, an already closed queue."""


class PipelineCancelled(ColorRunError):
    """Raised inside a stage when the shared cancellation event is set."""
