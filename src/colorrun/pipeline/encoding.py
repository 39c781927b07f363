"""Frame encoders: turn a pixel array into the bytes handed to ffmpeg."""

import io
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image

if TYPE_CHECKING:
    from numpy.typing import NDArray


class FrameEncoder(ABC):
    """Serializes ``(height, width, 4)`` RGBA frames."""

    name = "base"
    # ffmpeg demuxer that reads this encoder's output from a pipe
    input_format = ""

    @abstractmethod
    def encode(self, pixels: "NDArray[np.uint8]") -> bytes:
        """Return the encoded frame."""


class RawFrameEncoder(FrameEncoder):
    """Raw RGBA bytes, row by row."""

    name = "raw"
    input_format = "rawvideo"

    def encode(self, pixels: "NDArray[np.uint8]") -> bytes:
        return np.ascontiguousarray(pixels, dtype=np.uint8).tobytes()


class PngFrameEncoder(FrameEncoder):
    """PNG images, for the image2pipe demuxer."""

    name = "png"
    input_format = "image2pipe"

    def __init__(self, compress_level: int = 1):
        self.compress_level = compress_level

    def encode(self, pixels: "NDArray[np.uint8]") -> bytes:
        img = Image.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8))
        buf = io.BytesIO()
        img.save(buf, format="PNG", compress_level=self.compress_level)
        return buf.getvalue()


ENCODERS: dict[str, type[FrameEncoder]] = {
    RawFrameEncoder.name: RawFrameEncoder,
    PngFrameEncoder.name: PngFrameEncoder,
}


def make_frame_encoder(name: str = "raw") -> FrameEncoder:
    """Create a frame encoder by name (``raw`` or ``png``)."""
    key = getattr(name, "value", name)
    try:
        return ENCODERS[key]()
    except KeyError:
        raise ValueError(f"unknown frame format {name!r}, expected one of {sorted(ENCODERS)}") from None
