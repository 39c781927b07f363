"""Data classes for pipeline communication."""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Sequence

import numpy as np


@dataclass(frozen=True)
class Color:
    """An RGBA color with 8-bit channels."""

    r: int
    g: int
    b: int
    a: int = 255

    def __iter__(self) -> Iterator[int]:
        return iter((self.r, self.g, self.b, self.a))

    @classmethod
    def from_rgb(cls, values: Sequence[int]) -> "Color":
        """Build an opaque color from an ``[r, g, b]`` triple."""
        r, g, b = values
        return cls(int(r), int(g), int(b), 255)

    @classmethod
    def from_array(cls, values: "np.ndarray") -> "Color":
        r, g, b, a = (int(v) for v in values)
        return cls(r, g, b, a)

    def to_rgb(self) -> list[int]:
        return [self.r, self.g, self.b]

    def to_array(self) -> "np.ndarray":
        return np.array([self.r, self.g, self.b, self.a], dtype=np.uint8)


PALETTE_SIZE = 5


@dataclass(frozen=True)
class Palette:
    """The five colors returned by one palette API call."""

    colors: tuple[Color, ...]

    def __post_init__(self):
        if len(self.colors) != PALETTE_SIZE:
            raise ValueError(f"palette needs {PALETTE_SIZE} colors, got {len(self.colors)}")

    def __getitem__(self, index):
        return self.colors[index]

    def __iter__(self) -> Iterator[Color]:
        return iter(self.colors)

    def __len__(self) -> int:
        return len(self.colors)

    @property
    def seed(self) -> list[Color | None]:
        """Continuation seed: the last two colors followed by empty slots."""
        return [self.colors[3], self.colors[4], None, None, None]

    def with_seed(self, seed: Sequence[Color | None]) -> "Palette":
        """Return a copy with each non-empty seed slot pinned in place."""
        colors = tuple(s if s is not None else c for c, s in zip(self.colors, seed))
        return Palette(colors)


@dataclass(frozen=True)
class Frame:
    """One output image ready for the byte stream.

    ``data`` is ``width * height * 4`` raw RGBA bytes unless a non-raw
    frame encoder produced it.
    """

    index: int
    data: bytes

    def __len__(self) -> int:
        return len(self.data)


class ComponentState(str, Enum):
    """Lifecycle of a pipeline stage."""

    RUNNING = "running"  # producing
    DRAINING = "draining"  # input closed or cancelled, finishing up
    CLOSED = "closed"  # output queue closed


# Sentinel returned by BoundedQueue.get once the queue is closed and empty
END_OF_STREAM = object()
