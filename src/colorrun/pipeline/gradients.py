"""Color interpolation and frame drawing strategies.

Both strategies share ``mix_arrays``: every channel is blended
independently as ``left * (1 - r) + right * r`` in single precision and
truncated to 8 bits.
"""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Iterator

import numpy as np

from colorrun.pipeline.data import Color

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)


def mix_arrays(left: "NDArray[np.uint8]", right: "NDArray[np.uint8]", ratio) -> "NDArray[np.uint8]":
    """Blend RGBA arrays channel by channel.

    ``ratio`` is a scalar or an array that broadcasts against the colors,
    e.g. shape ``(width, 1)`` for one ratio per pixel. Channels that are
    equal in ``left`` and ``right`` are passed through untouched, so a
    color mixed with itself is returned exactly for any ratio.
    """
    ratio = np.asarray(ratio, dtype=np.float32)
    mixed = left.astype(np.float32) * (np.float32(1.0) - ratio) + right.astype(np.float32) * ratio
    out = np.clip(mixed, 0, 255).astype(np.uint8)
    return np.where(left == right, left, out).astype(np.uint8)


def mix(left: Color, right: Color, ratio: float) -> Color:
    """Blend two colors. ``ratio`` 0 gives ``left``."""
    return Color.from_array(mix_arrays(left.to_array(), right.to_array(), ratio))


def transition_ratios(transition_frames: int) -> "NDArray[np.float32]":
    """Mix ratios for one transition: ``frame / transition_frames``.

    Strictly increasing from 0. The last ratio is
    ``(transition_frames - 1) / transition_frames``, so the target color
    itself is first shown as ``left`` of the next transition.
    """
    if transition_frames <= 0:
        raise ValueError("transition_frames must be positive")
    return np.arange(transition_frames, dtype=np.float32) / np.float32(transition_frames)


def stop_positions(start: int, end: int, xs: "NDArray[np.int64]") -> "NDArray[np.float32]":
    """Position of each x between two gradient stops, clamped to [0, 1]."""
    t = (xs - start).astype(np.float32) / np.float32(end - start)
    return np.clip(t, 0.0, 1.0)


class FrameStrategy(ABC):
    """Turns a stream of colors into a stream of ``(height, width, 4)`` frames."""

    name = "base"

    def __init__(self, width: int, height: int, transition_frames: int):
        if width <= 0 or height <= 0:
            raise ValueError(f"invalid frame size {width}x{height}")
        if transition_frames <= 0:
            raise ValueError("transition_frames must be positive")
        self.width = width
        self.height = height
        self.transition_frames = transition_frames

    @property
    def frame_size(self) -> int:
        """Bytes in one raw RGBA frame."""
        return self.width * self.height * 4

    def _fill(self, pixel: "NDArray[np.uint8]") -> "NDArray[np.uint8]":
        # Read-only view; encoders copy it into contiguous bytes
        return np.broadcast_to(pixel, (self.height, self.width, 4))

    @abstractmethod
    def frames(self, colors: Iterator[Color]) -> Iterator["NDArray[np.uint8]"]:
        """Yield frames until ``colors`` is exhausted."""


class GradientFill(FrameStrategy):
    """Uniform frames fading from one palette color to the next."""

    name = "fill"

    def frames(self, colors: Iterator[Color]) -> Iterator["NDArray[np.uint8]"]:
        ratios = transition_ratios(self.transition_frames)
        left: Color | None = None
        right: Color | None = None
        while True:
            if left is None:
                left = next(colors, None)
            if right is None:
                right = next(colors, None)
            if left is None or right is None:
                return

            logger.debug("Transition %s -> %s", left, right)
            start, end = left.to_array(), right.to_array()
            for ratio in ratios:
                yield self._fill(mix_arrays(start, end, ratio))

            left, right = right, None


class SlidingGradient(FrameStrategy):
    """A three-stop horizontal gradient that slides left.

    Stops start at ``0``, ``width`` and ``2 * width`` and move left by
    ``width // transition_frames`` pixels per frame. Once the middle stop
    reaches the left edge the colors shift down and the next color enters
    on the right.
    """

    name = "sliding"

    @property
    def step(self) -> int:
        return max(1, self.width // self.transition_frames)

    def _row(self, left: Color, middle: Color, right: Color, stops: list[int]) -> "NDArray[np.uint8]":
        xs = np.arange(self.width)
        first = stop_positions(stops[0], stops[1], xs)[:, np.newaxis]
        second = stop_positions(stops[1], stops[2], xs)[:, np.newaxis]
        row = mix_arrays(left.to_array(), middle.to_array(), first)
        return mix_arrays(row, right.to_array(), second)

    def frames(self, colors: Iterator[Color]) -> Iterator["NDArray[np.uint8]"]:
        left = next(colors, None)
        middle = next(colors, None)
        right = next(colors, None)
        if left is None or middle is None or right is None:
            return

        stops = [0, self.width, self.width * 2]
        while True:
            row = self._row(left, middle, right, stops)
            yield np.broadcast_to(row, (self.height, self.width, 4))

            stops = [s - self.step for s in stops]
            if stops[1] <= 0:
                incoming = next(colors, None)
                if incoming is None:
                    return
                logger.debug("Gradient shifted, next color %s", incoming)
                left, middle, right = middle, right, incoming
                stops = [stops[1], stops[2], stops[2] + self.width]


STRATEGIES: dict[str, type[FrameStrategy]] = {
    GradientFill.name: GradientFill,
    SlidingGradient.name: SlidingGradient,
}


def make_strategy(mode: str, width: int, height: int, transition_frames: int) -> FrameStrategy:
    """Create a frame strategy by name (``fill`` or ``sliding``)."""
    key = getattr(mode, "value", mode)
    try:
        cls = STRATEGIES[key]
    except KeyError:
        raise ValueError(f"unknown frame mode {mode!r}, expected one of {sorted(STRATEGIES)}") from None
    return cls(width, height, transition_frames)
