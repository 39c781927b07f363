"""Byte stream view of the frame queue.

``StreamAdapter`` is a readable raw stream. ffmpeg's input feeder reads it
in whatever chunk size suits it; reads may end mid-frame or span several
frames.
"""

import io
import logging
import threading
from typing import Iterable, Iterator, Protocol

from colorrun.pipeline.data import END_OF_STREAM, Frame
from colorrun.pipeline.queues import BoundedQueue

logger = logging.getLogger(__name__)


class FrameSource(Protocol):
    def next_frame(self) -> Frame | None:
        """Return the next frame, blocking if needed. ``None`` ends the stream."""
        ...


class QueueFrameSource:
    """Frames from a ``BoundedQueue`` until it is closed and drained."""

    def __init__(self, queue: BoundedQueue, cancel: threading.Event | None = None):
        self.queue = queue
        self.cancel = cancel

    def next_frame(self) -> Frame | None:
        item = self.queue.get(cancel=self.cancel)
        if item is END_OF_STREAM:
            return None
        return item


class IterableFrameSource:
    """Frames from any iterable."""

    def __init__(self, frames: Iterable[Frame]):
        self._frames: Iterator[Frame] = iter(frames)

    def next_frame(self) -> Frame | None:
        return next(self._frames, None)


class StreamAdapter(io.RawIOBase):
    """Sequential reader over a frame source.

    Every ``readinto`` fills the whole buffer, except the call that reaches
    the end of the source: it returns the remaining bytes (possibly none)
    and sets ``exhausted``. Later calls return 0.
    """

    def __init__(self, source: FrameSource):
        super().__init__()
        self.source = source
        self.exhausted = False
        self._frame: memoryview | None = None
        self._offset = 0
        self._bytes_read = 0
        self._frames_read = 0

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        if self.closed:
            raise ValueError("read from closed stream")

        out = memoryview(buffer).cast("B")
        size = len(out)
        written = 0
        while written < size:
            if self._frame is None:
                if self.exhausted:
                    break
                frame = self.source.next_frame()
                if frame is None:
                    self.exhausted = True
                    logger.debug("Frame stream exhausted after %d frames", self._frames_read)
                    break
                self._frame = memoryview(frame.data)
                self._offset = 0

            n = min(len(self._frame) - self._offset, size - written)
            out[written : written + n] = self._frame[self._offset : self._offset + n]
            written += n
            self._offset += n

            if self._offset >= len(self._frame):
                self._frame = None
                self._offset = 0
                self._frames_read += 1

        self._bytes_read += written
        return written

    @property
    def bytes_read(self) -> int:
        return self._bytes_read

    @property
    def frames_read(self) -> int:
        """Frames consumed completely."""
        return self._frames_read
