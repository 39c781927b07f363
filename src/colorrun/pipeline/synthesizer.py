"""Frame synthesizer.

Consumes colors from the color queue, draws transition frames with a
``FrameStrategy``, encodes them and publishes them on the frame queue.
"""

import logging
import threading
import time
from typing import Callable, Iterator

from colorrun.core.errors import FrameEncodeError, PipelineCancelled, StageError
from colorrun.pipeline.data import END_OF_STREAM, Color, ComponentState, Frame
from colorrun.pipeline.encoding import FrameEncoder, RawFrameEncoder
from colorrun.pipeline.gradients import FrameStrategy
from colorrun.pipeline.queues import BoundedQueue

logger = logging.getLogger(__name__)


def _log_error(exc: Exception) -> None:
    logger.error("%s", exc)


class FrameSynthesizer:
    """Color queue to frame queue stage.

    Owns the frame queue: it is closed exactly once, after the color queue
    has been closed and drained.
    """

    def __init__(
        self,
        queue_in: BoundedQueue,
        queue_out: BoundedQueue,
        strategy: FrameStrategy,
        encoder: FrameEncoder | None = None,
        cancel: threading.Event | None = None,
        report_error: Callable[[Exception], None] | None = None,
    ):
        self.queue_in = queue_in
        self.queue_out = queue_out
        self.strategy = strategy
        self.encoder = encoder or RawFrameEncoder()
        self.cancel = cancel or threading.Event()
        self.report_error = report_error or _log_error

        self.state = ComponentState.RUNNING
        self._next_index = 0
        self._frames_emitted = 0
        self._frames_dropped = 0
        self._thread: threading.Thread | None = None

    def _colors(self) -> Iterator[Color]:
        while True:
            item = self.queue_in.get(cancel=self.cancel)
            if item is END_OF_STREAM:
                self.state = ComponentState.DRAINING
                return
            yield item

    def _drain_input(self) -> int:
        """Discard colors until the color queue is closed."""
        discarded = 0
        while self.queue_in.get() is not END_OF_STREAM:
            discarded += 1
        return discarded

    def _encode(self, index: int, pixels) -> Frame | None:
        try:
            return Frame(index=index, data=self.encoder.encode(pixels))
        except Exception as e:
            self._frames_dropped += 1
            self.report_error(FrameEncodeError(index, e))
            return None

    def run(self) -> None:
        """Produce frames until the color queue ends, then close the frame queue."""
        logger.info("Frame synthesizer started (%s)", self.strategy.name)
        start = time.monotonic()
        try:
            for pixels in self.strategy.frames(self._colors()):
                index = self._next_index
                self._next_index += 1
                frame = self._encode(index, pixels)
                if frame is None:
                    continue
                self.queue_out.put(frame, cancel=self.cancel)
                self._frames_emitted += 1

                if self._frames_emitted % self.strategy.transition_frames == 0:
                    elapsed = time.monotonic() - start
                    logger.debug("%d frames (%.1f fps)", self._frames_emitted, self._frames_emitted / max(elapsed, 1e-9))
        except PipelineCancelled:
            self.state = ComponentState.DRAINING
            discarded = self._drain_input()
            logger.debug("Synthesizer cancelled, discarded %d colors", discarded)
        except Exception as e:
            logger.exception("Frame synthesizer crashed")
            self.report_error(StageError("frame synthesizer", e))
            # The color queue only closes once its producer is cancelled
            self.cancel.set()
            self.state = ComponentState.DRAINING
            self._drain_input()
        finally:
            self.state = ComponentState.DRAINING
            self.queue_out.close()
            self.state = ComponentState.CLOSED
            logger.info(
                "Frame synthesizer stopped after %d frames (%d dropped)",
                self._frames_emitted,
                self._frames_dropped,
            )

    def start(self) -> None:
        """Start the synthesizer in a background thread."""
        self._thread = threading.Thread(target=self.run, name="frame-synthesizer", daemon=True)
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        """Wait for the synthesizer to finish."""
        if self._thread:
            self._thread.join(timeout)

    @property
    def frames_emitted(self) -> int:
        return self._frames_emitted

    @property
    def frames_dropped(self) -> int:
        return self._frames_dropped
