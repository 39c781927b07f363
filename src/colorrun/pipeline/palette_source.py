"""Palette fetch loop.

Fetches palettes in a background thread, chaining each request to the last
two colors of the previous palette, and feeds individual colors onto the
color queue.
"""

import logging
import threading
from collections import deque
from typing import Callable, Protocol, Sequence

from colorrun.core.errors import PaletteError, PipelineCancelled, StageError
from colorrun.pipeline.data import Color, ComponentState, Palette
from colorrun.pipeline.queues import BoundedQueue

logger = logging.getLogger(__name__)

# Index of the first color emitted from a continuation palette. Slots 0 and 1
# repeat the seed, which was already emitted as slots 3 and 4 of the last one.
CONTINUATION_START = 2

# Recent palettes kept for inspection
HISTORY_SIZE = 16


class PaletteFetcher(Protocol):
    def get_palette(self, model: str, seed: Sequence[Color | None] | None = None) -> Palette: ...


def _log_error(exc: Exception) -> None:
    logger.error("%s", exc)


class PaletteSource:
    """Continuous palette producer.

    Owns the color queue: it is closed exactly once, when the loop exits.
    """

    def __init__(
        self,
        client: PaletteFetcher,
        model: str,
        queue: BoundedQueue,
        cancel: threading.Event | None = None,
        report_error: Callable[[Exception], None] | None = None,
        pacing_interval: float = 2.0,
        pacing_iterations: int | None = None,
        retry_backoff: float = 0.0,
        max_retry_backoff: float = 30.0,
    ):
        self.client = client
        self.model = model
        self.queue = queue
        self.cancel = cancel or threading.Event()
        self.report_error = report_error or _log_error
        self.pacing_interval = pacing_interval
        # Slow down until the consumer has had a chance to start draining
        self.pacing_iterations = queue.maxsize // 3 if pacing_iterations is None else pacing_iterations
        self.retry_backoff = retry_backoff
        self.max_retry_backoff = max_retry_backoff

        self.state = ComponentState.RUNNING
        self.palettes: deque[Palette] = deque(maxlen=HISTORY_SIZE)
        self._palettes_fetched = 0
        self._seed: list[Color | None] | None = None
        self._colors_emitted = 0
        self._thread: threading.Thread | None = None

    def _fetch(self) -> Palette:
        palette = self.client.get_palette(self.model, self._seed)
        if self._seed is not None:
            palette = palette.with_seed(self._seed)
        return palette

    def _emit(self, palette: Palette) -> None:
        start = 0 if self._seed is None else CONTINUATION_START
        for color in palette[start:]:
            self.queue.put(color, cancel=self.cancel)
            self._colors_emitted += 1

    def _retry_delay(self, failures: int) -> float:
        if self.retry_backoff <= 0:
            return 0.0
        return min(self.retry_backoff * 2 ** (failures - 1), self.max_retry_backoff)

    def run(self) -> None:
        """Fetch palettes until cancelled, then close the color queue."""
        logger.info("Palette source started (model=%s)", self.model)
        slow_count = self.pacing_iterations
        failures = 0
        try:
            while not self.cancel.is_set():
                logger.debug("Fetching palette (slow_count=%d)", slow_count)
                try:
                    palette = self._fetch()
                except PaletteError as e:
                    failures += 1
                    self.report_error(e)
                    delay = self._retry_delay(failures)
                    if delay:
                        self.cancel.wait(delay)
                    continue

                failures = 0
                self._emit(palette)
                self.palettes.append(palette)
                self._palettes_fetched += 1
                self._seed = palette.seed

                if slow_count > 0:
                    self.cancel.wait(self.pacing_interval)
                    slow_count -= 1
        except PipelineCancelled:
            logger.debug("Palette enqueue interrupted by cancellation")
        except Exception as e:
            logger.exception("Palette source crashed")
            self.report_error(StageError("palette source", e))
        finally:
            self.state = ComponentState.DRAINING
            self.queue.close()
            self.state = ComponentState.CLOSED
            logger.info(
                "Palette source stopped after %d palettes (%d colors)",
                self._palettes_fetched,
                self._colors_emitted,
            )

    def start(self) -> None:
        """Start the fetch loop in a background thread."""
        self._thread = threading.Thread(target=self.run, name="palette-source", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop the fetch loop."""
        self.cancel.set()

    def join(self, timeout: float | None = None) -> None:
        """Wait for the fetch loop to exit."""
        if self._thread:
            self._thread.join(timeout)

    @property
    def palettes_fetched(self) -> int:
        return self._palettes_fetched

    @property
    def colors_emitted(self) -> int:
        return self._colors_emitted
