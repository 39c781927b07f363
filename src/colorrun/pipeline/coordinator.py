"""Pipeline coordinator - wires the stages together and owns shutdown."""

import logging
import threading
from collections import Counter
from queue import Empty, Queue

from colorrun.core.errors import EncoderExitError, FrameEncodeError, StageError
from colorrun.pipeline.data import ComponentState
from colorrun.pipeline.encoding import FrameEncoder
from colorrun.pipeline.gradients import make_strategy
from colorrun.pipeline.palette_source import PaletteFetcher, PaletteSource
from colorrun.pipeline.queues import BoundedQueue
from colorrun.pipeline.stream import QueueFrameSource, StreamAdapter
from colorrun.pipeline.synthesizer import FrameSynthesizer

logger = logging.getLogger(__name__)


class PipelineCoordinator:
    """Runs the palette source and frame synthesizer behind a byte stream.

    Architecture:
    ┌────────────────┐     ┌──────────────┐     ┌──────────────────┐
    │ PaletteSource  │────▶│ color_queue  │────▶│ FrameSynthesizer │
    │ (palette API)  │     │ (Color)      │     │ (numpy)          │
    └────────────────┘     └──────────────┘     └──────────────────┘
                                                          │
                                                          ▼
                                                 ┌──────────────────┐
                                                 │ frame_queue      │
                                                 │ (Frame)          │
                                                 └──────────────────┘
                                                          │
                                                          ▼
                                                 ┌──────────────────┐
                                                 │ StreamAdapter    │──▶ encoder
                                                 │ (bytes)          │
                                                 └──────────────────┘

    Every stage reports errors to ``report_error``; ``run`` observes them in
    one place. Setting ``cancel`` stops the palette source, which closes the
    color queue; the synthesizer then closes the frame queue and the stream
    ends once it has been read out.
    """

    def __init__(
        self,
        client: PaletteFetcher,
        model: str,
        width: int,
        height: int,
        transition_frames: int,
        mode: str = "fill",
        frame_encoder: FrameEncoder | None = None,
        color_queue_size: int = 15,
        frame_queue_size: int | None = None,
        pacing_interval: float = 2.0,
        retry_backoff: float = 0.0,
    ):
        self.width = width
        self.height = height
        self.transition_frames = transition_frames

        self.cancel = threading.Event()
        self.errors: Queue[Exception] = Queue()
        self.errors_seen: Counter[str] = Counter()
        self.state = ComponentState.RUNNING

        # Queues for inter-stage communication. Each queued raw frame is a full
        # width * height * 4 byte buffer.
        self.color_queue = BoundedQueue(color_queue_size, name="color queue")
        self.frame_queue = BoundedQueue(frame_queue_size or transition_frames * 3, name="frame queue")

        self.strategy = make_strategy(mode, width, height, transition_frames)
        self.palette_source = PaletteSource(
            client,
            model,
            self.color_queue,
            cancel=self.cancel,
            report_error=self.report_error,
            pacing_interval=pacing_interval,
            retry_backoff=retry_backoff,
        )
        self.synthesizer = FrameSynthesizer(
            self.color_queue,
            self.frame_queue,
            self.strategy,
            encoder=frame_encoder,
            cancel=self.cancel,
            report_error=self.report_error,
        )
        self.stream = StreamAdapter(QueueFrameSource(self.frame_queue))

    @property
    def frame_encoder(self) -> FrameEncoder:
        return self.synthesizer.encoder

    def report_error(self, exc: Exception) -> None:
        """Error sink shared by every stage. Safe to call from any thread."""
        self.errors.put(exc)

    def start(self) -> None:
        """Start the palette source and synthesizer threads."""
        logger.info(
            "Starting pipeline: %dx%d, %d frames per transition, %s mode",
            self.width,
            self.height,
            self.transition_frames,
            self.strategy.name,
        )
        self.synthesizer.start()
        self.palette_source.start()

    def request_shutdown(self) -> None:
        """Cancel every stage. Safe to call from signal handlers and threads."""
        if not self.cancel.is_set():
            logger.info("Shutting down pipeline")
            self.cancel.set()
        if self.state is ComponentState.RUNNING:
            self.state = ComponentState.DRAINING

    def _handle_error(self, exc: Exception) -> None:
        self.errors_seen[type(exc).__name__] += 1
        if isinstance(exc, (EncoderExitError, StageError)):
            logger.error("Fatal: %s", exc)
            self.request_shutdown()
        elif isinstance(exc, FrameEncodeError):
            logger.warning("Dropped frame: %s", exc)
        else:
            logger.error("%s: %s", type(exc).__name__, exc)

    def _drain_errors(self) -> None:
        while True:
            try:
                exc = self.errors.get_nowait()
            except Empty:
                return
            self._handle_error(exc)

    def run(self, poll_interval: float = 0.1) -> None:
        """Observe reported errors until the pipeline is cancelled or the stream ends."""
        while not self.cancel.is_set() and not self.stream.exhausted:
            try:
                exc = self.errors.get(timeout=poll_interval)
            except Empty:
                continue
            self._handle_error(exc)
        if self.stream.exhausted and not self.cancel.is_set():
            logger.info("Frame stream ended")
        self._drain_errors()

    def shutdown(self, timeout: float = 10.0) -> None:
        """Cancel and wait for the stages to exit, producer first."""
        self.request_shutdown()
        self.palette_source.join(timeout)
        self.synthesizer.join(timeout)
        self._drain_errors()
        self.state = ComponentState.CLOSED
        logger.info(
            "Pipeline stopped: %d palettes, %d frames, %d bytes streamed",
            self.palette_source.palettes_fetched,
            self.synthesizer.frames_emitted,
            self.stream.bytes_read,
        )

    def __enter__(self) -> "PipelineCoordinator":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
