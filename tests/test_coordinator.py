"""Integration tests for the pipeline coordinator."""

import threading
import time

import numpy as np

from colorrun.core.errors import EncoderExitError, PaletteRequestError
from colorrun.pipeline.coordinator import PipelineCoordinator
from colorrun.pipeline.data import ComponentState

from conftest import ScriptedPaletteClient

WIDTH, HEIGHT, TRANSITION = 4, 2, 3
FRAME_SIZE = WIDTH * HEIGHT * 4


def make_coordinator(client) -> PipelineCoordinator:
    return PipelineCoordinator(
        client,
        "default",
        width=WIDTH,
        height=HEIGHT,
        transition_frames=TRANSITION,
        pacing_interval=0.0,
    )


def read_until_exhausted(coordinator: PipelineCoordinator) -> bytes:
    out = bytearray()
    while not coordinator.stream.exhausted:
        out += coordinator.stream.read(FRAME_SIZE * 2 + 5)
    return bytes(out)


class TestStreaming:
    """Tests for end-to-end byte production."""

    def test_stream_produces_frames(self, palette_client):
        """Frames read from the stream are whole, uniform RGBA images."""
        coordinator = make_coordinator(palette_client)
        coordinator.start()
        data = coordinator.stream.read(FRAME_SIZE * 10)
        coordinator.shutdown()

        assert len(data) == FRAME_SIZE * 10
        frames = np.frombuffer(data, dtype=np.uint8).reshape(10, HEIGHT, WIDTH, 4)
        for frame in frames:
            assert np.all(frame == frame[0, 0])
            assert frame[0, 0, 3] == 255

    def test_first_frame_is_first_color(self, palette_client):
        """The stream starts with the first palette color at ratio 0."""
        coordinator = make_coordinator(palette_client)
        coordinator.start()
        data = coordinator.stream.read(FRAME_SIZE)
        coordinator.shutdown()

        first = coordinator.palette_source.palettes[0][0]
        assert data[:4] == bytes(first)

    def test_shutdown_cascades_to_end_of_stream(self, palette_client):
        """Cancelling closes both queues and the stream ends after draining."""
        coordinator = make_coordinator(palette_client)
        coordinator.start()
        coordinator.stream.read(FRAME_SIZE * 4)

        coordinator.shutdown()
        rest = read_until_exhausted(coordinator)

        assert coordinator.color_queue.closed
        assert coordinator.frame_queue.drained
        assert coordinator.stream.exhausted
        assert len(rest) % FRAME_SIZE == 0
        assert coordinator.palette_source.state is ComponentState.CLOSED
        assert coordinator.synthesizer.state is ComponentState.CLOSED
        assert coordinator.state is ComponentState.CLOSED

    def test_frame_queue_default_size(self, palette_client):
        """The frame queue holds three transitions."""
        coordinator = make_coordinator(palette_client)

        assert coordinator.frame_queue.maxsize == TRANSITION * 3
        assert coordinator.color_queue.maxsize == 15


class TestErrorChannel:
    """Tests for the single error observation point."""

    def test_encoder_exit_is_fatal(self, palette_client):
        """An encoder failure cancels the whole pipeline."""
        coordinator = make_coordinator(palette_client)
        coordinator.start()
        coordinator.report_error(EncoderExitError(1, "connection reset"))

        coordinator.run()
        coordinator.shutdown()

        assert coordinator.cancel.is_set()
        assert coordinator.errors_seen["EncoderExitError"] == 1
        assert coordinator.frame_queue.closed

    def test_palette_errors_not_fatal(self):
        """Palette failures are observed but the pipeline keeps running."""
        client = ScriptedPaletteClient([PaletteRequestError("refused"), PaletteRequestError("refused")])
        coordinator = make_coordinator(client)
        runner = threading.Thread(target=coordinator.run, daemon=True)
        coordinator.start()
        runner.start()

        data = coordinator.stream.read(FRAME_SIZE * 5)
        time.sleep(0.2)
        assert not coordinator.cancel.is_set()

        coordinator.request_shutdown()
        runner.join(2.0)
        coordinator.shutdown()

        assert len(data) == FRAME_SIZE * 5
        assert not runner.is_alive()
        assert coordinator.errors_seen["PaletteRequestError"] == 2

    def test_request_shutdown_from_another_thread(self, palette_client):
        """run() returns once shutdown is requested elsewhere."""
        coordinator = make_coordinator(palette_client)
        coordinator.start()
        threading.Timer(0.2, coordinator.request_shutdown).start()

        started = time.monotonic()
        coordinator.run()
        coordinator.shutdown()

        assert time.monotonic() - started < 5.0
        assert coordinator.state is ComponentState.CLOSED

    def test_context_manager(self, palette_client):
        """Leaving the context shuts the pipeline down."""
        with make_coordinator(palette_client) as coordinator:
            coordinator.stream.read(FRAME_SIZE)

        assert coordinator.cancel.is_set()
        assert coordinator.frame_queue.closed


class CrashingClient:
    """Palette client that fails with an unexpected exception."""

    def get_palette(self, model, seed=None):
        raise RuntimeError("unexpected payload")


class TestStageFailures:
    """Tests for stage threads dying on unexpected errors."""

    def test_crashed_source_stops_pipeline(self):
        """The crash reaches the error channel and run() returns."""
        coordinator = make_coordinator(CrashingClient())
        runner = threading.Thread(target=coordinator.run, daemon=True)
        coordinator.start()
        runner.start()

        data = coordinator.stream.read(1000)
        runner.join(5.0)
        coordinator.shutdown()

        assert data == b""
        assert coordinator.stream.exhausted
        assert not runner.is_alive()
        assert coordinator.cancel.is_set()
        assert coordinator.errors_seen["StageError"] == 1

    def test_crashed_synthesizer_stops_pipeline(self, palette_client, monkeypatch):
        """A synthesizer crash cancels the source and closes both queues."""
        coordinator = make_coordinator(palette_client)

        def broken_frames(colors):
            next(colors)
            raise RuntimeError("bad frame geometry")
            yield

        monkeypatch.setattr(coordinator.strategy, "frames", broken_frames)
        runner = threading.Thread(target=coordinator.run, daemon=True)
        coordinator.start()
        runner.start()

        assert coordinator.stream.read(1000) == b""
        runner.join(5.0)
        coordinator.shutdown()

        assert not runner.is_alive()
        assert coordinator.color_queue.drained
        assert coordinator.frame_queue.drained
        assert coordinator.errors_seen["StageError"] == 1

    def test_run_returns_when_stream_ends(self, palette_client):
        """A finished stream does not leave run() waiting."""
        coordinator = make_coordinator(palette_client)
        coordinator.color_queue.close()
        coordinator.synthesizer.start()
        read_until_exhausted(coordinator)

        runner = threading.Thread(target=coordinator.run, daemon=True)
        runner.start()
        runner.join(5.0)

        assert not runner.is_alive()
        assert not coordinator.cancel.is_set()
        coordinator.shutdown()
