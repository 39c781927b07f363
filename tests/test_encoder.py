"""Tests for the ffmpeg supervisor.

A small Python child process stands in for ffmpeg so the tests do not need
an ffmpeg binary.
"""

import sys

import pytest

from colorrun.core.errors import EncoderExitError
from colorrun.pipeline.data import Frame
from colorrun.pipeline.encoder import FfmpegEncoder
from colorrun.pipeline.stream import IterableFrameSource, StreamAdapter

CONSUME = "import sys; data = sys.stdin.buffer.read(); sys.stderr.write('read %d bytes\\n' % len(data))"
FAIL = "import sys; sys.stderr.write('Connection refused\\n'); sys.exit(3)"


def make_stream(n_frames: int = 10, size: int = 1000) -> StreamAdapter:
    frames = [Frame(i, bytes([i % 256]) * size) for i in range(n_frames)]
    return StreamAdapter(IterableFrameSource(frames))


def fake_ffmpeg(encoder: FfmpegEncoder, script: str, monkeypatch) -> FfmpegEncoder:
    monkeypatch.setattr(encoder, "build_command", lambda: [sys.executable, "-c", script])
    return encoder


class TestCommand:
    """Tests for the ffmpeg argument list."""

    def test_rawvideo_input(self):
        """Raw frames declare pixel format and size."""
        cmd = FfmpegEncoder(make_stream(), 1280, 720, "rtmp://live/app/key").build_command()

        assert cmd[:4] == ["ffmpeg", "-y", "-f", "rawvideo"]
        assert cmd[cmd.index("-video_size") + 1] == "1280x720"
        assert cmd[cmd.index("-framerate") + 1] == "30"
        assert cmd[cmd.index("-i") + 1] == "pipe:0"
        assert cmd[cmd.index("-c:v") + 1] == "libx264"
        assert cmd[-3:] == ["-f", "flv", "rtmp://live/app/key"]

    def test_png_input(self):
        """Encoded images need no size or pixel format on input."""
        cmd = FfmpegEncoder(
            make_stream(), 640, 480, "out.flv", input_format="image2pipe", framerate=24
        ).build_command()

        assert cmd[3] == "image2pipe"
        assert "-video_size" not in cmd
        # Only the output pixel format remains
        assert cmd.count("-pix_fmt") == 1
        assert cmd[cmd.index("-framerate") + 1] == "24"

    def test_custom_binary_and_preset(self):
        cmd = FfmpegEncoder(
            make_stream(), 4, 2, "out.mp4", ffmpeg_bin="/opt/ffmpeg", preset="ultrafast", output_format="mp4"
        ).build_command()

        assert cmd[0] == "/opt/ffmpeg"
        assert cmd[cmd.index("-preset") + 1] == "ultrafast"
        assert cmd[-2:] == ["mp4", "out.mp4"]


class TestProcess:
    """Tests for running and supervising the child process."""

    def test_missing_binary(self):
        """A missing ffmpeg is reported as an encoder failure at start."""
        encoder = FfmpegEncoder(make_stream(), 4, 2, "out.flv", ffmpeg_bin="definitely-not-ffmpeg-xyz")

        with pytest.raises(EncoderExitError) as exc_info:
            encoder.start()
        assert exc_info.value.returncode is None

    def test_feeds_whole_stream(self, monkeypatch):
        """Every byte of the stream reaches the child and a clean exit is not an error."""
        errors = []
        encoder = fake_ffmpeg(
            FfmpegEncoder(make_stream(), 4, 2, "out.flv", chunk_size=333, report_error=errors.append),
            CONSUME,
            monkeypatch,
        )
        encoder.start()
        encoder.join()
        encoder.stop()

        assert encoder.bytes_written == 10 * 1000
        assert encoder.stream.exhausted
        assert encoder.returncode == 0
        assert errors == []

    def test_unexpected_exit_reported(self, monkeypatch):
        """A failing child is reported with its exit code and stderr."""
        errors = []
        encoder = fake_ffmpeg(
            FfmpegEncoder(make_stream(), 4, 2, "out.flv", report_error=errors.append),
            FAIL,
            monkeypatch,
        )
        encoder.start()
        encoder.join()
        encoder.stop()

        assert len(errors) == 1
        assert isinstance(errors[0], EncoderExitError)
        assert errors[0].returncode == 3
        assert "Connection refused" in errors[0].stderr

    def test_stop_is_not_an_error(self, monkeypatch):
        """Stopping the child on purpose is not reported."""
        errors = []
        sleeper = "import time; time.sleep(30)"
        encoder = fake_ffmpeg(
            FfmpegEncoder(make_stream(1, 10), 4, 2, "out.flv", report_error=errors.append),
            sleeper,
            monkeypatch,
        )
        encoder.start()
        encoder.stop(timeout=5.0)

        assert encoder.returncode is not None
        assert errors == []

    def test_finish_waits_for_encoder(self, monkeypatch):
        """finish() lets the child consume the whole stream and exit cleanly."""
        errors = []
        slow = "import sys, time; sys.stdin.buffer.read(); time.sleep(0.5)"
        encoder = fake_ffmpeg(
            FfmpegEncoder(make_stream(), 4, 2, "out.flv", chunk_size=100, report_error=errors.append),
            slow,
            monkeypatch,
        )
        encoder.start()
        encoder.finish(timeout=5.0)

        assert encoder.bytes_written == 10 * 1000
        assert encoder.returncode == 0
        assert errors == []
