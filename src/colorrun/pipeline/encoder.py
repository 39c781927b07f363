"""ffmpeg encoder supervisor.

Feeds the frame byte stream to ffmpeg's stdin and reports the process
exiting as a fatal pipeline error.
"""

import logging
import subprocess
import threading
from collections import deque
from typing import Callable

from colorrun.core.errors import EncoderExitError
from colorrun.pipeline.stream import StreamAdapter

logger = logging.getLogger(__name__)

# Lines of ffmpeg stderr kept for error reports
STDERR_TAIL = 20


def _log_error(exc: Exception) -> None:
    logger.error("%s", exc)


class FfmpegEncoder:
    """Runs ffmpeg with the frame stream as its input.

    Output goes to ``output``, an RTMP ingest URL or a local file path.
    """

    def __init__(
        self,
        stream: StreamAdapter,
        width: int,
        height: int,
        output: str,
        framerate: int = 30,
        input_format: str = "rawvideo",
        preset: str = "veryfast",
        output_format: str = "flv",
        chunk_size: int = 65536,
        report_error: Callable[[Exception], None] | None = None,
        ffmpeg_bin: str = "ffmpeg",
    ):
        self.stream = stream
        self.width = width
        self.height = height
        self.output = output
        self.framerate = framerate
        self.input_format = input_format
        self.preset = preset
        self.output_format = output_format
        self.chunk_size = chunk_size
        self.report_error = report_error or _log_error
        self.ffmpeg_bin = ffmpeg_bin

        self._proc: subprocess.Popen | None = None
        self._stop_event = threading.Event()
        self._feeder: threading.Thread | None = None
        self._watcher: threading.Thread | None = None
        self._stderr_tail: deque[str] = deque(maxlen=STDERR_TAIL)
        self._bytes_written = 0

    def build_command(self) -> list[str]:
        """ffmpeg arguments for the configured input and output."""
        cmd = [self.ffmpeg_bin, "-y", "-f", self.input_format]
        if self.input_format == "rawvideo":
            cmd += ["-pix_fmt", "rgba", "-video_size", f"{self.width}x{self.height}"]
        cmd += [
            "-framerate",
            str(self.framerate),
            "-i",
            "pipe:0",
            "-c:v",
            "libx264",
            "-preset",
            self.preset,
            "-pix_fmt",
            "yuv420p",
            "-f",
            self.output_format,
            self.output,
        ]
        return cmd

    def _feed_loop(self):
        """Copy the frame stream into ffmpeg until either side ends."""
        stdin = self._proc.stdin
        try:
            while not self._stop_event.is_set():
                chunk = self.stream.read(self.chunk_size)
                if chunk:
                    stdin.write(chunk)
                    self._bytes_written += len(chunk)
                if not chunk or self.stream.exhausted:
                    logger.info("Frame stream ended, closing ffmpeg input")
                    break
        except (OSError, ValueError):
            # ffmpeg went away; the watcher reports the exit
            logger.warning("ffmpeg pipe broken")
        finally:
            try:
                stdin.close()
            except OSError:
                pass

    def _watch_loop(self):
        """Wait for ffmpeg to exit and report it unless we asked it to stop."""
        proc = self._proc
        for line in proc.stderr:
            text = line.decode(errors="replace").rstrip()
            self._stderr_tail.append(text)
            logger.debug("ffmpeg: %s", text)
        returncode = proc.wait()
        logger.info("ffmpeg exited (code %s)", returncode)

        finished = returncode == 0 and self.stream.exhausted
        if not self._stop_event.is_set() and not finished:
            self.report_error(EncoderExitError(returncode, "\n".join(self._stderr_tail)))

    def start(self):
        """Start ffmpeg and the feeder/watcher threads.

        Raises:
            EncoderExitError: ffmpeg could not be started.
        """
        cmd = self.build_command()
        logger.info("Starting ffmpeg (output: %s)", self.output)
        logger.debug("ffmpeg command: %s", " ".join(cmd))
        self._stop_event.clear()
        try:
            self._proc = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise EncoderExitError(None, f"{self.ffmpeg_bin} not found in PATH") from e

        self._watcher = threading.Thread(target=self._watch_loop, name="ffmpeg-watcher", daemon=True)
        self._feeder = threading.Thread(target=self._feed_loop, name="ffmpeg-feeder", daemon=True)
        self._watcher.start()
        self._feeder.start()

    def stop(self, timeout: float = 10.0):
        """Stop ffmpeg and wait for the helper threads."""
        self._stop_event.set()
        if self._proc and self._proc.poll() is None:
            self._proc.terminate()
            try:
                self._proc.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                logger.warning("ffmpeg did not exit, killing it")
                self._proc.kill()
        for thread in (self._feeder, self._watcher):
            if thread:
                thread.join(timeout)

    def finish(self, timeout: float = 10.0):
        """Let ffmpeg encode the rest of the stream, then stop it.

        Call once the pipeline is shutting down: the feeder copies the frames
        still queued, closes ffmpeg's input and ffmpeg exits on its own.
        """
        if self._feeder:
            self._feeder.join(timeout)
            if self._feeder.is_alive():
                logger.warning("Frame stream still open after %.0fs", timeout)
        if self._proc and self._proc.poll() is None:
            try:
                self._proc.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                logger.warning("ffmpeg still running after its input closed")
        self.stop(timeout)

    def join(self):
        """Wait for ffmpeg to exit."""
        if self._watcher:
            self._watcher.join()

    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode if self._proc else None
