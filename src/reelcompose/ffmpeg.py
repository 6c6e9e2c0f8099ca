"""ffmpeg subprocess runner shared by every pipeline stage.

Commands are argv lists handed straight to subprocess, never a shell.
A run is trusted only when ffmpeg exits 0 AND the declared output file
exists with non-zero size.

RunContext carries the run-scoped controls that every invocation honors:
  - a cancel signal (internal, plus an optional caller-owned Event),
  - a whole-pipeline deadline on top of the per-invocation timeout,
  - a semaphore shared across runs that caps concurrent ffmpeg processes.
"""

import logging
import re
import subprocess
import threading
import time
from contextlib import contextmanager
from pathlib import Path

import imageio_ffmpeg

from .errors import CompositionCancelled

logger = logging.getLogger(__name__)

_FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()

_POLL_INTERVAL = 0.2
_STDERR_TAIL = 2000
_PROBE_TIMEOUT = 30.0

_AUDIO_STREAM = re.compile(r"Stream #\d+:\d+.*?: Audio:")


class FFmpegError(Exception):
    """ffmpeg exited non-zero or did not produce its output."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr

    @property
    def diagnostic(self) -> str:
        tail = self.stderr[-_STDERR_TAIL:].strip()
        return f"{self} (exit code {self.returncode}): {tail}"


class FFmpegTimeout(FFmpegError):
    """A single invocation ran past its timeout."""


class RunContext:
    """Cancellation, deadline and concurrency slots for one composition run."""

    def __init__(
        self,
        deadline: float | None = None,
        cancel: threading.Event | None = None,
        slots: threading.Semaphore | None = None,
        ffmpeg: str | None = None,
    ):
        self.deadline = deadline
        self.slots = slots
        self.ffmpeg = ffmpeg or _FFMPEG
        self._external = cancel
        self._event = threading.Event()

    @classmethod
    def with_budget(cls, seconds: float, **kwargs) -> "RunContext":
        """Context whose deadline is `seconds` from now."""
        return cls(deadline=time.monotonic() + seconds, **kwargs)

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._external is not None and self._external.is_set()

    def remaining(self) -> float | None:
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    def check(self) -> None:
        """Raise CompositionCancelled if the run was cancelled or ran out of time."""
        if self.cancelled:
            raise CompositionCancelled(diagnostic="cancel signal set")
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise CompositionCancelled(
                "Video composition timed out", diagnostic="pipeline deadline exceeded",
            )

    @contextmanager
    def slot(self):
        """Hold one global transcode slot, giving up if the run is cancelled."""
        if self.slots is None:
            yield
            return
        while not self.slots.acquire(timeout=_POLL_INTERVAL):
            self.check()
        try:
            yield
        finally:
            self.slots.release()


def run_ffmpeg(
    args: list[str],
    output: str | Path,
    timeout: float,
    context: RunContext | None = None,
) -> None:
    """Run ffmpeg with `args` writing to `output`.

    Args:
        args: Input and encoding arguments, without the binary or output path.
        output: Output file path, appended as the last argument.
        timeout: Seconds this invocation may run.
        context: Run controls; a fresh unbounded context when None.

    Raises:
        FFmpegError: Non-zero exit, or missing/empty output.
        FFmpegTimeout: The invocation exceeded `timeout`.
        CompositionCancelled: The run was cancelled or hit its deadline.
    """
    context = context or RunContext()
    output = Path(output)
    cmd = [
        context.ffmpeg, "-y", "-hide_banner", "-nostdin", "-loglevel", "error",
        *args, str(output),
    ]

    t0 = time.monotonic()
    returncode, stderr = _run(cmd, timeout, context)
    if returncode != 0:
        raise FFmpegError("ffmpeg failed", returncode=returncode, stderr=stderr)
    if not output.exists() or output.stat().st_size == 0:
        raise FFmpegError(
            f"ffmpeg produced no output at {output.name}",
            returncode=returncode, stderr=stderr,
        )
    logger.debug("ffmpeg wrote %s in %.1fs", output.name, time.monotonic() - t0)


def _run(cmd: list[str], timeout: float, context: RunContext) -> tuple[int, str]:
    """Run one ffmpeg process under a transcode slot, polling for cancel.

    Returns the exit code and decoded stderr. Every exit path other than
    a normal return kills the process first.
    """
    with context.slot():
        context.check()
        logger.debug("ffmpeg %s", " ".join(cmd[1:]))
        limit = time.monotonic() + timeout
        proc = subprocess.Popen(
            cmd, stdin=subprocess.DEVNULL, stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )
        try:
            while True:
                try:
                    _, stderr = proc.communicate(timeout=_POLL_INTERVAL)
                    break
                except subprocess.TimeoutExpired:
                    remaining = context.remaining()
                    if context.cancelled or (remaining is not None and remaining <= 0):
                        _kill(proc)
                        context.check()
                    if time.monotonic() >= limit:
                        stderr = _kill(proc)
                        raise FFmpegTimeout(
                            f"ffmpeg timed out after {timeout:.0f}s",
                            returncode=proc.returncode,
                            stderr=stderr,
                        )
        except BaseException:
            if proc.poll() is None:
                _kill(proc)
            raise

    return proc.returncode, stderr.decode("utf-8", errors="replace") if stderr else ""


def _kill(proc: subprocess.Popen) -> str:
    """Kill a running ffmpeg and return whatever it wrote to stderr."""
    proc.kill()
    _, stderr = proc.communicate()
    return stderr.decode("utf-8", errors="replace") if stderr else ""


def has_audio_stream(path: str | Path, context: RunContext | None = None) -> bool:
    """Whether ffmpeg sees at least one audio stream in `path`.

    Parses the stream listing ffmpeg prints for `-i` without an output
    (imageio-ffmpeg does not ship ffprobe). ffmpeg exits non-zero
    without an output file, so only the listing is inspected. The probe
    runs like any other invocation: it takes a transcode slot and stops
    on cancel or the pipeline deadline. A probe that times out reports
    no audio.

    Raises:
        CompositionCancelled: The run was cancelled or hit its deadline.
    """
    context = context or RunContext()
    cmd = [context.ffmpeg, "-hide_banner", "-nostdin", "-i", str(path)]
    try:
        _, listing = _run(cmd, _PROBE_TIMEOUT, context)
    except FFmpegTimeout:
        logger.warning("audio probe of %s timed out", Path(path).name)
        return False
    return bool(_AUDIO_STREAM.search(listing))
