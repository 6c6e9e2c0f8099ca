"""Run-scoped transient files with cleanup on every exit.

Every file a run creates is named `<run_id>_<name>` inside the shared
work directory and registered at creation time. Leaving the `with`
block removes everything still registered, whether the run succeeded
or failed. Cleanup is best-effort: a file that cannot be removed is
logged, never raised over the run's own outcome.

Files leave the registry early in two ways:
  - release(path): superseded (raw clip replaced by its normalized
    version, final video after a successful upload). Deleted now.
  - forget(path): ownership handed to someone else. Not deleted.
"""

import logging
import threading
import time
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)


def safe_name(value: str) -> str:
    """Filename-safe form of an id: anything but [A-Za-z0-9_-] becomes '-'."""
    return "".join(c if c.isalnum() or c in "-_" else "-" for c in str(value))


def make_run_id(kind: str, owner_id: str) -> str:
    """Unique run id: kind, owner, nanosecond timestamp and a random nonce."""
    return f"{kind}_{safe_name(owner_id)}_{time.time_ns()}_{uuid.uuid4().hex[:8]}"


class RunWorkspace:
    """Registry of one run's local files under a shared work directory."""

    def __init__(self, work_dir: str | Path, run_id: str):
        self.work_dir = Path(work_dir)
        self.run_id = run_id
        self._files: dict[Path, None] = {}
        self._lock = threading.Lock()

    def __enter__(self) -> "RunWorkspace":
        self.work_dir.mkdir(parents=True, exist_ok=True)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    @property
    def prefix(self) -> str:
        return f"{self.run_id}_"

    def path(self, name: str) -> Path:
        """Reserve and register a run-scoped path for `name`."""
        p = self.work_dir / f"{self.prefix}{name}"
        with self._lock:
            self._files[p] = None
        return p

    def registered(self) -> list[Path]:
        with self._lock:
            return list(self._files)

    def release(self, path: str | Path) -> None:
        """Delete a superseded file now and stop tracking it."""
        p = Path(path)
        with self._lock:
            self._files.pop(p, None)
        _remove(p)

    def forget(self, path: str | Path) -> None:
        """Stop tracking a file without deleting it."""
        with self._lock:
            self._files.pop(Path(path), None)

    def cleanup(self) -> None:
        """Remove every registered file. Never raises."""
        with self._lock:
            pending = list(self._files)
            self._files.clear()
        for p in pending:
            _remove(p)
        if pending:
            logger.debug("run %s: cleaned up %d file(s)", self.run_id, len(pending))


def _remove(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("could not remove %s: %s", path, exc)
