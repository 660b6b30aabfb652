"""Single-instance guard: a PID marker file shared between invocations."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from tarvault.core.errors import AlreadyRunning, LockError

log = logging.getLogger(__name__)


def read_pid(lock_path: Path) -> int | None:
    """Read the holder PID from a lock file. Returns None if absent or corrupt."""
    if not lock_path.exists():
        return None
    try:
        return int(lock_path.read_text(encoding="utf-8").strip())
    except (ValueError, OSError):
        return None


def is_process_running(pid: int) -> bool:
    """Check if a process with the given PID is running."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
        return True
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, but owned by someone else
        return True
    except OSError:
        return False


class RunLock:
    """Cross-process marker preventing overlapping backup runs.

    The marker records the PID of the holder. A marker whose PID is not
    alive is stale and gets reclaimed. The check-then-create sequence is
    best effort: the exclusive create only guards against two processes
    reclaiming the same stale marker at the same moment.

    Usable as a context manager; the marker is removed on every exit path.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> RunLock:
        """Take the lock or raise AlreadyRunning / LockError."""
        pid = read_pid(self.path)
        if pid is not None and pid != os.getpid() and is_process_running(pid):
            raise AlreadyRunning(pid)

        if self.path.exists():
            log.warning("Removing stale lock file %s (PID %s not running)", self.path, pid)
            try:
                self.path.unlink(missing_ok=True)
            except OSError as e:
                raise LockError(f"Cannot remove stale lock file {self.path}: {e}") from e

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
        except FileExistsError as e:
            other = read_pid(self.path)
            raise AlreadyRunning(other or 0) from e
        except OSError as e:
            raise LockError(f"Cannot create lock file {self.path}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(str(os.getpid()))
        except OSError as e:
            self.path.unlink(missing_ok=True)
            raise LockError(f"Cannot write lock file {self.path}: {e}") from e
        except BaseException:
            self.path.unlink(missing_ok=True)
            raise

        self._held = True
        log.debug("Acquired lock %s (PID %d)", self.path, os.getpid())
        return self

    def release(self) -> None:
        """Remove the marker. Safe to call more than once."""
        self._held = False
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            log.warning("Failed to remove lock file %s: %s", self.path, e)
            return
        log.debug("Released lock %s", self.path)

    def __enter__(self) -> RunLock:
        return self.acquire()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
