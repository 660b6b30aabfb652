"""Backup job orchestration: lock -> archive -> verify -> rotate -> unlock."""

from __future__ import annotations

import contextlib
import logging
import signal
import threading
from collections.abc import Generator
from datetime import datetime

from tarvault.core.archiver import create_archive
from tarvault.core.config import JobConfig
from tarvault.core.errors import ArchiveError, LockError, TargetMissing, VerifyError
from tarvault.core.lock import RunLock
from tarvault.core.models import BackupTarget, RunReport, RunState, Stage, TargetOutcome
from tarvault.core.rotation import quarantine, rotate
from tarvault.core.verifier import verify_archive

log = logging.getLogger(__name__)


def _raise_interrupt(signum, frame) -> None:
    raise KeyboardInterrupt(f"received signal {signum}")


@contextlib.contextmanager
def _interrupt_signals() -> Generator[None, None, None]:
    """Turn SIGINT and SIGTERM into KeyboardInterrupt for the duration.

    Signal handlers can only be installed from the main thread; elsewhere
    this is a no-op.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.getsignal(signum)
        signal.signal(signum, _raise_interrupt)
    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)


class BackupRunner:
    """Runs one backup job over all configured targets.

    Targets are processed one at a time. A failure in any step only fails
    that target; the run carries on with the next one. Only failing to take
    the lock aborts the run before any target is touched, and an
    interruption stops it between (or in the middle of) targets. The lock is
    released on every path out of :meth:`run`.
    """

    def __init__(self, config: JobConfig) -> None:
        self.config = config
        self._state = RunState.IDLE
        self._stop_requested = False

    @property
    def state(self) -> RunState:
        return self._state

    def request_stop(self) -> None:
        """Ask the run to stop before starting the next target."""
        self._stop_requested = True

    def run(self) -> RunReport:
        """Execute the job and return its report.

        Raises:
            AlreadyRunning: another live process holds the lock.
            LockError: the lock marker could not be created.
        """
        self._state = RunState.LOCKING
        lock = RunLock(self.config.lock_file)
        report = RunReport()
        current: TargetOutcome | None = None
        with _interrupt_signals():
            try:
                try:
                    lock.acquire()
                except LockError:
                    self._state = RunState.FAILED
                    raise

                self._state = RunState.RUNNING
                log.info("=== Starting backup job ===")
                log.info("Total directories to backup: %d", len(self.config.targets))

                for target in self.config.targets:
                    if self._stop_requested:
                        raise KeyboardInterrupt("stop requested")
                    current = TargetOutcome(target=target)
                    report.outcomes.append(current)
                    self._process_target(target, current)
                    current = None
            except KeyboardInterrupt:
                report.interrupted = True
                self._state = RunState.INTERRUPTED
                if current is not None and not current.success:
                    current.error = current.error or f"interrupted during {current.stage.value}"
                log.warning("Backup interrupted by user")
            finally:
                report.finished = datetime.now()
                # Only remove a marker we wrote ourselves
                if lock.held:
                    lock.release()

        if not report.interrupted:
            self._state = RunState.COMPLETED
        self._log_summary(report)
        return report

    def _process_target(self, target: BackupTarget, outcome: TargetOutcome) -> None:
        try:
            self._state = RunState.ARCHIVING
            outcome.stage = Stage.ARCHIVE
            try:
                archive = create_archive(target, self.config.dest)
            except TargetMissing as e:
                outcome.error = str(e)
                log.warning("%s", e)
                return
            except ArchiveError as e:
                outcome.error = str(e)
                log.error("%s", e)
                return
            outcome.archive = archive

            self._state = RunState.VERIFYING
            outcome.stage = Stage.VERIFY
            try:
                verify_archive(archive)
            except VerifyError as e:
                outcome.error = str(e)
                log.error("%s", e)
                moved = quarantine(archive)
                if moved is None:
                    outcome.archive = None
                else:
                    archive.path = moved
                return

            self._state = RunState.ROTATING
            outcome.stage = Stage.ROTATE
            rotation = rotate(target.name, self.config.dest, self.config.keep)
            outcome.rotation = rotation
            if rotation.errors:
                log.warning(
                    "Rotation for %s left %d old backup(s) behind",
                    target.name, len(rotation.errors),
                )
            outcome.success = True
        except Exception as e:
            outcome.success = False
            outcome.error = f"{outcome.stage.value} failed: {e}"
            log.exception("Unexpected error backing up %s during %s", target.path, outcome.stage.value)
        finally:
            self._state = RunState.RUNNING

    def _log_summary(self, report: RunReport) -> None:
        log.info("=== Backup job completed ===")
        log.info("Duration: %d seconds", int(report.duration_seconds))
        log.info("Success: %d, Failed: %d", report.succeeded, report.failed)
        for outcome in report.outcomes:
            if not outcome.success:
                log.info("  failed: %s (%s) %s", outcome.target.path, outcome.stage.value, outcome.error)
