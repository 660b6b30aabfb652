"""Exception hierarchy for tarvault."""

from __future__ import annotations


class TarvaultError(Exception):
    """Base class for all tarvault errors."""


class ConfigError(TarvaultError):
    """Invalid or unusable configuration."""


# --- Guard ---


class LockError(TarvaultError):
    """The run lock could not be created or read."""


class AlreadyRunning(LockError):
    """Another live process holds the run lock."""

    def __init__(self, pid: int) -> None:
        super().__init__(f"Backup already running (PID: {pid})")
        self.pid = pid


# --- Target-scoped ---


class ArchiveError(TarvaultError):
    """Archive could not be produced for a target."""


class TargetMissing(ArchiveError):
    """Target path does not exist or is not a directory."""


class ArchiveCreationFailed(ArchiveError):
    """Writing the archive failed (I/O, permissions, disk full, ...)."""


class VerifyError(TarvaultError):
    """Archive failed verification."""


class ArchiveNotFound(VerifyError):
    pass


class ArchiveCorrupt(VerifyError):
    pass
