"""Core data models for tarvault."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

ARCHIVE_SUFFIX = ".tar.gz"
TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


# --- Enums ---


class Stage(str, Enum):
    """Step of the per-target pipeline."""

    ARCHIVE = "archive"
    VERIFY = "verify"
    ROTATE = "rotate"


class RunState(str, Enum):
    IDLE = "idle"
    LOCKING = "locking"
    RUNNING = "running"
    ARCHIVING = "archiving"
    VERIFYING = "verifying"
    ROTATING = "rotating"
    COMPLETED = "completed"
    INTERRUPTED = "interrupted"
    FAILED = "failed"


# --- Models ---


@dataclass(frozen=True)
class BackupTarget:
    """A directory designated for backup."""

    path: Path
    name: str

    @classmethod
    def from_path(cls, raw: str) -> BackupTarget:
        """Build a target from a configured path, ignoring trailing slashes."""
        cleaned = raw.rstrip("/") or raw
        return cls(path=Path(cleaned).expanduser(), name=os.path.basename(cleaned))

    def __str__(self) -> str:
        return str(self.path)


@dataclass
class Archive:
    """A compressed snapshot of a target on disk."""

    path: Path
    target_name: str
    timestamp: datetime
    size: int

    @property
    def filename(self) -> str:
        return self.path.name


@dataclass
class RotationResult:
    """Outcome of trimming one target's archives."""

    target_name: str
    kept: list[Path] = field(default_factory=list)
    deleted: list[Path] = field(default_factory=list)
    errors: list[tuple[Path, str]] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.errors


@dataclass
class TargetOutcome:
    """What happened to a single target during a run."""

    target: BackupTarget
    stage: Stage = Stage.ARCHIVE
    success: bool = False
    error: str = ""
    archive: Archive | None = None
    rotation: RotationResult | None = None


@dataclass
class RunReport:
    """Aggregate result of one invocation of the backup job."""

    started: datetime = field(default_factory=datetime.now)
    finished: datetime | None = None
    outcomes: list[TargetOutcome] = field(default_factory=list)
    interrupted: bool = False

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)

    @property
    def duration_seconds(self) -> float:
        end = self.finished or datetime.now()
        return (end - self.started).total_seconds()

    @property
    def ok(self) -> bool:
        return not self.interrupted and self.failed == 0
