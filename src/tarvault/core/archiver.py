"""Archive creation: one gzip tarball per target directory."""

from __future__ import annotations

import logging
import os
import tarfile
from datetime import datetime
from pathlib import Path

from tarvault.core.errors import ArchiveCreationFailed, TargetMissing
from tarvault.core.fileutil import ensure_dir, human_size, remove_quietly
from tarvault.core.models import ARCHIVE_SUFFIX, TIMESTAMP_FORMAT, Archive, BackupTarget
from tarvault.core.rotation import CORRUPT_SUFFIX, archive_pattern

log = logging.getLogger(__name__)

PARTIAL_SUFFIX = ".partial"


def archive_filename(target_name: str, when: datetime, seq: int = 0) -> str:
    """Build ``{name}_{YYYYMMDD_HHMMSS}.tar.gz``; ``seq`` > 0 adds ``_{seq}``."""
    stamp = when.strftime(TIMESTAMP_FORMAT)
    if seq:
        return f"{target_name}_{stamp}_{seq}{ARCHIVE_SUFFIX}"
    return f"{target_name}_{stamp}{ARCHIVE_SUFFIX}"


def _free_path(dest_root: Path, target_name: str, when: datetime) -> Path:
    """First archive path for this second that is not taken yet."""
    seq = 0
    while True:
        candidate = dest_root / archive_filename(target_name, when, seq)
        if not candidate.exists():
            if seq:
                log.warning(
                    "Archive name for %s already taken this second, using %s",
                    target_name, candidate.name,
                )
            return candidate
        seq += 1


def _exclude_dest(target: BackupTarget, dest_root: Path):
    """Tar filter that keeps our own output out of the target's archive.

    When ``dest_root`` lives inside the target the whole subtree is skipped.
    When it is the target itself, only this target's archives (and their
    partial or quarantined leftovers) at the top level are skipped.
    """
    try:
        rel = dest_root.resolve().relative_to(target.path.resolve())
    except ValueError:
        return None

    if rel == Path("."):
        pattern = archive_pattern(target.name)
        prefix = f"{target.name}/"

        def _filter_own(info: tarfile.TarInfo) -> tarfile.TarInfo | None:
            if not info.name.startswith(prefix):
                return info
            entry = info.name[len(prefix):]
            if "/" in entry:
                return info
            if entry.endswith((PARTIAL_SUFFIX, CORRUPT_SUFFIX)):
                entry = entry[1:].rsplit(".", 1)[0] if entry.startswith(".") else entry
            if pattern.match(entry):
                return None
            return info

        return _filter_own

    skipped = f"{target.name}/{rel.as_posix()}"

    def _filter(info: tarfile.TarInfo) -> tarfile.TarInfo | None:
        if info.name == skipped or info.name.startswith(skipped + "/"):
            return None
        return info

    return _filter


def create_archive(
    target: BackupTarget,
    dest_root: Path,
    now: datetime | None = None,
) -> Archive:
    """Create a compressed archive of ``target`` under ``dest_root``.

    The directory is stored under its base name (what ``tar -C parent base``
    produces), so extracting recreates ``base/...`` with relative paths.
    The tarball is written to a hidden ``.partial`` file first and renamed
    into place once complete.

    Raises:
        TargetMissing: target is not an existing directory.
        ArchiveCreationFailed: anything went wrong while writing.
    """
    if not target.path.is_dir():
        raise TargetMissing(f"Directory {target.path} doesn't exist, skipping")

    when = (now or datetime.now()).replace(microsecond=0)

    try:
        ensure_dir(dest_root)
    except OSError as e:
        raise ArchiveCreationFailed(f"Cannot create backup directory {dest_root}: {e}") from e

    final_path = _free_path(dest_root, target.name, when)
    partial_path = dest_root / f".{final_path.name}{PARTIAL_SUFFIX}"

    log.info("Starting backup of %s", target.path)
    try:
        with tarfile.open(partial_path, "w:gz") as tar:
            tar.add(
                str(target.path),
                arcname=target.name,
                recursive=True,
                filter=_exclude_dest(target, dest_root),
            )
        os.replace(partial_path, final_path)
    except Exception as e:
        remove_quietly(partial_path)
        raise ArchiveCreationFailed(f"Backup of {target.path} failed: {e}") from e
    except BaseException:
        # Interrupted: no half-written tarball may survive
        remove_quietly(partial_path)
        raise

    size = final_path.stat().st_size
    log.info("Backup of %s completed: %s (%s)", target.path, final_path, human_size(size))
    return Archive(path=final_path, target_name=target.name, timestamp=when, size=size)
