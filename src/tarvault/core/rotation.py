"""Retention rotation: keep the newest N archives per target."""

from __future__ import annotations

import logging
import os
import re
from datetime import datetime
from pathlib import Path

from tarvault.core.fileutil import remove_quietly
from tarvault.core.models import ARCHIVE_SUFFIX, TIMESTAMP_FORMAT, Archive, RotationResult

log = logging.getLogger(__name__)

CORRUPT_SUFFIX = ".corrupt"


def archive_pattern(target_name: str) -> re.Pattern[str]:
    """Regex matching this target's archive names and nothing else.

    ``etc`` matches ``etc_20240101_120000.tar.gz`` and
    ``etc_20240101_120000_1.tar.gz`` but not ``etcbackup_...`` or
    ``etc_old_...``.
    """
    return re.compile(
        rf"^{re.escape(target_name)}_(?P<stamp>\d{{8}}_\d{{6}})(?:_\d+)?{re.escape(ARCHIVE_SUFFIX)}$"
    )


def list_archives(target_name: str, dest_root: Path) -> list[Archive]:
    """Archives for ``target_name`` directly under ``dest_root``, newest first.

    Ordering is by modification time, with the file name as tie-breaker.
    """
    if not dest_root.is_dir():
        return []

    pattern = archive_pattern(target_name)
    found: list[tuple[float, Archive]] = []
    for entry in dest_root.iterdir():
        match = pattern.match(entry.name)
        if not match:
            continue
        try:
            if not entry.is_file() or entry.is_symlink():
                continue
            stat = entry.stat()
        except OSError as e:
            log.warning("Cannot stat %s: %s", entry, e)
            continue
        try:
            stamp = datetime.strptime(match.group("stamp"), TIMESTAMP_FORMAT)
        except ValueError:
            stamp = datetime.fromtimestamp(stat.st_mtime)
        found.append((
            stat.st_mtime,
            Archive(path=entry, target_name=target_name, timestamp=stamp, size=stat.st_size),
        ))

    found.sort(key=lambda item: (item[0], item[1].path.name), reverse=True)
    return [archive for _mtime, archive in found]


def rotate(
    target_name: str,
    dest_root: Path,
    keep: int,
    dry_run: bool = False,
) -> RotationResult:
    """Delete all but the ``keep`` most recently modified archives of a target.

    Deletion failures are logged and collected; the remaining candidates
    are still processed.

    Raises:
        ValueError: if keep is less than 1.
    """
    if keep < 1:
        raise ValueError(f"keep must be at least 1, got {keep}")

    archives = list_archives(target_name, dest_root)
    result = RotationResult(target_name=target_name)

    if len(archives) <= keep:
        result.kept = [a.path for a in archives]
        return result

    log.info(
        "Rotating backups for %s, keeping %d of %d backups",
        target_name, keep, len(archives),
    )

    result.kept = [a.path for a in archives[:keep]]
    for archive in archives[keep:]:
        if dry_run:
            log.info("Would remove old backup: %s", archive.path)
            result.deleted.append(archive.path)
            continue

        log.info("Removing old backup: %s", archive.path)
        try:
            archive.path.unlink()
        except FileNotFoundError:
            # Already gone, which is what we wanted
            result.deleted.append(archive.path)
        except OSError as e:
            log.warning("Failed to remove %s: %s", archive.path, e)
            result.errors.append((archive.path, str(e)))
        else:
            result.deleted.append(archive.path)

    return result


def quarantine(archive: Archive) -> Path | None:
    """Move a failed archive out of the retention set.

    The file is renamed to ``.{filename}.corrupt`` next to where it was, so
    it stays on disk for inspection but never counts toward ``keep``. If it
    cannot be renamed it is deleted instead.

    Returns:
        The new path, or None if the archive had to be removed.
    """
    target = archive.path.with_name(f".{archive.path.name}{CORRUPT_SUFFIX}")
    try:
        os.replace(archive.path, target)
    except OSError as e:
        log.warning("Cannot quarantine %s (%s), removing it", archive.path, e)
        if not remove_quietly(archive.path):
            log.error("Failed archive %s could not be removed", archive.path)
        return None
    log.warning("Moved unverified backup aside: %s", target)
    return target
