"""Archive integrity check, equivalent to ``tar tzf`` over the whole stream."""

from __future__ import annotations

import logging
import tarfile
import zlib
from pathlib import Path

from tarvault.core.errors import ArchiveCorrupt, ArchiveNotFound
from tarvault.core.models import Archive

log = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


def verify_archive(archive: Archive | Path) -> int:
    """Read every member of a gzip tarball without extracting it.

    Member data is read as well as headers, so truncation or corruption
    anywhere in the compressed stream is detected. The archive is never
    modified.

    Returns:
        Number of members in the archive.

    Raises:
        ArchiveNotFound: the path does not exist or is not a file.
        ArchiveCorrupt: the archive could not be read to the end.
    """
    path = archive.path if isinstance(archive, Archive) else Path(archive)

    log.info("Verifying backup: %s", path)
    if not path.is_file():
        raise ArchiveNotFound(f"Backup file not found: {path}")

    members = 0
    try:
        with tarfile.open(path, "r:gz") as tar:
            for member in tar:
                members += 1
                if not member.isfile():
                    continue
                fileobj = tar.extractfile(member)
                if fileobj is None:
                    continue
                with fileobj:
                    while fileobj.read(_CHUNK_SIZE):
                        pass
            # Drain the rest of the gzip stream so the trailer CRC is checked
            while tar.fileobj.read(_CHUNK_SIZE):
                pass
    except (tarfile.TarError, OSError, EOFError, zlib.error) as e:
        raise ArchiveCorrupt(f"Backup verification failed for {path}: {e}") from e

    log.info("Backup verified successfully: %s", path)
    return members
