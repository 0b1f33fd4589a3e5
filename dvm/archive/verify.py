# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DVM Integrity Verifier - Structural checks on completed archives.

An archive is valid when its full tar table of contents can be listed
and the gzip stream decodes to its end with a matching CRC and length.
Nothing is extracted and the archive is opened read-only.
"""

import asyncio
import tarfile
import zlib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import structlog

logger = structlog.get_logger()

_DRAIN_CHUNK = 1024 * 1024


class ArchiveStatus(str, Enum):
    """Outcome of an integrity check."""

    VALID = "valid"
    CORRUPT = "corrupt"


@dataclass
class VerificationResult:
    """Result of verifying one archive."""

    path: Path
    status: ArchiveStatus
    member_count: int = 0
    error: str | None = None

    @property
    def valid(self) -> bool:
        return self.status == ArchiveStatus.VALID


def _list_members(path: Path) -> int:
    """List every member header, then drain the gzip stream to its trailer."""
    with tarfile.open(path, "r:gz") as tar:
        count = sum(1 for _ in tar)
        fileobj = tar.fileobj
        while fileobj.read(_DRAIN_CHUNK):
            pass
    return count


def verify_archive_sync(path: Path) -> VerificationResult:
    """Blocking variant of verify_archive() for use outside the event loop."""
    try:
        count = _list_members(path)
    except (tarfile.TarError, EOFError, OSError, zlib.error) as e:
        logger.error("backup_corrupted", path=str(path), error=str(e) or type(e).__name__)
        return VerificationResult(
            path=path,
            status=ArchiveStatus.CORRUPT,
            error=str(e) or type(e).__name__,
        )

    logger.info("backup_verified", path=str(path), members=count)
    return VerificationResult(path=path, status=ArchiveStatus.VALID, member_count=count)


async def verify_archive(path: Path) -> VerificationResult:
    """
    Verify the integrity of an archive without extracting it.

    Any read or format error classifies the archive as corrupt; a missing
    or zero-length file is corrupt too. Exactly one log entry is written
    per verification.

    Args:
        path: Path to a ``.tar.gz`` archive

    Returns:
        VerificationResult with VALID or CORRUPT status
    """
    return await asyncio.to_thread(verify_archive_sync, path)
