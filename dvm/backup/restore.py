# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DVM Restore Manager - Stream an archive back into a volume.

Restoring overwrites files in the target volume in place. There is no
staging copy, so a restore that fails midway can leave the volume
partially overwritten; the failure is always reported and logged.
"""

import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import structlog

from dvm.archive.naming import validate_volume_name
from dvm.archive.pipeline import decompress, read_file_chunks, read_uncompressed_size
from dvm.config import DVMConfig
from dvm.core import EngineState
from dvm.exceptions import StoreError, StreamError, ValidationError
from dvm.progress import track

logger = structlog.get_logger()


class RestoreStatus(str, Enum):
    """Outcome of a restore."""

    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


class RestoreStage(str, Enum):
    """Stage at which a (remote) restore stopped."""

    FETCH = "fetch"
    RESTORE = "restore"


@dataclass
class RestoreResult:
    """Result of a restore or remote restore."""

    archive: str
    volume: str
    status: RestoreStatus
    stage: RestoreStage | None = None
    error: str | None = None
    local_path: Path | None = None
    bytes_written: int = 0
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status == RestoreStatus.SUCCESS


async def ensure_volume_exists(state: EngineState, volume: str) -> None:
    """
    Raises:
        ValidationError: If the runtime has no volume with this name
    """
    validate_volume_name(volume)
    if volume not in await state["runtime"].list_volumes():
        raise ValidationError(
            f"Volume not found: {volume}",
            details={"volume": volume},
        )


async def restore_archive(
    config: DVMConfig,
    state: EngineState,
    archive_path: Path,
    volume: str,
) -> RestoreResult:
    """
    Restore a local archive into a volume after operator confirmation.

    Args:
        config: DVM configuration
        state: Engine state
        archive_path: Archive to restore
        volume: Target volume, whose existing contents are overwritten

    Returns:
        RestoreResult (SUCCESS, FAILED or CANCELLED)

    Raises:
        StoreError: If the archive file does not exist
        ValidationError: If the target volume does not exist
    """
    if not archive_path.is_file():
        raise StoreError(
            f"Archive not found: {archive_path}",
            details={"archive": str(archive_path)},
        )
    await ensure_volume_exists(state, volume)

    logger.info("restore_process_started", archive=archive_path.name, volume=volume)

    prompt = (
        f"Restore backup {archive_path.name} to volume {volume}? "
        "This will overwrite existing data!"
    )
    if not await state["operator"].confirm(prompt):
        logger.info("restore_cancelled", archive=archive_path.name, volume=volume)
        return RestoreResult(
            archive=archive_path.name,
            volume=volume,
            status=RestoreStatus.CANCELLED,
            local_path=archive_path,
        )

    return await apply_archive(config, state, archive_path, volume)


async def apply_archive(
    config: DVMConfig,
    state: EngineState,
    archive_path: Path,
    volume: str,
) -> RestoreResult:
    """
    Stream an archive into a volume without asking for confirmation.

    Progress is sized from the gzip trailer rather than by re-measuring.

    Returns:
        RestoreResult with SUCCESS or FAILED (stage RESTORE)
    """
    start = time.monotonic()
    total = read_uncompressed_size(archive_path)
    progress = state["progress"](f"Restoring {archive_path.name}", total)

    written = 0

    async def _count(stream):
        nonlocal written
        async for chunk in stream:
            written += len(chunk)
            yield chunk

    logger.info("restore_started", archive=archive_path.name, volume=volume)

    try:
        stream = _count(
            track(decompress(read_file_chunks(archive_path, config.chunk_size)), progress)
        )
        await state["runtime"].write_volume_tree(volume, stream)
    except (StreamError, OSError) as e:
        logger.error(
            "restore_failed",
            archive=archive_path.name,
            volume=volume,
            error=str(e),
        )
        return RestoreResult(
            archive=archive_path.name,
            volume=volume,
            status=RestoreStatus.FAILED,
            stage=RestoreStage.RESTORE,
            error=str(e),
            local_path=archive_path,
            bytes_written=written,
            duration_seconds=time.monotonic() - start,
        )
    finally:
        progress.close()

    logger.info(
        "restore_completed",
        archive=archive_path.name,
        volume=volume,
        bytes_written=written,
    )
    return RestoreResult(
        archive=archive_path.name,
        volume=volume,
        status=RestoreStatus.SUCCESS,
        local_path=archive_path,
        bytes_written=written,
        duration_seconds=time.monotonic() - start,
    )
