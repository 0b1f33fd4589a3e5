# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DVM Remote Restore - Fetch a remote archive, then restore it locally.

Two strictly sequential phases behind a single confirmation:

    fetch    copy the remote archive into the local store
    restore  stream the fetched copy into the target volume

The restore phase only runs after a successful fetch. If it fails, the
fetched copy stays in the local store so the restore can be retried.
"""

import time

import structlog

from dvm.backup.restore import (
    RestoreResult,
    RestoreStage,
    RestoreStatus,
    apply_archive,
    ensure_volume_exists,
)
from dvm.config import DVMConfig
from dvm.core import EngineState
from dvm.transfer.remote import RemoteEndpoint, fetch_archive

logger = structlog.get_logger()


async def remote_restore(
    config: DVMConfig,
    state: EngineState,
    endpoint: RemoteEndpoint,
    remote_name: str,
    volume: str,
) -> RestoreResult:
    """
    Restore a remote archive into a local volume.

    Args:
        config: DVM configuration
        state: Engine state
        endpoint: Host holding the archive
        remote_name: Archive file name in the remote store
        volume: Local target volume (existing contents are overwritten)

    Returns:
        RestoreResult; on failure ``stage`` is FETCH or RESTORE

    Raises:
        ValidationError: If the target volume does not exist
    """
    start = time.monotonic()
    await ensure_volume_exists(state, volume)

    logger.info(
        "remote_restore_started",
        archive=remote_name,
        endpoint=str(endpoint),
        volume=volume,
    )

    prompt = (
        f"Restore remote backup {remote_name} from {endpoint} to local volume {volume}? "
        "This will overwrite existing data!"
    )
    if not await state["operator"].confirm(prompt):
        logger.info("remote_restore_cancelled", archive=remote_name, volume=volume)
        return RestoreResult(
            archive=remote_name,
            volume=volume,
            status=RestoreStatus.CANCELLED,
        )

    fetched = await fetch_archive(config, state, endpoint, remote_name)
    if not fetched.succeeded or fetched.local_path is None:
        logger.error(
            "remote_restore_failed",
            stage=RestoreStage.FETCH.value,
            archive=remote_name,
            error=fetched.error,
        )
        return RestoreResult(
            archive=remote_name,
            volume=volume,
            status=RestoreStatus.FAILED,
            stage=RestoreStage.FETCH,
            error=f"{fetched.stage.value if fetched.stage else 'fetch'}: {fetched.error}",
            duration_seconds=time.monotonic() - start,
        )

    logger.info("remote_restore_fetched", path=str(fetched.local_path))

    restored = await apply_archive(config, state, fetched.local_path, volume)
    restored.duration_seconds = time.monotonic() - start
    if not restored.succeeded:
        logger.error(
            "remote_restore_failed",
            stage=RestoreStage.RESTORE.value,
            archive=remote_name,
            retained=str(fetched.local_path),
            error=restored.error,
        )
        return restored

    logger.info("remote_restore_completed", archive=remote_name, volume=volume)
    return restored
