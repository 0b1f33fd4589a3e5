# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DVM Retention Manager - Age-based cleanup of the archive store.

Age is measured from the timestamp embedded in each archive name, not
from file metadata, so copies fetched from another host keep their age.
Cleanup is best-effort: a file that cannot be deleted is logged and
skipped, and evaluation continues with the next archive.
"""

from datetime import datetime, timedelta, UTC
from pathlib import Path

import structlog

from dvm.archive.naming import list_archives

logger = structlog.get_logger()


def cleanup_old_archives(
    store: Path,
    retention_days: int,
    now: datetime | None = None,
) -> int:
    """
    Delete archives older than retention_days.

    An archive is eligible when ``now - timestamp > retention_days``;
    one exactly at the threshold is kept.

    Args:
        store: Archive store directory
        retention_days: Maximum age in days
        now: Reference instant (default: current UTC time)

    Returns:
        Number of archives deleted

    Raises:
        StoreError: If the store directory itself cannot be listed
    """
    now = now or datetime.now(UTC)
    cutoff = now - timedelta(days=retention_days)

    logger.info("retention_cleanup_started", store=str(store), retention_days=retention_days)

    deleted = 0
    failed = 0

    for archive in list_archives(store, with_size=False):
        if archive.timestamp >= cutoff:
            continue
        try:
            archive.path.unlink()
        except OSError as e:
            failed += 1
            logger.warning(
                "retention_delete_failed",
                path=str(archive.path),
                error=str(e),
            )
            continue

        deleted += 1
        logger.info(
            "archive_pruned",
            path=str(archive.path),
            age_days=int(archive.age_days(now)),
        )

    logger.info("retention_cleanup_completed", deleted=deleted, failed=failed)
    return deleted
