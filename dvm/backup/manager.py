# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DVM Backup Manager - Concurrent per-volume backup jobs.

run_backup() fans out one job per selected volume and joins them all
before reporting. Each job streams the volume's tar tree through gzip
into ``<archive>.part``, renames it into place, then verifies it. A
failing job never aborts its siblings; its outcome is recorded in its
JobResult instead.
"""

import asyncio
import contextlib
import time
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, List

import aiofiles
import structlog
from ulid import ULID

from dvm.archive.naming import derive_archive_path, partial_path, validate_volume_name
from dvm.archive.pipeline import compress
from dvm.archive.retention import cleanup_old_archives
from dvm.archive.verify import verify_archive
from dvm.config import DVMConfig
from dvm.core import EngineState
from dvm.exceptions import StoreError, StreamError, ValidationError
from dvm.progress import track

logger = structlog.get_logger()


class JobStatus(str, Enum):
    """Outcome of one volume's backup job."""

    SUCCESS = "success"
    BACKUP_FAILED = "backup_failed"
    VERIFY_FAILED = "verify_failed"


@dataclass
class JobResult:
    """Result of backing up one volume."""

    volume: str
    archive_path: Path | None
    status: JobStatus
    error: str | None = None
    size_bytes: int | None = None
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status == JobStatus.SUCCESS


@dataclass
class BackupReport:
    """Aggregate result of one backup invocation."""

    operation_id: str
    results: List[JobResult]
    pruned_count: int = 0
    duration_seconds: float = 0.0
    errors: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> List[JobResult]:
        return [r for r in self.results if r.succeeded]

    @property
    def failed(self) -> List[JobResult]:
        return [r for r in self.results if not r.succeeded]

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    def result_for(self, volume: str) -> JobResult:
        for result in self.results:
            if result.volume == volume:
                return result
        raise KeyError(volume)


def _utcnow() -> datetime:
    return datetime.now(UTC)


async def run_backup(
    config: DVMConfig,
    state: EngineState,
    volumes: Iterable[str],
    now: Callable[[], datetime] = _utcnow,
) -> BackupReport:
    """
    Back up the selected volumes concurrently.

    Steps:
    1. Validate the selection against the runtime's volumes
    2. Prune archives past the retention period (best-effort)
    3. Launch one job per volume and wait for all of them

    Args:
        config: DVM configuration
        state: Engine state
        volumes: Selected volume names
        now: Clock used for archive timestamps and retention

    Returns:
        BackupReport with one JobResult per volume, ordered by volume name

    Raises:
        ValidationError: If the selection is empty or names unknown volumes
        StoreError: If the archive store directory does not exist
    """
    operation_id = str(ULID())
    start = time.monotonic()

    with structlog.contextvars.bound_contextvars(operation_id=operation_id):
        selected = sorted({validate_volume_name(v) for v in volumes})
        if not selected:
            raise ValidationError("No volumes selected")

        if not config.backup_dir.is_dir():
            raise StoreError(
                f"Archive store not found: {config.backup_dir}",
                details={"store": str(config.backup_dir)},
            )

        known = set(await state["runtime"].list_volumes())
        unknown = [v for v in selected if v not in known]
        if unknown:
            raise ValidationError(
                f"Unknown volumes: {', '.join(unknown)}",
                details={"unknown": unknown},
            )

        logger.info("backup_process_started", volumes=",".join(selected))

        errors: List[str] = []
        pruned = 0
        try:
            pruned = await asyncio.to_thread(
                cleanup_old_archives, config.backup_dir, config.retention_days, now()
            )
        except Exception as e:
            # Retention is housekeeping; it never blocks a backup
            errors.append(f"retention: {e}")
            logger.warning("retention_cleanup_failed", error=str(e))

        semaphore = (
            asyncio.Semaphore(config.max_concurrent_jobs)
            if config.max_concurrent_jobs
            else None
        )

        results = await asyncio.gather(
            *(_run_job(config, state, volume, now, semaphore) for volume in selected)
        )

        report = BackupReport(
            operation_id=operation_id,
            results=sorted(results, key=lambda r: r.volume),
            pruned_count=pruned,
            duration_seconds=time.monotonic() - start,
            errors=errors + [f"{r.volume}: {r.error}" for r in results if r.error],
        )

        logger.info(
            "backup_process_completed",
            succeeded=len(report.succeeded),
            failed=len(report.failed),
            pruned=pruned,
            duration=round(report.duration_seconds, 3),
        )
        return report


async def _run_job(
    config: DVMConfig,
    state: EngineState,
    volume: str,
    now: Callable[[], datetime],
    semaphore: asyncio.Semaphore | None,
) -> JobResult:
    # Each gathered coroutine runs in its own task, so this binding is job-local
    structlog.contextvars.bind_contextvars(volume=volume)
    async with semaphore or contextlib.nullcontext():
        try:
            return await _backup_volume(config, state, volume, now)
        except Exception as e:
            logger.exception("backup_job_crashed", error=str(e))
            return JobResult(
                volume=volume,
                archive_path=None,
                status=JobStatus.BACKUP_FAILED,
                error=str(e) or type(e).__name__,
            )


async def _measure_size(state: EngineState, volume: str) -> int | None:
    """Size probe; failure or zero falls back to an un-sized progress indicator."""
    try:
        size = await state["runtime"].measure_volume_size(volume)
    except Exception as e:
        logger.warning("volume_size_probe_failed", error=str(e))
        return None
    return size or None


def _discard(temp_path: Path) -> None:
    with contextlib.suppress(OSError):
        temp_path.unlink(missing_ok=True)


async def _backup_volume(
    config: DVMConfig,
    state: EngineState,
    volume: str,
    now: Callable[[], datetime],
) -> JobResult:
    start = time.monotonic()
    archive_path = derive_archive_path(config.backup_dir, volume, config.host_label, now())
    temp_path = partial_path(archive_path)

    logger.info("backup_started", path=str(archive_path))

    size = await _measure_size(state, volume)
    progress = state["progress"](f"Backing up {volume}", size)

    try:
        stream = track(state["runtime"].read_volume_tree(volume), progress)
        async with aiofiles.open(temp_path, "wb") as f:
            async for chunk in compress(stream):
                await f.write(chunk)
        temp_path.replace(archive_path)
    except (StreamError, OSError) as e:
        _discard(temp_path)
        logger.error("backup_failed", path=str(archive_path), error=str(e))
        return JobResult(
            volume=volume,
            archive_path=None,
            status=JobStatus.BACKUP_FAILED,
            error=str(e),
            size_bytes=size,
            duration_seconds=time.monotonic() - start,
        )
    except Exception:
        # CancelledError passes through, so an interrupted job keeps its partial file
        _discard(temp_path)
        raise
    finally:
        progress.close()

    verification = await verify_archive(archive_path)
    if not verification.valid:
        # Corrupt archives are kept for inspection
        return JobResult(
            volume=volume,
            archive_path=archive_path,
            status=JobStatus.VERIFY_FAILED,
            error=verification.error,
            size_bytes=size,
            duration_seconds=time.monotonic() - start,
        )

    logger.info("backup_completed", path=str(archive_path), bytes_in=size)
    return JobResult(
        volume=volume,
        archive_path=archive_path,
        status=JobStatus.SUCCESS,
        size_bytes=size,
        duration_seconds=time.monotonic() - start,
    )
