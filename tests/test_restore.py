# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tests for restoring archives into volumes.
"""

import pytest

from dvm.archive.pipeline import read_uncompressed_size
from dvm.backup.manager import run_backup
from dvm.backup.restore import RestoreStage, RestoreStatus, restore_archive
from dvm.exceptions import StoreError, ValidationError

from tests.conftest import FIXED_NOW, write_archive


@pytest.mark.asyncio
async def test_backup_then_restore_into_another_volume(test_config, engine_state, runtime):
    runtime.volumes["restored"] = {"stale.txt": b"old"}
    report = await run_backup(test_config, engine_state, ["pgdata"], now=lambda: FIXED_NOW)
    archive = report.results[0].archive_path

    result = await restore_archive(test_config, engine_state, archive, "restored")

    assert result.status == RestoreStatus.SUCCESS
    assert result.local_path == archive
    assert result.bytes_written == read_uncompressed_size(archive)
    for name, data in runtime.volumes["pgdata"].items():
        assert runtime.volumes["restored"][name] == data
    # Restore overwrites in place; it does not empty the volume first
    assert runtime.volumes["restored"]["stale.txt"] == b"old"


@pytest.mark.asyncio
async def test_restore_progress_is_sized_from_gzip_trailer(
    test_config, engine_state, progress
):
    archive = write_archive(test_config.backup_dir, "appdata-h-20260101000000.tar.gz")

    await restore_archive(test_config, engine_state, archive, "appdata")

    reporter = progress.reporters[-1]
    assert reporter.total == read_uncompressed_size(archive)
    assert reporter.done == reporter.total
    assert reporter.closed


@pytest.mark.asyncio
async def test_restore_asks_once_and_honours_decline(test_config, engine_state, runtime, operator):
    operator.answer = False
    archive = write_archive(test_config.backup_dir, "appdata-h-20260101000000.tar.gz")
    before = dict(runtime.volumes["appdata"])

    result = await restore_archive(test_config, engine_state, archive, "appdata")

    assert result.status == RestoreStatus.CANCELLED
    assert len(operator.prompts) == 1
    assert "overwrite" in operator.prompts[0]
    assert runtime.writes == []
    assert runtime.volumes["appdata"] == before


@pytest.mark.asyncio
async def test_restore_missing_archive(test_config, engine_state, runtime):
    with pytest.raises(StoreError):
        await restore_archive(
            test_config, engine_state, test_config.backup_dir / "x-h-20260101000000.tar.gz", "appdata"
        )
    assert runtime.writes == []


@pytest.mark.asyncio
async def test_restore_into_unknown_volume(test_config, engine_state, operator):
    archive = write_archive(test_config.backup_dir, "appdata-h-20260101000000.tar.gz")

    with pytest.raises(ValidationError):
        await restore_archive(test_config, engine_state, archive, "nope")
    assert operator.prompts == []


@pytest.mark.asyncio
async def test_restore_truncated_archive_fails(test_config, engine_state):
    archive = write_archive(
        test_config.backup_dir,
        "appdata-h-20260101000000.tar.gz",
        {"big.bin": bytes(range(256)) * 400},
    )
    data = archive.read_bytes()
    archive.write_bytes(data[: len(data) - 20])

    result = await restore_archive(test_config, engine_state, archive, "appdata")

    assert result.status == RestoreStatus.FAILED
    assert result.stage == RestoreStage.RESTORE
    assert result.error


@pytest.mark.asyncio
async def test_restore_runtime_failure(test_config, engine_state, runtime):
    runtime.write_failures.add("appdata")
    archive = write_archive(test_config.backup_dir, "appdata-h-20260101000000.tar.gz")

    result = await restore_archive(test_config, engine_state, archive, "appdata")

    assert result.status == RestoreStatus.FAILED
    assert "helper container" in result.error
