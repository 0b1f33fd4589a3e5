# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tests for age-based retention cleanup.
"""

from datetime import timedelta
from pathlib import Path

import pytest

from dvm.archive.naming import derive_archive_name
from dvm.archive.retention import cleanup_old_archives
from dvm.exceptions import StoreError

from tests.conftest import FIXED_NOW, write_archive


def _archive_aged(store: Path, volume: str, age: timedelta) -> Path:
    return write_archive(store, derive_archive_name(volume, "db01", FIXED_NOW - age))


def test_only_archives_past_the_threshold_are_deleted(temp_dir: Path):
    old = _archive_aged(temp_dir, "pgdata", timedelta(days=31))
    boundary = _archive_aged(temp_dir, "appdata", timedelta(days=30))
    fresh = _archive_aged(temp_dir, "cache", timedelta(days=29))

    deleted = cleanup_old_archives(temp_dir, 30, FIXED_NOW)

    assert deleted == 1
    assert not old.exists()
    assert boundary.exists()
    assert fresh.exists()


def test_one_second_past_threshold_is_deleted(temp_dir: Path):
    path = _archive_aged(temp_dir, "pgdata", timedelta(days=30, seconds=1))
    assert cleanup_old_archives(temp_dir, 30, FIXED_NOW) == 1
    assert not path.exists()


def test_foreign_and_partial_files_are_never_touched(temp_dir: Path):
    notes = temp_dir / "notes.txt"
    notes.write_text("keep me")
    partial = temp_dir / (derive_archive_name("pgdata", "db01", FIXED_NOW - timedelta(days=90)) + ".part")
    partial.write_bytes(b"partial")

    assert cleanup_old_archives(temp_dir, 0, FIXED_NOW) == 0
    assert notes.exists()
    assert partial.exists()


def test_zero_retention_deletes_everything_older_than_now(temp_dir: Path):
    _archive_aged(temp_dir, "a", timedelta(seconds=1))
    _archive_aged(temp_dir, "b", timedelta(days=3))
    current = _archive_aged(temp_dir, "c", timedelta(0))

    assert cleanup_old_archives(temp_dir, 0, FIXED_NOW) == 2
    assert current.exists()


def test_empty_store(temp_dir: Path):
    assert cleanup_old_archives(temp_dir, 30, FIXED_NOW) == 0


def test_missing_store(temp_dir: Path):
    with pytest.raises(StoreError):
        cleanup_old_archives(temp_dir / "missing", 30, FIXED_NOW)


def test_delete_failure_does_not_stop_cleanup(temp_dir: Path, monkeypatch):
    stuck = _archive_aged(temp_dir, "a", timedelta(days=40))
    other = _archive_aged(temp_dir, "b", timedelta(days=40))

    real_unlink = Path.unlink

    def unlink(self, *args, **kwargs):
        if self == stuck:
            raise PermissionError(13, "Permission denied", str(self))
        return real_unlink(self, *args, **kwargs)

    monkeypatch.setattr(Path, "unlink", unlink)

    assert cleanup_old_archives(temp_dir, 30, FIXED_NOW) == 1
    assert stuck.exists()
    assert not other.exists()


def test_cleanup_does_not_read_archive_contents(temp_dir: Path, monkeypatch):
    old = _archive_aged(temp_dir, "pgdata", timedelta(days=40))
    fresh = _archive_aged(temp_dir, "appdata", timedelta(days=1))

    def unexpected(path):
        raise AssertionError(f"read trailer of {path}")

    monkeypatch.setattr("dvm.archive.naming.read_uncompressed_size", unexpected)

    assert cleanup_old_archives(temp_dir, 30, FIXED_NOW) == 1
    assert not old.exists()
    assert fresh.exists()
