# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Archive naming and the local archive store.

Archives are flat files named ``{volume}-{host}-{timestamp}.tar.gz``.
Volume names may contain dashes; host labels are escaped so that the last
two dashes in a name always delimit host and timestamp, which keeps names
unique per (volume, host, timestamp) triple and makes them parseable.
"""

import re
from dataclasses import dataclass
from datetime import datetime, UTC
from pathlib import Path
from typing import Iterator

from dvm.archive.pipeline import read_uncompressed_size
from dvm.errors import explain_unsafe_name
from dvm.exceptions import StoreError, ValidationError

ARCHIVE_SUFFIX = ".tar.gz"
PARTIAL_SUFFIX = ".part"
TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"

_ARCHIVE_RE = re.compile(
    r"^(?P<volume>.+)-(?P<host>[^-]+)-(?P<timestamp>\d{14})" + re.escape(ARCHIVE_SUFFIX) + r"$"
)

_UNSAFE_CHARS = ("/", "\\", "\x00")

# '%' first so escapes are not re-escaped
_HOST_ESCAPES = (("%", "%25"), ("-", "%2D"), ("/", "%2F"), ("\\", "%5C"))


@dataclass(frozen=True)
class Archive:
    """A compressed tar snapshot of one volume at one instant."""

    volume: str
    host_label: str
    timestamp: datetime
    path: Path
    size_bytes: int | None = None

    @property
    def name(self) -> str:
        return self.path.name

    def age_days(self, now: datetime) -> float:
        return (now - self.timestamp).total_seconds() / 86400


def validate_volume_name(volume: str) -> str:
    """
    Reject volume names that cannot be embedded in a file name.

    Raises:
        ValidationError: If the name is empty, '.'/'..', or contains a separator
    """
    if not volume or volume in (".", "..") or any(ch in volume for ch in _UNSAFE_CHARS):
        raise ValidationError(explain_unsafe_name("volume name", volume))
    return volume


def escape_host_label(host_label: str) -> str:
    if not host_label or "\x00" in host_label:
        raise ValidationError(explain_unsafe_name("host label", host_label))
    escaped = host_label
    for raw, replacement in _HOST_ESCAPES:
        escaped = escaped.replace(raw, replacement)
    return escaped


def unescape_host_label(escaped: str) -> str:
    host = escaped
    for raw, replacement in reversed(_HOST_ESCAPES):
        host = host.replace(replacement, raw)
    return host


def format_timestamp(timestamp: datetime) -> str:
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(UTC)
    return timestamp.strftime(TIMESTAMP_FORMAT)


def derive_archive_name(volume: str, host_label: str, timestamp: datetime) -> str:
    """Build the file name for an archive (second resolution, UTC)."""
    return (
        f"{validate_volume_name(volume)}-{escape_host_label(host_label)}-"
        f"{format_timestamp(timestamp)}{ARCHIVE_SUFFIX}"
    )


def derive_archive_path(
    store: Path, volume: str, host_label: str, timestamp: datetime
) -> Path:
    """
    Deterministic archive location inside the store.

    Args:
        store: Archive store directory
        volume: Volume name (must not contain path separators)
        host_label: Originating host (escaped, never rejected for dashes)
        timestamp: Creation instant

    Returns:
        ``store / "{volume}-{host}-{timestamp}.tar.gz"``
    """
    return store / derive_archive_name(volume, host_label, timestamp)


def parse_archive_name(filename: str) -> tuple[str, str, datetime] | None:
    """
    Split an archive file name into (volume, host_label, timestamp).

    Returns None for names that do not follow the archive pattern.
    """
    match = _ARCHIVE_RE.match(filename)
    if not match:
        return None
    try:
        timestamp = datetime.strptime(match["timestamp"], TIMESTAMP_FORMAT).replace(tzinfo=UTC)
    except ValueError:
        return None
    return match["volume"], unescape_host_label(match["host"]), timestamp


def archive_from_path(path: Path, with_size: bool = True) -> Archive | None:
    """
    Build an Archive for a file in the store, or None if the name does not match.

    with_size=False skips opening the file for its gzip trailer.
    """
    parsed = parse_archive_name(path.name)
    if parsed is None:
        return None
    volume, host_label, timestamp = parsed
    return Archive(
        volume=volume,
        host_label=host_label,
        timestamp=timestamp,
        path=path,
        size_bytes=read_uncompressed_size(path) if with_size else None,
    )


def _iter_archives(store: Path, with_size: bool) -> Iterator[Archive]:
    for entry in store.iterdir():
        if not entry.is_file():
            continue
        archive = archive_from_path(entry, with_size)
        if archive is not None:
            yield archive


def list_archives(store: Path, with_size: bool = True) -> Iterator[Archive]:
    """
    Lazily enumerate the archives in a store.

    An empty store yields nothing; that is not an error.

    Raises:
        StoreError: If the store directory does not exist or is not a directory
    """
    if not store.exists():
        raise StoreError(
            f"Archive store not found: {store}",
            details={"store": str(store)},
        )
    if not store.is_dir():
        raise StoreError(
            f"Archive store is not a directory: {store}",
            details={"store": str(store)},
        )
    return _iter_archives(store, with_size)


def find_archive(store: Path, filename: str) -> Archive:
    """
    Resolve an archive file name inside the store.

    Raises:
        ValidationError: If the name is not a plain archive file name
        StoreError: If no such archive exists in the store
    """
    if Path(filename).name != filename or parse_archive_name(filename) is None:
        raise ValidationError(
            f"Not an archive file name: {filename!r}",
            details={"expected": f"<volume>-<host>-<YYYYmmddHHMMSS>{ARCHIVE_SUFFIX}"},
        )
    path = store / filename
    if not path.is_file():
        raise StoreError(
            f"Archive not found: {path}",
            details={"store": str(store), "archive": filename},
        )
    archive = archive_from_path(path)
    assert archive is not None
    return archive


def partial_path(path: Path) -> Path:
    """Temporary location used while an archive is being written."""
    return path.with_name(path.name + PARTIAL_SUFFIX)
