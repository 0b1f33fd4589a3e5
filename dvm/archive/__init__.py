# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""Archive store: naming, gzip streaming, verification and retention."""

from dvm.archive.naming import Archive, derive_archive_path, find_archive, list_archives
from dvm.archive.retention import cleanup_old_archives
from dvm.archive.verify import ArchiveStatus, VerificationResult, verify_archive

__all__ = [
    "Archive",
    "derive_archive_path",
    "find_archive",
    "list_archives",
    "cleanup_old_archives",
    "ArchiveStatus",
    "VerificationResult",
    "verify_archive",
]
