# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""Backup and restore of local volumes."""

from dvm.backup.manager import BackupReport, JobResult, JobStatus, run_backup
from dvm.backup.restore import RestoreResult, RestoreStatus, restore_archive

__all__ = [
    "BackupReport",
    "JobResult",
    "JobStatus",
    "run_backup",
    "RestoreResult",
    "RestoreStatus",
    "restore_archive",
]
