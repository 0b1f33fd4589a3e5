# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Docker Volume Manager - Backup, restore and transfer of Docker volumes.

Backs up volumes concurrently into verified gzip-compressed tar archives,
prunes archives past a retention period, restores archives into volumes,
and moves archives between hosts over SSH/rsync. Package name: dvm.
"""

__version__ = "0.1.0"

# Configuration
from dvm.config import DVMConfig
from dvm.env import create_config_from_env

# Engine session
from dvm.core import (
    initialize_state,
    check_dependencies,
    ensure_directories,
    shutdown_state,
)

# Operations
from dvm.backup.manager import run_backup
from dvm.backup.restore import restore_archive
from dvm.transfer.remote import RemoteEndpoint, transfer_archive, list_remote_archives
from dvm.transfer.remote_restore import remote_restore

__all__ = [
    # Version
    "__version__",
    # Configuration
    "DVMConfig",
    "create_config_from_env",
    # Engine session
    "initialize_state",
    "check_dependencies",
    "ensure_directories",
    "shutdown_state",
    # Operations
    "run_backup",
    "restore_archive",
    "RemoteEndpoint",
    "transfer_archive",
    "list_remote_archives",
    "remote_restore",
]
