# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DVM Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation and passed
explicitly into every engine entry point.
"""

import os
import socket
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

DEFAULT_RETENTION_DAYS = 30
DEFAULT_HELPER_IMAGE = "busybox"
DEFAULT_REMOTE_BACKUP_DIR = "docker-volume-backups"
DEFAULT_SSH_CONNECT_TIMEOUT = 5.0
DEFAULT_CHUNK_SIZE = 1024 * 1024


def original_home() -> Path:
    """
    Home directory of the operator who owns the backup history.

    When running under sudo this is the invoking user's home, not root's.
    """
    sudo_user = os.environ.get("SUDO_USER")
    if sudo_user:
        expanded = os.path.expanduser(f"~{sudo_user}")
        if not expanded.startswith("~"):
            return Path(expanded)
    return Path.home()


def _default_backup_dir() -> Path:
    return original_home() / "docker-volume-backups"


def _default_log_file() -> Path:
    return original_home() / ".dvmanager.log"


@dataclass(frozen=True)
class DVMConfig:
    """
    Immutable configuration for backup, restore and transfer operations.
    """

    # Local archive store
    backup_dir: Path = field(default_factory=_default_backup_dir)

    # Append-only log sink
    log_file: Path = field(default_factory=_default_log_file)

    # Archives older than this many days are deleted before each backup run
    retention_days: int = DEFAULT_RETENTION_DAYS

    # Echo log lines to the console
    verbose: bool = True

    # Originating host embedded in archive names
    host_label: str = field(default_factory=socket.gethostname)

    # Image used to mount volumes for reading and writing
    helper_image: str = DEFAULT_HELPER_IMAGE

    # Remote archive store, relative to the remote user's home
    remote_backup_dir: str = DEFAULT_REMOTE_BACKUP_DIR

    # Seconds allowed for the SSH reachability probe
    ssh_connect_timeout: float = DEFAULT_SSH_CONNECT_TIMEOUT

    # Upper bound on concurrent backup jobs (None: one per volume)
    max_concurrent_jobs: int | None = None

    # Streaming chunk size in bytes
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        if self.retention_days < 0:
            errors.append(f"retention_days must be >= 0, got {self.retention_days}")

        if not self.host_label:
            errors.append("host_label must not be empty")
        elif "\x00" in self.host_label:
            errors.append("host_label must not contain NUL bytes")

        if not self.helper_image:
            errors.append("helper_image must not be empty")

        if not self.remote_backup_dir or ".." in Path(self.remote_backup_dir).parts:
            errors.append(f"Invalid remote_backup_dir: {self.remote_backup_dir!r}")

        if self.ssh_connect_timeout <= 0:
            errors.append(
                f"ssh_connect_timeout must be > 0, got {self.ssh_connect_timeout}"
            )

        if self.max_concurrent_jobs is not None and self.max_concurrent_jobs < 1:
            errors.append(
                f"max_concurrent_jobs must be >= 1, got {self.max_concurrent_jobs}"
            )

        if self.chunk_size < 1:
            errors.append(f"chunk_size must be >= 1, got {self.chunk_size}")

        if errors:
            from dvm.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    def with_updates(self, **kwargs) -> "DVMConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        from dataclasses import asdict

        current = asdict(self)
        current.update(kwargs)
        return DVMConfig(**current)
