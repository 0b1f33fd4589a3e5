# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers.

create_config_from_env() builds a DVMConfig from a small set of well-known
environment variables, falling back to the DVMConfig defaults for anything
left unset.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict

from dvm.config import DVMConfig
from dvm.errors import (
    explain_invalid_bool_env,
    explain_invalid_max_jobs_env,
    explain_invalid_retention_days_env,
    explain_invalid_timeout_env,
)
from dvm.exceptions import ConfigurationError

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigurationError(explain_invalid_bool_env(name, value))


def _parse_retention_days(value: str) -> int:
    try:
        days = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_retention_days_env(value)) from exc
    if days < 0:
        raise ConfigurationError(explain_invalid_retention_days_env(value))
    return days


def _parse_timeout(value: str) -> float:
    try:
        seconds = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_timeout_env(value)) from exc
    if seconds <= 0:
        raise ConfigurationError(explain_invalid_timeout_env(value))
    return seconds


def _parse_max_jobs(value: str) -> int:
    try:
        jobs = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_max_jobs_env(value)) from exc
    if jobs < 1:
        raise ConfigurationError(explain_invalid_max_jobs_env(value))
    return jobs


def create_config_from_env(**overrides: Any) -> DVMConfig:
    """
    Create a DVMConfig from environment variables.

    Keyword overrides win over the environment, which wins over defaults.

    Optional environment variables:
        - DVM_BACKUP_DIR: Local archive store directory
        - DVM_LOG_FILE: Log file path
        - DVM_RETENTION_DAYS: Non-negative integer (default: 30)
        - DVM_VERBOSE: Echo log lines to the console (default: on)
        - DVM_HOST_LABEL: Host label used in archive names (default: hostname)
        - DVM_HELPER_IMAGE: Image used to mount volumes (default: busybox)
        - DVM_REMOTE_BACKUP_DIR: Remote store relative to the remote home
        - DVM_SSH_TIMEOUT: SSH probe timeout in seconds (default: 5)
        - DVM_MAX_JOBS: Maximum concurrent backup jobs (default: unbounded)
    """

    values: Dict[str, Any] = {}

    backup_dir = os.getenv("DVM_BACKUP_DIR")
    if backup_dir:
        values["backup_dir"] = Path(backup_dir).expanduser()

    log_file = os.getenv("DVM_LOG_FILE")
    if log_file:
        values["log_file"] = Path(log_file).expanduser()

    retention = os.getenv("DVM_RETENTION_DAYS")
    if retention:
        values["retention_days"] = _parse_retention_days(retention)

    verbose = os.getenv("DVM_VERBOSE")
    if verbose:
        values["verbose"] = _parse_bool("DVM_VERBOSE", verbose)

    host_label = os.getenv("DVM_HOST_LABEL")
    if host_label:
        values["host_label"] = host_label

    helper_image = os.getenv("DVM_HELPER_IMAGE")
    if helper_image:
        values["helper_image"] = helper_image

    remote_dir = os.getenv("DVM_REMOTE_BACKUP_DIR")
    if remote_dir:
        values["remote_backup_dir"] = remote_dir

    timeout = os.getenv("DVM_SSH_TIMEOUT")
    if timeout:
        values["ssh_connect_timeout"] = _parse_timeout(timeout)

    max_jobs = os.getenv("DVM_MAX_JOBS")
    if max_jobs:
        values["max_concurrent_jobs"] = _parse_max_jobs(max_jobs)

    values.update(overrides)
    return DVMConfig(**values)
