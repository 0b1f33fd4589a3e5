# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DVM Transfer - Copy archives to and from a remote archive store.

Every remote operation runs the same pre-flight, in order:
1. The endpoint address must be a well-formed dotted IPv4 address
2. A short authenticated SSH probe must succeed

Only then is the bulk copy (rsync) or remote listing attempted. Probe
failures and copy failures are reported and logged as distinct stages.
"""

import shlex
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List

import structlog

from dvm.archive.naming import parse_archive_name
from dvm.config import DVMConfig
from dvm.core import EngineState
from dvm.errors import explain_invalid_address, explain_unreachable_host
from dvm.exceptions import ConnectivityError, StoreError, StreamError, ValidationError

logger = structlog.get_logger()

_USER_FORBIDDEN = set("@:/\\ \t\n\x00")


def is_valid_ipv4(address: str) -> bool:
    """
    True iff address has exactly four dot-separated groups of 1-3 ASCII
    digits, each between 0 and 255.
    """
    groups = address.split(".")
    if len(groups) != 4:
        return False
    for group in groups:
        if not group or len(group) > 3 or not (group.isascii() and group.isdigit()):
            return False
        if int(group) > 255:
            return False
    return True


def validate_address(address: str) -> str:
    """
    Raises:
        ValidationError: If address is not a dotted IPv4 address
    """
    if not is_valid_ipv4(address):
        raise ValidationError(explain_invalid_address(address), details={"address": address})
    return address


@dataclass(frozen=True)
class RemoteEndpoint:
    """A remote host's archive store, reached as ``user@address`` over SSH."""

    user: str
    address: str

    def __str__(self) -> str:
        return f"{self.user}@{self.address}"

    def location(self, path: str) -> str:
        """rsync/scp style remote path."""
        return f"{self}:{path}"

    @classmethod
    def parse(cls, target: str) -> "RemoteEndpoint":
        """
        Parse ``user@address``.

        Raises:
            ValidationError: If the user part is missing or unsafe, or the
                address is not a valid IPv4 address
        """
        user, sep, address = target.rpartition("@")
        if not sep or not user or any(ch in _USER_FORBIDDEN for ch in user):
            raise ValidationError(
                f"Invalid remote target: {target!r}. Expected user@address.",
                details={"target": target},
            )
        return cls(user=user, address=validate_address(address))


class TransferStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class TransferStage(str, Enum):
    """Where a transfer stopped."""

    VALIDATE = "validate"
    PROBE = "probe"
    COPY = "copy"


@dataclass
class TransferResult:
    """Result of a transfer or fetch."""

    archive: str
    endpoint: str
    status: TransferStatus
    stage: TransferStage | None = None
    error: str | None = None
    local_path: Path | None = None
    remote_path: str | None = None
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status == TransferStatus.SUCCESS


async def preflight(config: DVMConfig, state: EngineState, endpoint: RemoteEndpoint) -> None:
    """
    Validate the address, then probe SSH reachability and credentials.

    Raises:
        ValidationError: If the address is malformed (nothing is contacted)
        ConnectivityError: If the probe fails
    """
    validate_address(endpoint.address)

    reachable = await state["shell"].probe(
        endpoint.user, endpoint.address, config.ssh_connect_timeout
    )
    if not reachable:
        logger.error("ssh_probe_failed", endpoint=str(endpoint))
        raise ConnectivityError(
            explain_unreachable_host(endpoint.user, endpoint.address),
            details={"endpoint": str(endpoint)},
        )
    logger.info("ssh_probe_succeeded", endpoint=str(endpoint))


def _remote_path(config: DVMConfig, filename: str = "") -> str:
    return f"{config.remote_backup_dir.rstrip('/')}/{filename}"


def _failed(
    archive: str,
    endpoint: RemoteEndpoint,
    stage: TransferStage,
    error: Exception,
    start: float,
    **kwargs,
) -> TransferResult:
    return TransferResult(
        archive=archive,
        endpoint=str(endpoint),
        status=TransferStatus.FAILED,
        stage=stage,
        error=str(error),
        duration_seconds=time.monotonic() - start,
        **kwargs,
    )


async def _run_preflight(
    config: DVMConfig,
    state: EngineState,
    endpoint: RemoteEndpoint,
    archive: str,
    start: float,
) -> TransferResult | None:
    try:
        await preflight(config, state, endpoint)
    except ValidationError as e:
        logger.error("transfer_rejected", endpoint=str(endpoint), error=str(e))
        return _failed(archive, endpoint, TransferStage.VALIDATE, e, start)
    except ConnectivityError as e:
        return _failed(archive, endpoint, TransferStage.PROBE, e, start)
    return None


async def transfer_archive(
    config: DVMConfig,
    state: EngineState,
    archive_path: Path,
    endpoint: RemoteEndpoint,
) -> TransferResult:
    """
    Copy a local archive into the remote archive store.

    Args:
        config: DVM configuration
        state: Engine state
        archive_path: Local archive
        endpoint: Remote host

    Returns:
        TransferResult; on failure ``stage`` says which step failed

    Raises:
        StoreError: If the local archive does not exist
    """
    start = time.monotonic()
    archive = archive_path.name
    if not archive_path.is_file():
        raise StoreError(
            f"Archive not found: {archive_path}",
            details={"archive": str(archive_path)},
        )

    logger.info("transfer_process_started", archive=archive, endpoint=str(endpoint))

    failure = await _run_preflight(config, state, endpoint, archive, start)
    if failure is not None:
        return failure

    remote_path = _remote_path(config, archive)
    progress = state["progress"](f"Transferring {archive}", archive_path.stat().st_size)
    try:
        await state["shell"].exec_remote(
            endpoint.user,
            endpoint.address,
            f"mkdir -p {shlex.quote(_remote_path(config))}",
        )
        await state["copier"].sync_file(
            str(archive_path), endpoint.location(_remote_path(config)), progress
        )
    except (StreamError, ConnectivityError) as e:
        logger.error(
            "transfer_failed",
            archive=archive,
            endpoint=str(endpoint),
            error=str(e),
        )
        return _failed(
            archive, endpoint, TransferStage.COPY, e, start,
            local_path=archive_path, remote_path=remote_path,
        )
    finally:
        progress.close()

    logger.info("transfer_completed", archive=archive, endpoint=str(endpoint))
    return TransferResult(
        archive=archive,
        endpoint=str(endpoint),
        status=TransferStatus.SUCCESS,
        local_path=archive_path,
        remote_path=remote_path,
        duration_seconds=time.monotonic() - start,
    )


def validate_remote_archive_name(filename: str) -> str:
    """
    Raises:
        ValidationError: If filename is not a plain archive file name
    """
    if Path(filename).name != filename or parse_archive_name(filename) is None:
        raise ValidationError(
            f"Not an archive file name: {filename!r}",
            details={"archive": filename},
        )
    return filename


async def fetch_archive(
    config: DVMConfig,
    state: EngineState,
    endpoint: RemoteEndpoint,
    remote_name: str,
) -> TransferResult:
    """
    Copy an archive from the remote archive store into the local store.

    Returns:
        TransferResult whose ``local_path`` is the fetched copy on success
    """
    start = time.monotonic()

    try:
        validate_remote_archive_name(remote_name)
    except ValidationError as e:
        logger.error("fetch_rejected", archive=remote_name, error=str(e))
        return _failed(remote_name, endpoint, TransferStage.VALIDATE, e, start)

    logger.info("fetch_started", archive=remote_name, endpoint=str(endpoint))

    failure = await _run_preflight(config, state, endpoint, remote_name, start)
    if failure is not None:
        return failure

    remote_path = _remote_path(config, remote_name)
    local_path = config.backup_dir / remote_name
    progress = state["progress"](f"Fetching {remote_name}", None)
    try:
        await state["copier"].sync_file(endpoint.location(remote_path), str(local_path), progress)
    except StreamError as e:
        logger.error(
            "fetch_failed",
            archive=remote_name,
            endpoint=str(endpoint),
            error=str(e),
        )
        return _failed(
            remote_name, endpoint, TransferStage.COPY, e, start,
            remote_path=remote_path,
        )
    finally:
        progress.close()

    logger.info("fetch_completed", archive=remote_name, path=str(local_path))
    return TransferResult(
        archive=remote_name,
        endpoint=str(endpoint),
        status=TransferStatus.SUCCESS,
        local_path=local_path,
        remote_path=remote_path,
        duration_seconds=time.monotonic() - start,
    )


async def list_remote_archives(
    config: DVMConfig,
    state: EngineState,
    endpoint: RemoteEndpoint,
) -> List[str]:
    """
    List archive file names in the remote archive store.

    A missing or empty remote store yields an empty list.

    Raises:
        ValidationError: If the address is malformed
        ConnectivityError: If the probe or the session fails
        RemoteCommandError: If the listing command fails
    """
    await preflight(config, state, endpoint)

    directory = shlex.quote(config.remote_backup_dir)
    command = f"if [ -d {directory} ]; then ls -1A {directory}; fi"
    output = await state["shell"].exec_remote(endpoint.user, endpoint.address, command)

    names = sorted(
        line.strip()
        for line in output.splitlines()
        if line.strip() and parse_archive_name(line.strip()) is not None
    )
    logger.info("remote_archives_listed", endpoint=str(endpoint), count=len(names))
    return names
