# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DVM Core - Engine state and pre-flight checks.

The engine's entry points (run_backup, restore_archive, transfer_archive,
fetch_archive, remote_restore, ...) all take ``(config, state)``. The state
bundles the collaborators they drive, so tests can substitute fakes for
Docker, SSH and rsync.
"""

import shutil
from typing import Iterable, List, TypedDict

import structlog

from dvm.config import DVMConfig
from dvm.errors import explain_missing_dependencies
from dvm.exceptions import DependencyError, StoreError
from dvm.interfaces import BulkCopier, Operator, RemoteShell, VolumeRuntime
from dvm.progress import ProgressFactory, tqdm_progress

logger = structlog.get_logger()

REMOTE_TOOLS = ("rsync", "ssh")


class EngineState(TypedDict):
    """Collaborators for one engine session."""

    runtime: VolumeRuntime
    shell: RemoteShell
    copier: BulkCopier
    operator: Operator
    progress: ProgressFactory


def ensure_directories(config: DVMConfig) -> None:
    """
    Create the archive store and the log file if they are missing.

    Raises:
        StoreError: If either cannot be created (fatal for the invocation)
    """
    try:
        if not config.backup_dir.is_dir():
            config.backup_dir.mkdir(parents=True, exist_ok=True)
            logger.info("backup_dir_created", path=str(config.backup_dir))
    except OSError as e:
        raise StoreError(
            f"Failed to create backup directory: {e}",
            details={"backup_dir": str(config.backup_dir)},
        ) from e

    try:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        config.log_file.touch(exist_ok=True)
    except OSError as e:
        raise StoreError(
            f"Failed to create log file: {e}",
            details={"log_file": str(config.log_file)},
        ) from e


async def check_dependencies(
    state: EngineState,
    docker: bool = True,
    tools: Iterable[str] = REMOTE_TOOLS,
) -> None:
    """
    Verify that the external collaborators an operation needs are present.

    Args:
        state: Engine state
        docker: Require a reachable Docker daemon
        tools: Executables that must be on PATH

    Raises:
        DependencyError: Listing everything that is missing
    """
    missing: List[str] = [tool for tool in tools if shutil.which(tool) is None]

    if docker:
        ping = getattr(state["runtime"], "ping", None)
        if ping is not None and not await ping():
            missing.append("docker daemon")

    if missing:
        logger.error("dependencies_missing", missing=",".join(missing))
        raise DependencyError(
            explain_missing_dependencies(missing),
            details={"missing": missing},
        )


async def initialize_state(
    config: DVMConfig,
    operator: Operator,
    progress: ProgressFactory = tqdm_progress,
) -> EngineState:
    """
    Build the production collaborators.

    Args:
        config: DVM configuration
        operator: Answers confirmation prompts
        progress: Factory for per-stream progress reporters

    Returns:
        Initialized EngineState dictionary
    """
    from dvm.runtime.docker import DockerVolumeRuntime
    from dvm.runtime.rsync import RsyncCopier
    from dvm.runtime.ssh import AsyncSSHShell

    return EngineState(
        runtime=DockerVolumeRuntime(
            helper_image=config.helper_image,
            chunk_size=config.chunk_size,
        ),
        shell=AsyncSSHShell(connect_timeout=config.ssh_connect_timeout),
        copier=RsyncCopier(connect_timeout=config.ssh_connect_timeout),
        operator=operator,
        progress=progress,
    )


async def shutdown_state(state: EngineState) -> None:
    """Release collaborator resources."""
    close = getattr(state["runtime"], "close", None)
    if close is not None:
        try:
            await close()
        except Exception as e:
            logger.warning("runtime_close_failed", error=str(e))

    logger.debug("engine_state_shutdown_complete")
