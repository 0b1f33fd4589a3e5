# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SSH access to remote hosts via asyncssh.

Authentication uses the operator's agent and default keys; host keys are
checked against ~/.ssh/known_hosts as asyncssh does by default.
"""

import asyncio

import asyncssh
import structlog

from dvm.config import DEFAULT_SSH_CONNECT_TIMEOUT
from dvm.exceptions import ConnectivityError, RemoteCommandError

logger = structlog.get_logger()

PROBE_COMMAND = "exit"


class AsyncSSHShell:
    """RemoteShell implemented with asyncssh."""

    def __init__(self, connect_timeout: float = DEFAULT_SSH_CONNECT_TIMEOUT):
        self.connect_timeout = connect_timeout

    def _connect(self, user: str, address: str, timeout: float):
        return asyncssh.connect(
            address,
            username=user,
            connect_timeout=timeout,
            login_timeout=timeout,
        )

    async def probe(self, user: str, address: str, timeout: float) -> bool:
        """Open a session and run a no-op command within the timeout."""
        try:
            async with self._connect(user, address, timeout) as conn:
                result = await asyncio.wait_for(
                    conn.run(PROBE_COMMAND, check=False), timeout
                )
        except (OSError, asyncssh.Error, asyncio.TimeoutError) as e:
            logger.warning(
                "ssh_probe_error",
                endpoint=f"{user}@{address}",
                error=str(e) or type(e).__name__,
            )
            return False
        return result.exit_status == 0

    async def exec_remote(self, user: str, address: str, command: str) -> str:
        """
        Run a shell command on the remote host.

        Returns:
            The command's standard output

        Raises:
            ConnectivityError: If the session cannot be established
            RemoteCommandError: If the command exits non-zero
        """
        endpoint = f"{user}@{address}"
        try:
            async with self._connect(user, address, self.connect_timeout) as conn:
                result = await conn.run(command, check=False)
        except (OSError, asyncssh.Error, asyncio.TimeoutError) as e:
            raise ConnectivityError(
                f"SSH session to {endpoint} failed: {e}",
                details={"endpoint": endpoint},
            ) from e

        if result.exit_status != 0:
            stderr = str(result.stderr or "").strip()
            logger.error(
                "remote_command_failed",
                endpoint=endpoint,
                exit_status=result.exit_status,
                stderr=stderr,
            )
            raise RemoteCommandError(
                f"Remote command failed on {endpoint} (exit {result.exit_status}): {stderr}",
                details={"endpoint": endpoint, "exit_status": result.exit_status},
            )
        return str(result.stdout or "")
