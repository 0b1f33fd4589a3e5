# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bulk file copy through rsync over SSH.

rsync runs with checksum comparison and partial-file resume, so an
interrupted transfer can be retried without resending what arrived.
"""

import asyncio
import re
from typing import List

import structlog

from dvm.config import DEFAULT_SSH_CONNECT_TIMEOUT
from dvm.exceptions import StreamError
from dvm.progress import ProgressReporter

logger = structlog.get_logger()

_PROGRESS_LINE = re.compile(rb"^\s*([\d,]+)\s+\d+%")
_LINE_BREAK = re.compile(rb"[\r\n]")


class RsyncCopier:
    """BulkCopier that shells out to rsync."""

    def __init__(
        self,
        connect_timeout: float = DEFAULT_SSH_CONNECT_TIMEOUT,
        rsync_binary: str = "rsync",
    ):
        self.connect_timeout = connect_timeout
        self.rsync_binary = rsync_binary

    def build_command(self, source: str, destination: str) -> List[str]:
        ssh = f"ssh -o ConnectTimeout={int(self.connect_timeout)} -o BatchMode=yes"
        return [
            self.rsync_binary,
            "-az",
            "--checksum",
            "--partial",
            "--progress",
            "-e",
            ssh,
            source,
            destination,
        ]

    async def sync_file(
        self,
        source: str,
        destination: str,
        progress: ProgressReporter,
    ) -> None:
        """
        Copy one file; either side may be a ``user@host:path`` location.

        Raises:
            StreamError: If rsync cannot be started or exits non-zero
        """
        command = self.build_command(source, destination)
        logger.info("rsync_started", source=source, destination=destination)

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise StreamError(f"Failed to start rsync: {e}") from e

        stderr_task = asyncio.create_task(process.stderr.read())
        try:
            await self._follow_progress(process.stdout, progress)
            returncode = await process.wait()
            stderr = (await stderr_task).decode(errors="replace").strip()
        finally:
            if process.returncode is None:
                process.terminate()
                await process.wait()
            if not stderr_task.done():
                stderr_task.cancel()

        if returncode != 0:
            logger.error("rsync_failed", returncode=returncode, stderr=stderr)
            raise StreamError(
                f"rsync exited with status {returncode}: {stderr}",
                details={"returncode": returncode},
            )
        logger.info("rsync_completed", source=source, destination=destination)

    async def _follow_progress(
        self, stdout: asyncio.StreamReader, progress: ProgressReporter
    ) -> None:
        # rsync rewrites its progress line with carriage returns
        reported = 0
        buffer = b""
        while True:
            chunk = await stdout.read(4096)
            if not chunk:
                break
            buffer += chunk
            *lines, buffer = _LINE_BREAK.split(buffer)
            for line in lines:
                match = _PROGRESS_LINE.match(line)
                if match is None:
                    continue
                transferred = int(match.group(1).replace(b",", b""))
                if transferred > reported:
                    progress.update(transferred - reported)
                    reported = transferred
