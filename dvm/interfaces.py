# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Collaborator contracts consumed by the engine.

The engine never talks to Docker, SSH or rsync directly; it drives these
protocols. Production adapters live in dvm.runtime, tests use in-memory fakes.
"""

from typing import AsyncIterator, List, Protocol

from dvm.progress import ProgressReporter


class VolumeRuntime(Protocol):
    """Container runtime holding named volumes."""

    async def list_volumes(self) -> List[str]:
        """Return the names of all volumes."""
        ...

    async def measure_volume_size(self, name: str) -> int | None:
        """Return the uncompressed size of a volume in bytes, or None if unknown."""
        ...

    def read_volume_tree(self, name: str) -> AsyncIterator[bytes]:
        """
        Stream the volume's content tree as an uncompressed tar archive.

        Raises StreamError (possibly mid-iteration) if the read fails.
        """
        ...

    async def write_volume_tree(self, name: str, stream: AsyncIterator[bytes]) -> None:
        """
        Extract an uncompressed tar stream into the volume root.

        Existing files with the same names are overwritten.
        Raises StreamError if the write fails.
        """
        ...


class RemoteShell(Protocol):
    """Authenticated remote shell transport."""

    async def probe(self, user: str, address: str, timeout: float) -> bool:
        """Return True if an authenticated session can be opened."""
        ...

    async def exec_remote(self, user: str, address: str, command: str) -> str:
        """
        Run a command and return its stdout.

        Raises ConnectivityError if the session fails and RemoteCommandError
        if the command exits non-zero.
        """
        ...


class BulkCopier(Protocol):
    """Checksum- and delta-aware file copy between hosts."""

    async def sync_file(
        self,
        source: str,
        destination: str,
        progress: ProgressReporter,
    ) -> None:
        """
        Copy one file. Either side may be a ``user@address:path`` location.

        Raises StreamError if the copy fails.
        """
        ...


class Operator(Protocol):
    """Interactive operator; prompts themselves are outside the engine."""

    async def confirm(self, prompt: str) -> bool:
        """Return True to proceed, False to cancel."""
        ...

