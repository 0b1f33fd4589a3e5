# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for DVM tests.

Provides in-memory stand-ins for the Docker runtime, the SSH shell, the
rsync copier and the operator, plus configuration helpers. Nothing here
needs a Docker daemon, a reachable host or an rsync binary.
"""

import asyncio
import gzip
import io
import tarfile
import tempfile
from datetime import datetime, UTC
from pathlib import Path, PurePosixPath
from typing import AsyncIterator, Dict, Generator, List

import pytest

from dvm.config import DVMConfig
from dvm.core import EngineState
from dvm.exceptions import ConnectivityError, RemoteCommandError, StreamError
from dvm.progress import NullProgress

FIXED_NOW = datetime(2026, 3, 15, 12, 0, 0, tzinfo=UTC)


def build_tar(files: Dict[str, bytes]) -> bytes:
    """Uncompressed tar stream rooted at ``.``, like ``tar -C /data .``."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as tar:
        for name, data in sorted(files.items()):
            info = tarfile.TarInfo(f"./{name}")
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def read_tar(data: bytes) -> Dict[str, bytes]:
    files: Dict[str, bytes] = {}
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:") as tar:
        for member in tar:
            if member.isfile():
                name = str(PurePosixPath(member.name))
                files[name] = tar.extractfile(member).read()
    return files


def build_archive_bytes(files: Dict[str, bytes]) -> bytes:
    return gzip.compress(build_tar(files))


async def aiter_chunks(chunks: List[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


class FakeVolumeRuntime:
    """Volumes as dicts of relative path -> content."""

    def __init__(self, volumes: Dict[str, Dict[str, bytes]] | None = None):
        self.volumes: Dict[str, Dict[str, bytes]] = volumes or {}
        self.read_failures: set = set()
        self.write_failures: set = set()
        self.size_failures: set = set()
        self.writes: List[str] = []
        self.read_delay = 0.0
        self.active_reads = 0
        self.max_active_reads = 0
        self.available = True

    async def ping(self) -> bool:
        return self.available

    async def list_volumes(self) -> List[str]:
        return sorted(self.volumes)

    async def measure_volume_size(self, name: str) -> int | None:
        if name in self.size_failures:
            raise RuntimeError(f"du failed for {name}")
        return sum(len(data) for data in self.volumes[name].values())

    async def read_volume_tree(self, name: str) -> AsyncIterator[bytes]:
        self.active_reads += 1
        self.max_active_reads = max(self.max_active_reads, self.active_reads)
        try:
            if self.read_delay:
                await asyncio.sleep(self.read_delay)
            data = build_tar(self.volumes[name])
            half = len(data) // 2
            yield data[:half]
            if name in self.read_failures:
                raise StreamError(f"container for {name} exited unexpectedly")
            yield data[half:]
        finally:
            self.active_reads -= 1

    async def write_volume_tree(self, name: str, stream: AsyncIterator[bytes]) -> None:
        self.writes.append(name)
        data = b"".join([chunk async for chunk in stream])
        if name in self.write_failures:
            raise StreamError(f"helper container for {name} failed")
        self.volumes.setdefault(name, {}).update(read_tar(data))


class FakeRemoteHost:
    """Files held by a remote host, keyed by path relative to the remote home."""

    def __init__(self):
        self.files: Dict[str, bytes] = {}
        self.directories: set = set()

    def add(self, path: str, data: bytes) -> None:
        self.directories.add(path.rsplit("/", 1)[0])
        self.files[path] = data


class FakeRemoteShell:
    def __init__(self, host: FakeRemoteHost):
        self.host = host
        self.reachable = True
        self.fail_commands = False
        self.probes: List[str] = []
        self.commands: List[str] = []

    async def probe(self, user: str, address: str, timeout: float) -> bool:
        self.probes.append(f"{user}@{address}")
        return self.reachable

    async def exec_remote(self, user: str, address: str, command: str) -> str:
        if not self.reachable:
            raise ConnectivityError(f"SSH session to {user}@{address} failed")
        self.commands.append(command)
        if self.fail_commands:
            raise RemoteCommandError("Remote command failed (exit 2): permission denied")
        if command.startswith("mkdir -p "):
            self.host.directories.add(command.split(" ", 2)[2].strip("'").rstrip("/"))
            return ""
        if command.startswith("if [ -d "):
            directory = command.split()[3].strip("'")
            if directory not in self.host.directories:
                return ""
            names = [
                path.rsplit("/", 1)[1]
                for path in self.host.files
                if path.rsplit("/", 1)[0] == directory
            ]
            return "\n".join(names) + ("\n" if names else "")
        return ""


class FakeCopier:
    """Copies between the local filesystem and a FakeRemoteHost."""

    def __init__(self, host: FakeRemoteHost):
        self.host = host
        self.fail = False
        self.calls: List[tuple] = []

    @staticmethod
    def _remote(location: str) -> str | None:
        head, sep, path = location.partition(":")
        if sep and "@" in head:
            return path
        return None

    async def sync_file(self, source: str, destination: str, progress) -> None:
        self.calls.append((source, destination))
        if self.fail:
            raise StreamError("rsync exited with status 12: connection unexpectedly closed")

        remote_dest = self._remote(destination)
        remote_src = self._remote(source)
        if remote_dest is not None:
            data = Path(source).read_bytes()
            key = remote_dest.rstrip("/") + "/" + Path(source).name
            self.host.files[key] = data
        elif remote_src is not None:
            if remote_src not in self.host.files:
                raise StreamError(f"rsync: link_stat {remote_src} failed: No such file")
            data = self.host.files[remote_src]
            Path(destination).write_bytes(data)
        else:
            raise AssertionError("one side must be remote")
        progress.update(len(data))


class FakeOperator:
    def __init__(self, answer: bool = True):
        self.answer = answer
        self.prompts: List[str] = []

    async def confirm(self, prompt: str) -> bool:
        self.prompts.append(prompt)
        return self.answer


class ProgressRecorder:
    """ProgressFactory that keeps every reporter it creates."""

    def __init__(self):
        self.reporters: List[NullProgress] = []

    def __call__(self, description: str, total: int | None) -> NullProgress:
        reporter = NullProgress(description, total)
        self.reporters.append(reporter)
        return reporter


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_config(temp_dir: Path) -> DVMConfig:
    """Configuration pointing at a temporary archive store."""
    backup_dir = temp_dir / "backups"
    backup_dir.mkdir()
    return DVMConfig(
        backup_dir=backup_dir,
        log_file=temp_dir / "dvmanager.log",
        retention_days=30,
        verbose=False,
        host_label="testhost",
        remote_backup_dir="docker-volume-backups",
        chunk_size=4096,
    )


@pytest.fixture
def runtime() -> FakeVolumeRuntime:
    return FakeVolumeRuntime(
        {
            "appdata": {"config.yml": b"port: 8080\n", "db/data.bin": b"\x00\x01" * 2048},
            "pgdata": {"PG_VERSION": b"16\n", "base/1/1259": b"x" * 10000},
            "empty": {},
        }
    )


@pytest.fixture
def remote_host() -> FakeRemoteHost:
    return FakeRemoteHost()


@pytest.fixture
def operator() -> FakeOperator:
    return FakeOperator(answer=True)


@pytest.fixture
def progress() -> ProgressRecorder:
    return ProgressRecorder()


@pytest.fixture
def engine_state(runtime, remote_host, operator, progress) -> EngineState:
    """Engine state wired to in-memory fakes."""
    return EngineState(
        runtime=runtime,
        shell=FakeRemoteShell(remote_host),
        copier=FakeCopier(remote_host),
        operator=operator,
        progress=progress,
    )


def write_archive(store: Path, name: str, files: Dict[str, bytes] | None = None) -> Path:
    """Place a valid archive with the given file name in a store."""
    path = store / name
    path.write_bytes(build_archive_bytes(files or {"file.txt": b"hello"}))
    return path
