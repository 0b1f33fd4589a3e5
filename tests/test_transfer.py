# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tests for address validation, archive transfer and remote listing.
"""

import pytest

from dvm.exceptions import ConnectivityError, RemoteCommandError, StoreError, ValidationError
from dvm.transfer.remote import (
    RemoteEndpoint,
    TransferStage,
    TransferStatus,
    fetch_archive,
    is_valid_ipv4,
    list_remote_archives,
    transfer_archive,
    validate_remote_archive_name,
)

from tests.conftest import build_archive_bytes, write_archive

ENDPOINT = RemoteEndpoint(user="backup", address="192.168.1.20")
ARCHIVE = "pgdata-db01-20260131140509.tar.gz"


@pytest.mark.parametrize(
    "address", ["192.168.1.20", "0.0.0.0", "255.255.255.255", "10.0.0.1", "001.002.003.004"]
)
def test_valid_ipv4(address: str):
    assert is_valid_ipv4(address)


@pytest.mark.parametrize(
    "address",
    [
        "256.1.1.1",
        "1.2.3",
        "1.2.3.4.5",
        "a.b.c.d",
        "",
        "1..2.3",
        "1234.1.1.1",
        "1.2.3.4 ",
        "-1.2.3.4",
        "１.2.3.4",
        "host.example.com",
    ],
)
def test_invalid_ipv4(address: str):
    assert not is_valid_ipv4(address)


def test_parse_endpoint():
    endpoint = RemoteEndpoint.parse("backup@192.168.1.20")
    assert endpoint == ENDPOINT
    assert str(endpoint) == "backup@192.168.1.20"
    assert endpoint.location("dir/") == "backup@192.168.1.20:dir/"


@pytest.mark.parametrize(
    "target", ["192.168.1.20", "@192.168.1.20", "backup@999.1.1.1", "backup@example.com", "a b@1.2.3.4"]
)
def test_parse_endpoint_rejects(target: str):
    with pytest.raises(ValidationError):
        RemoteEndpoint.parse(target)


@pytest.mark.asyncio
async def test_transfer_copies_into_remote_store(test_config, engine_state, remote_host):
    archive = write_archive(test_config.backup_dir, ARCHIVE)

    result = await transfer_archive(test_config, engine_state, archive, ENDPOINT)

    assert result.status == TransferStatus.SUCCESS
    assert result.remote_path == f"docker-volume-backups/{ARCHIVE}"
    assert remote_host.files[f"docker-volume-backups/{ARCHIVE}"] == archive.read_bytes()
    assert engine_state["shell"].probes == ["backup@192.168.1.20"]
    assert engine_state["shell"].commands[0].startswith("mkdir -p ")


@pytest.mark.asyncio
async def test_transfer_invalid_address_contacts_nothing(test_config, engine_state):
    archive = write_archive(test_config.backup_dir, ARCHIVE)

    result = await transfer_archive(
        test_config, engine_state, archive, RemoteEndpoint("backup", "300.1.1.1")
    )

    assert result.status == TransferStatus.FAILED
    assert result.stage == TransferStage.VALIDATE
    assert engine_state["shell"].probes == []
    assert engine_state["copier"].calls == []


@pytest.mark.asyncio
async def test_transfer_unreachable_host(test_config, engine_state):
    engine_state["shell"].reachable = False
    archive = write_archive(test_config.backup_dir, ARCHIVE)

    result = await transfer_archive(test_config, engine_state, archive, ENDPOINT)

    assert result.stage == TransferStage.PROBE
    assert "backup@192.168.1.20" in result.error
    assert engine_state["copier"].calls == []


@pytest.mark.asyncio
async def test_transfer_copy_failure(test_config, engine_state):
    engine_state["copier"].fail = True
    archive = write_archive(test_config.backup_dir, ARCHIVE)

    result = await transfer_archive(test_config, engine_state, archive, ENDPOINT)

    assert result.status == TransferStatus.FAILED
    assert result.stage == TransferStage.COPY
    assert "status 12" in result.error
    assert archive.exists()


@pytest.mark.asyncio
async def test_transfer_missing_archive(test_config, engine_state):
    with pytest.raises(StoreError):
        await transfer_archive(test_config, engine_state, test_config.backup_dir / ARCHIVE, ENDPOINT)


@pytest.mark.asyncio
async def test_fetch_archive(test_config, engine_state, remote_host):
    data = build_archive_bytes({"a": b"1"})
    remote_host.add(f"docker-volume-backups/{ARCHIVE}", data)

    result = await fetch_archive(test_config, engine_state, ENDPOINT, ARCHIVE)

    assert result.succeeded
    assert result.local_path == test_config.backup_dir / ARCHIVE
    assert result.local_path.read_bytes() == data


@pytest.mark.asyncio
async def test_fetch_rejects_path_names(test_config, engine_state):
    result = await fetch_archive(test_config, engine_state, ENDPOINT, f"../{ARCHIVE}")

    assert result.stage == TransferStage.VALIDATE
    assert engine_state["shell"].probes == []


def test_validate_remote_archive_name():
    assert validate_remote_archive_name(ARCHIVE) == ARCHIVE
    for bad in (f"../{ARCHIVE}", f"sub/{ARCHIVE}", "notes.txt", f"{ARCHIVE}.part"):
        with pytest.raises(ValidationError):
            validate_remote_archive_name(bad)


@pytest.mark.asyncio
async def test_list_remote_archives(test_config, engine_state, remote_host):
    remote_host.add("docker-volume-backups/zeta-h-20260101000000.tar.gz", b"z")
    remote_host.add(f"docker-volume-backups/{ARCHIVE}", b"a")
    remote_host.add("docker-volume-backups/notes.txt", b"n")
    remote_host.add("elsewhere/other-h-20260101000000.tar.gz", b"o")

    names = await list_remote_archives(test_config, engine_state, ENDPOINT)

    assert names == [ARCHIVE, "zeta-h-20260101000000.tar.gz"]


@pytest.mark.asyncio
async def test_list_remote_archives_missing_store_is_empty(test_config, engine_state):
    assert await list_remote_archives(test_config, engine_state, ENDPOINT) == []


@pytest.mark.asyncio
async def test_list_remote_archives_command_failure(test_config, engine_state):
    engine_state["shell"].fail_commands = True
    with pytest.raises(RemoteCommandError):
        await list_remote_archives(test_config, engine_state, ENDPOINT)


@pytest.mark.asyncio
async def test_list_remote_archives_unreachable(test_config, engine_state):
    engine_state["shell"].reachable = False
    with pytest.raises(ConnectivityError):
        await list_remote_archives(test_config, engine_state, ENDPOINT)
