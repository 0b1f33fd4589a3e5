# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""Moving archives between hosts."""

from dvm.transfer.remote import (
    RemoteEndpoint,
    TransferResult,
    TransferStatus,
    fetch_archive,
    list_remote_archives,
    transfer_archive,
)
from dvm.transfer.remote_restore import remote_restore

__all__ = [
    "RemoteEndpoint",
    "TransferResult",
    "TransferStatus",
    "fetch_archive",
    "list_remote_archives",
    "transfer_archive",
    "remote_restore",
]
