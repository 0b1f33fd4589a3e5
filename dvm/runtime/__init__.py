# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""Production adapters for the Docker Engine, SSH and rsync."""

from dvm.runtime.docker import DockerVolumeRuntime
from dvm.runtime.rsync import RsyncCopier
from dvm.runtime.ssh import AsyncSSHShell

__all__ = ["DockerVolumeRuntime", "AsyncSSHShell", "RsyncCopier"]
