# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Docker volume runtime.

Volumes are reached through a short-lived helper container (busybox by
default) that mounts the volume at /data. Content moves through the
Engine's archive endpoints, so the tar stream is rooted at the volume
root (``./...``), the same layout ``tar -C /data .`` produces.

The docker SDK is synchronous; calls run in the default thread pool.
"""

import asyncio
from typing import Any, AsyncIterator, Iterator, List

import docker
import structlog
from docker.errors import DockerException, ImageNotFound

from dvm.config import DEFAULT_CHUNK_SIZE, DEFAULT_HELPER_IMAGE
from dvm.exceptions import DependencyError, StreamError

logger = structlog.get_logger()

MOUNT_POINT = "/data"

_QUEUE_DEPTH = 8
_END = object()


class _Abort:
    def __init__(self, error: BaseException):
        self.error = error


class DockerVolumeRuntime:
    """VolumeRuntime backed by the local Docker Engine."""

    def __init__(
        self,
        helper_image: str = DEFAULT_HELPER_IMAGE,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        client: Any = None,
    ):
        self.helper_image = helper_image
        self.chunk_size = chunk_size
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            try:
                self._client = docker.from_env()
            except DockerException as e:
                raise DependencyError(f"Cannot connect to Docker: {e}") from e
        return self._client

    async def _call(self, func, *args, **kwargs):
        # to_thread carries the bound log context into the worker
        return await asyncio.to_thread(func, *args, **kwargs)

    async def ping(self) -> bool:
        try:
            return bool(await self._call(lambda: self.client.ping()))
        except (DockerException, DependencyError, OSError) as e:
            logger.warning("docker_ping_failed", error=str(e))
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._call(self._client.close)
            self._client = None

    async def list_volumes(self) -> List[str]:
        try:
            volumes = await self._call(lambda: self.client.volumes.list())
        except (DockerException, OSError) as e:
            raise DependencyError(f"Failed to list Docker volumes: {e}") from e
        return sorted(v.name for v in volumes)

    def _ensure_image(self) -> None:
        try:
            self.client.images.get(self.helper_image)
        except ImageNotFound:
            logger.info("helper_image_pull", image=self.helper_image)
            self.client.images.pull(self.helper_image)

    def _create_helper(self, volume: str, mode: str) -> Any:
        self._ensure_image()
        return self.client.containers.create(
            self.helper_image,
            command=["true"],
            volumes={volume: {"bind": MOUNT_POINT, "mode": mode}},
        )

    async def _remove(self, container: Any) -> None:
        try:
            await self._call(container.remove, force=True)
        except (DockerException, OSError) as e:
            logger.warning("helper_container_remove_failed", error=str(e))

    async def measure_volume_size(self, name: str) -> int | None:
        def _du() -> bytes:
            self._ensure_image()
            return self.client.containers.run(
                self.helper_image,
                command=["du", "-sb", MOUNT_POINT],
                volumes={name: {"bind": MOUNT_POINT, "mode": "ro"}},
                remove=True,
                stdout=True,
                stderr=False,
            )

        try:
            output = await self._call(_du)
            return int(output.split()[0])
        except (DockerException, OSError, ValueError, IndexError) as e:
            logger.warning("volume_size_unknown", volume=name, error=str(e))
            return None

    async def read_volume_tree(self, name: str) -> AsyncIterator[bytes]:
        try:
            container = await self._call(self._create_helper, name, "ro")
        except (DockerException, OSError) as e:
            raise StreamError(f"Failed to mount volume {name}: {e}") from e

        try:
            stream, _ = await self._call(
                container.get_archive, f"{MOUNT_POINT}/.", chunk_size=self.chunk_size
            )
            chunks = iter(stream)
            while True:
                chunk = await self._call(next, chunks, None)
                if chunk is None:
                    break
                yield chunk
        except (DockerException, OSError) as e:
            raise StreamError(f"Failed to read volume {name}: {e}") from e
        finally:
            await self._remove(container)

    async def write_volume_tree(self, name: str, stream: AsyncIterator[bytes]) -> None:
        try:
            container = await self._call(self._create_helper, name, "rw")
        except (DockerException, OSError) as e:
            raise StreamError(f"Failed to mount volume {name}: {e}") from e

        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue(maxsize=_QUEUE_DEPTH)

        def body() -> Iterator[bytes]:
            # Runs in the upload thread; pulls chunks from the event loop
            while True:
                item = asyncio.run_coroutine_threadsafe(queue.get(), loop).result()
                if item is _END:
                    return
                if isinstance(item, _Abort):
                    raise StreamError(f"Restore stream aborted: {item.error}")
                yield item

        upload = asyncio.ensure_future(
            self._call(container.put_archive, MOUNT_POINT, body())
        )

        async def feed(item: Any) -> bool:
            put = asyncio.ensure_future(queue.put(item))
            await asyncio.wait({put, upload}, return_when=asyncio.FIRST_COMPLETED)
            if not put.done():
                put.cancel()
                return False
            return True

        try:
            try:
                async for chunk in stream:
                    if not await feed(chunk):
                        break
                else:
                    await feed(_END)
            except BaseException as e:
                await feed(_Abort(e))
                await asyncio.gather(upload, return_exceptions=True)
                raise

            try:
                accepted = await upload
            except (DockerException, OSError, StreamError) as e:
                raise StreamError(f"Failed to write volume {name}: {e}") from e
            if not accepted:
                raise StreamError(f"Docker rejected the archive for volume {name}")
        finally:
            await self._remove(container)
