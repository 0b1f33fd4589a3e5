# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DVM Archive Pipeline - gzip compression of streamed tar data.

Volume trees arrive as uncompressed tar streams; this module turns them
into gzip members on the way to disk and back into tar streams on the
way into a volume. Large chunks are (de)compressed in a thread pool so
concurrent backup jobs do not starve the event loop.
"""

import asyncio
import struct
import zlib
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import AsyncIterator, Callable

import aiofiles
import structlog

from dvm.exceptions import StreamError

logger = structlog.get_logger()

# Thread pool for CPU-bound compression
_executor = ThreadPoolExecutor(max_workers=4)

DEFAULT_GZIP_LEVEL = 6
GZIP_MAGIC = b"\x1f\x8b"

# wbits for a gzip header and trailer
_GZIP_WBITS = 16 + zlib.MAX_WBITS

# Minimum size of a gzip member: 10-byte header, empty deflate block, 8-byte trailer
_MIN_GZIP_SIZE = 18

# Header, trailer and block framing allowance around stored deflate data
_GZIP_FRAMING = 32

_OFFLOAD_THRESHOLD = 256 * 1024


async def _run(func: Callable[[bytes], bytes], data: bytes) -> bytes:
    if len(data) > _OFFLOAD_THRESHOLD:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(_executor, func, data)
    return func(data)


async def compress(
    stream: AsyncIterator[bytes],
    level: int = DEFAULT_GZIP_LEVEL,
) -> AsyncIterator[bytes]:
    """
    Gzip an async byte stream.

    Args:
        stream: Uncompressed chunks (typically a tar stream)
        level: zlib compression level (1-9)

    Yields:
        Compressed chunks forming a single gzip member
    """
    compressor = zlib.compressobj(level, zlib.DEFLATED, _GZIP_WBITS)
    async for chunk in stream:
        if not chunk:
            continue
        out = await _run(compressor.compress, chunk)
        if out:
            yield out
    yield compressor.flush()


async def decompress(stream: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    """
    Gunzip an async byte stream.

    Concatenated gzip members are decoded one after another, as gzip(1) does.

    Raises:
        StreamError: If the data is not gzip, is empty, or ends mid-member
    """
    decompressor = zlib.decompressobj(_GZIP_WBITS)
    seen_data = False
    in_member = False

    try:
        async for chunk in stream:
            while chunk:
                seen_data = True
                in_member = True
                out = await _run(decompressor.decompress, chunk)
                if out:
                    yield out
                if decompressor.eof:
                    in_member = False
                    chunk = decompressor.unused_data
                    decompressor = zlib.decompressobj(_GZIP_WBITS)
                else:
                    chunk = b""
    except zlib.error as e:
        raise StreamError(f"Decompression failed: {e}") from e

    if not seen_data:
        raise StreamError("Decompression failed: archive is empty")
    if in_member:
        raise StreamError("Decompression failed: compressed stream is truncated")


def read_uncompressed_size(path: Path) -> int | None:
    """
    Read the uncompressed size recorded in a gzip trailer (ISIZE).

    This is the value ``gzip -l`` reports: the length modulo 2**32 of the
    last member. Returns None if the file is not a readable gzip file, or
    if the recorded value is too small to have produced the compressed
    data, which is what a size wrapped past 4 GiB looks like.
    """
    try:
        with open(path, "rb") as f:
            if f.read(2) != GZIP_MAGIC:
                return None
            f.seek(0, 2)
            compressed = f.tell()
            if compressed < _MIN_GZIP_SIZE:
                return None
            f.seek(-4, 2)
            (size,) = struct.unpack("<I", f.read(4))
    except OSError as e:
        logger.debug("gzip_size_unreadable", path=str(path), error=str(e))
        return None

    if size < _min_uncompressed_size(compressed):
        logger.debug("gzip_size_implausible", path=str(path), size=size, compressed=compressed)
        return None
    return size


def _min_uncompressed_size(compressed: int) -> int:
    # deflate expands its input by at most 1/2048 plus fixed framing
    return compressed - _GZIP_FRAMING - compressed // 2048


async def read_file_chunks(path: Path, chunk_size: int) -> AsyncIterator[bytes]:
    """Stream a local file in chunks."""
    async with aiofiles.open(path, "rb") as f:
        while True:
            chunk = await f.read(chunk_size)
            if not chunk:
                break
            yield chunk
