# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Progress reporting for streaming operations.

A ProgressFactory creates one reporter per stream. The total may be None
when the size could not be measured; reporters must then show an un-sized
indicator instead of a percentage.
"""

from typing import AsyncIterator, Callable, Protocol


class ProgressReporter(Protocol):
    """Receives byte counts as a stream advances."""

    def update(self, n: int) -> object:
        ...

    def close(self) -> object:
        ...


ProgressFactory = Callable[[str, int | None], ProgressReporter]


class NullProgress:
    """Reporter that records totals without displaying anything."""

    def __init__(self, description: str = "", total: int | None = None):
        self.description = description
        self.total = total
        self.done = 0
        self.closed = False

    def update(self, n: int) -> None:
        self.done += n

    def close(self) -> None:
        self.closed = True


def null_progress(description: str, total: int | None) -> NullProgress:
    """ProgressFactory that displays nothing."""
    return NullProgress(description, total)


def tqdm_progress(description: str, total: int | None) -> ProgressReporter:
    """ProgressFactory backed by a tqdm byte counter."""
    from tqdm import tqdm

    return tqdm(
        desc=description,
        total=total or None,
        unit="B",
        unit_scale=True,
        unit_divisor=1024,
        leave=False,
    )


async def track(stream: AsyncIterator[bytes], reporter: ProgressReporter) -> AsyncIterator[bytes]:
    """Pass chunks through unchanged, feeding their sizes to the reporter."""
    async for chunk in stream:
        reporter.update(len(chunk))
        yield chunk
