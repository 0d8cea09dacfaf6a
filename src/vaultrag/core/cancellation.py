"""
Cancellation and progress primitives shared by indexing workers.

A single CancellationToken is created per reindex run and handed down to
every worker. Workers call `raise_if_cancelled()` at their checkpoints.
"""
import asyncio
from typing import Awaitable, Callable, Optional, Union

from vaultrag.core.exceptions import OperationAborted
from vaultrag.schema.retrieval import IndexProgress

ProgressCallback = Callable[[IndexProgress], Union[None, Awaitable[None]]]


class CancellationToken:
    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise OperationAborted()


class ProgressCounter:
    """
    Counts completed chunks and forwards snapshots to an optional callback.

    The callback may be a plain function or a coroutine function.
    """

    def __init__(
        self,
        total_chunks: int,
        total_files: int,
        callback: Optional[ProgressCallback] = None,
    ):
        self.total_chunks = total_chunks
        self.total_files = total_files
        self.completed_chunks = 0
        self._callback = callback

    def snapshot(self) -> IndexProgress:
        return IndexProgress(
            completed_chunks=self.completed_chunks,
            total_chunks=self.total_chunks,
            total_files=self.total_files,
        )

    async def advance(self, chunks: int) -> None:
        self.completed_chunks += chunks
        await self.report()

    async def report(self) -> None:
        if self._callback is None:
            return
        outcome = self._callback(self.snapshot())
        if asyncio.iscoroutine(outcome):
            await outcome
