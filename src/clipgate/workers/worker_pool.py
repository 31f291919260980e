"""Bounded pool of asyncio workers draining a FIFO of item ids."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

RunItem = Callable[[str], Awaitable[Any]]


class WorkerPool:
    """Process item ids one at a time per worker, at most one run per item.

    ``submit`` refuses ids that are already queued or in flight, so two
    workers never own the same item.
    """

    def __init__(self, run_item: RunItem, *, concurrency: int = 2) -> None:
        self._run_item = run_item
        self._concurrency = max(1, int(concurrency))
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._pending: set[str] = set()
        self._tasks: list[asyncio.Task[None]] = []
        self._shutdown_event = asyncio.Event()
        self._logger = logger

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def is_tracked(self, item_id: str) -> bool:
        return item_id in self._pending

    def submit(self, item_id: str) -> bool:
        """Queue ``item_id``; returns ``False`` when it is already tracked."""

        if item_id in self._pending:
            self._logger.debug("worker_pool.submit.duplicate", extra={"item_id": item_id})
            return False
        self._pending.add(item_id)
        self._queue.put_nowait(item_id)
        self._logger.info(
            "worker_pool.submit.accepted",
            extra={"item_id": item_id, "queue_size": self._queue.qsize()},
        )
        return True

    def start(self) -> None:
        if self.running:
            return
        self._shutdown_event.clear()
        self._tasks = [
            asyncio.create_task(self.run_forever(worker_id=index), name=f"clipgate-worker-{index}")
            for index in range(self._concurrency)
        ]

    async def join(self) -> None:
        """Wait until every submitted item has been processed."""

        await self._queue.join()

    async def stop(self) -> None:
        """Signal workers to stop and cancel runs still in progress."""

        self._shutdown_event.set()
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []

    async def run_forever(self, *, worker_id: int) -> None:
        try:
            while not self._shutdown_event.is_set():
                item_id = await self._queue.get()
                try:
                    await self._run_item(item_id)
                except asyncio.CancelledError:
                    raise
                except Exception:
                    self._logger.exception(
                        "worker_pool.run.crashed",
                        extra={"item_id": item_id, "worker_id": worker_id},
                    )
                finally:
                    self._pending.discard(item_id)
                    self._queue.task_done()
        except asyncio.CancelledError:
            self._logger.debug("worker_pool.worker.cancelled", extra={"worker_id": worker_id})
            raise


__all__ = ["WorkerPool"]
