"""Bounded background worker pool for sync jobs.

A fixed set of asyncio worker tasks consume a bounded queue.  The pool
starts ``core_workers`` workers and grows to ``max_workers`` when every
worker is busy and work is waiting.  Submissions beyond the queue
capacity are rejected with ``PoolSaturatedError`` rather than dropped.
"""

import asyncio
import uuid
from collections.abc import Coroutine
from typing import Any

from loguru import logger

from beneficiary_sync.core.errors import PoolSaturatedError


class SyncWorkerPool:
    """In-process worker pool with a bounded queue.

    Args:
        core_workers: Workers started on first use.
        max_workers: Upper bound on concurrent workers.
        queue_capacity: Maximum number of queued (not yet running) tasks.
        name: Prefix used for worker task names and log lines.
    """

    def __init__(
        self,
        core_workers: int = 2,
        max_workers: int = 4,
        queue_capacity: int = 100,
        name: str = "es-sync",
    ) -> None:
        if core_workers <= 0 or max_workers < core_workers:
            msg = f"invalid worker bounds: core={core_workers}, max={max_workers}"
            raise ValueError(msg)
        self.core_workers = core_workers
        self.max_workers = max_workers
        self.queue_capacity = queue_capacity
        self.name = name
        self._queue: asyncio.Queue[tuple[str, Coroutine[Any, Any, Any]]] | None = None
        self._workers: list[asyncio.Task[None]] = []
        self._busy = 0
        self._closed = False

    @property
    def worker_count(self) -> int:
        return len(self._workers)

    @property
    def queued(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def _ensure_started(self) -> asyncio.Queue[tuple[str, Coroutine[Any, Any, Any]]]:
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self.queue_capacity)
            for _ in range(self.core_workers):
                self._spawn_worker()
        return self._queue

    def _spawn_worker(self) -> None:
        index = len(self._workers) + 1
        task = asyncio.create_task(self._worker(), name=f"{self.name}-{index}")
        self._workers.append(task)
        logger.debug(f"Started worker {self.name}-{index}")

    async def _worker(self) -> None:
        assert self._queue is not None
        while True:
            task_id, coro = await self._queue.get()
            self._busy += 1
            try:
                await coro
            except Exception:
                logger.exception(f"Task {task_id} failed in worker pool {self.name}")
            finally:
                self._busy -= 1
                self._queue.task_done()

    def submit(self, coro: Coroutine[Any, Any, Any]) -> str:
        """Queue a coroutine for background execution.

        Args:
            coro: The coroutine to execute.

        Returns:
            A task ID string that tags the pool's log lines for this task.

        Raises:
            PoolSaturatedError: If the pool is shut down or its queue is full.
        """
        if self._closed:
            coro.close()
            msg = f"Worker pool {self.name} is shut down"
            raise PoolSaturatedError(msg)

        queue = self._ensure_started()
        task_id = str(uuid.uuid4())
        try:
            queue.put_nowait((task_id, coro))
        except asyncio.QueueFull:
            coro.close()
            msg = "Elasticsearch sync queue is full. Please wait for current job to complete."
            raise PoolSaturatedError(msg) from None

        idle = len(self._workers) - self._busy
        if queue.qsize() > idle and len(self._workers) < self.max_workers:
            self._spawn_worker()
        return task_id

    async def join(self) -> None:
        """Wait until every queued task has finished."""
        if self._queue is not None:
            await self._queue.join()

    async def shutdown(self, *, wait: bool = True, timeout: float | None = 60.0) -> None:
        """Stop accepting work and stop the workers.

        Args:
            wait: Let queued and running tasks finish first.
            timeout: Seconds to wait for outstanding tasks before cancelling.
        """
        self._closed = True
        if wait and self._queue is not None:
            try:
                await asyncio.wait_for(self._queue.join(), timeout=timeout)
            except TimeoutError:
                logger.warning(f"Worker pool {self.name} did not drain within {timeout}s, cancelling workers")

        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()

        if self._queue is not None:
            while not self._queue.empty():
                task_id, coro = self._queue.get_nowait()
                coro.close()
                logger.warning(f"Discarded queued task {task_id} from worker pool {self.name}")
                self._queue.task_done()
        logger.info(f"Worker pool {self.name} shut down")
