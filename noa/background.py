# noa/background.py
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, Tuple

from loguru import logger

Job = Tuple[str, Callable[[], Awaitable[Any]]]


class PersistenceQueue:
    """
    Fire-and-forget queue for best-effort writes (interaction snapshots,
    assessment records). A single worker task drains it; a failing job is
    logged and dropped, it never reaches the request that enqueued it.
    """

    def __init__(self):
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self.failed_jobs = 0

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        if self.running:
            return
        self._queue = asyncio.Queue()
        self._worker = asyncio.get_running_loop().create_task(self._run())

    def submit(self, name: str, factory: Callable[[], Awaitable[Any]]) -> None:
        """
        Enqueue a job. `factory` is called by the worker, so the coroutine
        is only created once the job actually runs.
        """
        if not self.running:
            self.start()
        self._queue.put_nowait((name, factory))

    async def drain(self) -> None:
        if self._queue is not None and self.running:
            await self._queue.join()

    async def stop(self) -> None:
        await self.drain()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None
        self._queue = None

    async def _run(self) -> None:
        while True:
            name, factory = await self._queue.get()
            try:
                await factory()
            except asyncio.CancelledError:
                raise
            except Exception:
                self.failed_jobs += 1
                logger.exception("Background job {} failed", name)
            finally:
                self._queue.task_done()
