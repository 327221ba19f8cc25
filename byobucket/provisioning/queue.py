from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Job:
    name: str
    fn: Callable[..., Awaitable[Any]]
    args: tuple[Any, ...]


class WorkQueue:
    """In-process job queue drained by a fixed pool of asyncio workers.

    Jobs are fire-and-forget: ``submit`` returns immediately and the job runs
    to completion on a worker. A job that returns False counts as ``failed``,
    one that raises counts as ``errored`` and is logged here.
    """

    def __init__(self, workers: int = 4) -> None:
        self._worker_count = max(1, workers)
        self._queue: asyncio.Queue[Job | None] = asyncio.Queue()
        self._workers: list[asyncio.Task[None]] = []
        self.stats: Counter[str] = Counter()

    @property
    def running(self) -> bool:
        return bool(self._workers)

    async def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._work(), name=f"provisioning-worker-{i}")
            for i in range(self._worker_count)
        ]
        logger.info("Started %d provisioning workers", self._worker_count)

    async def stop(self) -> None:
        """Let queued jobs finish, then stop the workers."""
        if not self._workers:
            return
        for _ in self._workers:
            self._queue.put_nowait(None)
        await asyncio.gather(*self._workers)
        self._workers = []
        logger.info("Stopped provisioning workers", extra={"stats": dict(self.stats)})

    def submit(self, name: str, fn: Callable[..., Awaitable[Any]], *args: Any) -> None:
        self._queue.put_nowait(Job(name=name, fn=fn, args=args))
        self.stats["submitted"] += 1

    async def join(self) -> None:
        """Wait until every submitted job has finished."""
        await self._queue.join()

    async def _work(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                if job is None:
                    return
                await self._run(job)
            finally:
                self._queue.task_done()

    async def _run(self, job: Job) -> None:
        try:
            result = await job.fn(*job.args)
        except Exception:
            self.stats["errored"] += 1
            logger.exception("Job %s raised", job.name)
            return
        if result is False:
            self.stats["failed"] += 1
            logger.warning("Job %s did not succeed", job.name)
        else:
            self.stats["succeeded"] += 1
