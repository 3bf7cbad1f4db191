"""Background worker - runs floor generation off the request path.

Jobs go onto a bounded asyncio queue served by a fixed number of worker
tasks. Submitting never blocks: a full queue drops the job with a warning.
A failing job is logged on the ``tower.generation`` channel and the worker
moves on.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

logger = logging.getLogger("tower.generation")


@dataclass(frozen=True)
class GenerationJob:
    start_floor: int
    count: int
    reference_floor: int | None = None


class GenerationWorker:
    def __init__(
        self,
        handler: Callable[[GenerationJob], Awaitable[None]],
        maxsize: int = 8,
        workers: int = 1,
    ):
        self.handler = handler
        self.maxsize = maxsize
        self.workers = workers
        self._queue: asyncio.Queue[GenerationJob] | None = None
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def start(self) -> None:
        if self.running:
            return
        self._queue = asyncio.Queue(maxsize=self.maxsize)
        self._tasks = [
            asyncio.create_task(self._run(), name=f"tower-generation-{i}")
            for i in range(self.workers)
        ]
        logger.info("Generation worker started (%d task(s), queue size %d)", self.workers, self.maxsize)

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._queue = None

    def submit(self, job: GenerationJob) -> bool:
        """Queue a job without waiting. Returns False if it was not accepted."""
        if self._queue is None or not self.running:
            logger.warning("Generation worker not running, dropping %s", job)
            return False
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            logger.warning("Generation queue full, dropping %s", job)
            return False
        return True

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def _run(self) -> None:
        queue = self._queue
        while True:
            job = await queue.get()
            try:
                await self.handler(job)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Generation job failed: %s", job)
            finally:
                queue.task_done()
