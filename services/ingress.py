import asyncio
import logging
from typing import Awaitable, Callable, Generic, List, TypeVar

from services.errors import TooManyRequestsError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WorkerPool(Generic[T]):
    """Fixed number of workers draining a bounded queue"""

    def __init__(
        self,
        name: str,
        handler: Callable[[T], Awaitable[object]],
        workers: int = 10,
        queue_size: int = 100,
        enqueue_timeout: float = 1,
    ):
        self.name = name
        self._handler = handler
        self._workers_count = workers
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._enqueue_timeout = enqueue_timeout
        self._workers: List[asyncio.Task] = []

    def start(self):
        for i in range(self._workers_count):
            self._workers.append(asyncio.create_task(self._work(), name=f"{self.name}-worker-{i}"))
        logger.info(f"Started {self._workers_count} {self.name} workers")

    async def submit(self, item: T):
        try:
            await asyncio.wait_for(self._queue.put(item), timeout=self._enqueue_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{self.name} queue is full, rejecting request")
            raise TooManyRequestsError(f"{self.name}: too many requests") from None

    async def _work(self):
        while True:
            item = await self._queue.get()
            try:
                await self._handler(item)
            except Exception as e:
                logger.error(f"Error handling {self.name} request: {e}", exc_info=True)
            finally:
                self._queue.task_done()

    async def join(self):
        await self._queue.join()

    async def stop(self):
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        logger.info(f"Finished {self.name} workers")
