import asyncio
import logging
from typing import Awaitable, Callable, Dict

logger = logging.getLogger(__name__)


class TaskRegistry:
    """
    Process-wide owner of detached background tasks, keyed by order ID.

    Tasks started here do not belong to the request that spawned them:
    cancelling the spawning coroutine leaves them running. They end on their
    own or when shutdown() is called.
    """

    def __init__(self):
        self._tasks: Dict[str, asyncio.Task] = {}

    def spawn(self, key: str, factory: Callable[[], Awaitable[None]]) -> bool:
        """Start factory() under key unless a task for key is still running"""
        existing = self._tasks.get(key)
        if existing is not None and not existing.done():
            logger.info(f"Background task {key!r} already running")
            return False

        task = asyncio.create_task(self._supervise(key, factory), name=f"bg:{key}")
        self._tasks[key] = task
        task.add_done_callback(lambda t: self._forget(key, t))
        return True

    async def _supervise(self, key: str, factory: Callable[[], Awaitable[None]]):
        try:
            await factory()
        except asyncio.CancelledError:
            logger.info(f"Background task {key!r} cancelled")
            raise
        except Exception as e:
            logger.error(f"❌ Background task {key!r} crashed: {e}", exc_info=True)

    def _forget(self, key: str, task: asyncio.Task):
        if self._tasks.get(key) is task:
            del self._tasks[key]

    def is_running(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    def __len__(self):
        return len(self._tasks)

    async def wait(self, key: str):
        task = self._tasks.get(key)
        if task is not None:
            await asyncio.shield(task)

    async def shutdown(self):
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
