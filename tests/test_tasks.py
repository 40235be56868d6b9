"""Tests for the background task registry."""

import asyncio

from services.tasks import TaskRegistry


class TestTaskRegistry:

    async def test_duplicate_key_is_not_spawned(self, tasks):
        gate = asyncio.Event()

        assert tasks.spawn("debts:ABC", gate.wait)
        assert not tasks.spawn("debts:ABC", gate.wait)
        assert tasks.is_running("debts:ABC")

        gate.set()
        await tasks.wait("debts:ABC")
        assert not tasks.is_running("debts:ABC")

    async def test_outlives_spawner(self, tasks):
        gate = asyncio.Event()
        finished = []

        async def reminders():
            await gate.wait()
            finished.append(True)

        async def request_handler():
            tasks.spawn("debts:ABC", reminders)
            await asyncio.sleep(10)

        handler = asyncio.create_task(request_handler())
        await asyncio.sleep(0)
        handler.cancel()
        await asyncio.gather(handler, return_exceptions=True)

        assert tasks.is_running("debts:ABC")
        gate.set()
        await tasks.wait("debts:ABC")
        assert finished == [True]

    async def test_crash_is_contained(self, tasks):
        async def crash():
            raise RuntimeError("boom")

        tasks.spawn("debts:ABC", crash)
        await tasks.wait("debts:ABC")

        assert len(tasks) == 0

    async def test_shutdown_cancels(self):
        registry = TaskRegistry()
        registry.spawn("a", lambda: asyncio.sleep(10))
        registry.spawn("b", lambda: asyncio.sleep(10))

        await registry.shutdown()

        assert len(registry) == 0
