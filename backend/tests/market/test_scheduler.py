"""Tests for PeriodicTask."""

import asyncio

import pytest

from stockwatch.market.scheduler import PeriodicTask, TaskState


@pytest.mark.asyncio
class TestPeriodicTask:
    """Scheduling and stop-token behavior."""

    async def test_runs_immediately_and_repeats(self):
        calls = []

        async def tick():
            calls.append(1)

        task = PeriodicTask("test", tick, interval=0.02)
        task.start()
        await asyncio.sleep(0.11)
        await task.stop()

        assert len(calls) >= 3

    async def test_run_immediately_false_waits(self):
        calls = []

        async def tick():
            calls.append(1)

        task = PeriodicTask("test", tick, interval=10.0, run_immediately=False)
        task.start()
        await asyncio.sleep(0.05)
        await task.stop()

        assert calls == []

    async def test_state_transitions(self):
        async def tick():
            pass

        task = PeriodicTask("test", tick, interval=10.0)
        assert task.state is TaskState.IDLE
        task.start()
        assert task.is_running
        await task.stop()
        assert task.state is TaskState.STOPPED
        assert not task.is_running

    async def test_stop_wakes_interval_wait(self):
        """Test that stop() does not wait out a long interval."""

        async def tick():
            pass

        task = PeriodicTask("test", tick, interval=3600.0)
        task.start()
        await asyncio.sleep(0.01)
        await asyncio.wait_for(task.stop(), timeout=1.0)

    async def test_failing_cycle_is_logged_and_schedule_continues(self, caplog):
        calls = []

        async def tick():
            calls.append(1)
            raise RuntimeError("boom")

        task = PeriodicTask("test", tick, interval=0.02)
        task.start()
        await asyncio.sleep(0.1)
        await task.stop()

        assert len(calls) >= 2
        assert "test cycle failed" in caplog.text

    async def test_stop_lets_running_cycle_finish(self):
        finished = asyncio.Event()
        started = asyncio.Event()

        async def tick():
            started.set()
            await asyncio.sleep(0.05)
            finished.set()

        task = PeriodicTask("test", tick, interval=10.0)
        task.start()
        await started.wait()
        await task.stop()

        assert finished.is_set()

    async def test_stop_cancels_after_grace(self):
        cancelled = asyncio.Event()

        async def tick():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        task = PeriodicTask("test", tick, interval=10.0, stop_grace=0.05)
        task.start()
        await asyncio.sleep(0.01)
        await task.stop()

        assert cancelled.is_set()

    async def test_stop_is_idempotent(self):
        async def tick():
            pass

        task = PeriodicTask("test", tick, interval=10.0)
        await task.stop()  # Before start
        await task.stop()
        assert task.state is TaskState.STOPPED

    async def test_cannot_start_twice(self):
        async def tick():
            pass

        task = PeriodicTask("test", tick, interval=10.0)
        task.start()
        with pytest.raises(RuntimeError):
            task.start()
        await task.stop()

    async def test_invalid_interval(self):
        async def tick():
            pass

        with pytest.raises(ValueError):
            PeriodicTask("test", tick, interval=0)
