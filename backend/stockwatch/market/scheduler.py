"""Interval-driven background task with an explicit stop token."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

logger = logging.getLogger(__name__)


class TaskState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class PeriodicTask:
    """Runs ``callback`` every ``interval`` seconds on the event loop.

    State machine: IDLE -> RUNNING -> STOPPED. stop() trips the token, which
    wakes the interval wait immediately and lets a cycle that is already
    running finish (up to ``stop_grace`` seconds) before the task is
    cancelled. Callbacks check ``is_running`` before applying results.
    A failing cycle is logged and the schedule continues.
    """

    def __init__(
        self,
        name: str,
        callback: Callable[[], Awaitable[None]],
        interval: float,
        run_immediately: bool = True,
        stop_grace: float = 5.0,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self._callback = callback
        self._interval = interval
        self._run_immediately = run_immediately
        self._stop_grace = stop_grace
        self._state = TaskState.IDLE
        self._stop_token = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def state(self) -> TaskState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is TaskState.RUNNING

    @property
    def interval(self) -> float:
        return self._interval

    def start(self) -> None:
        if self._state is not TaskState.IDLE:
            raise RuntimeError(f"{self.name} cannot start from state {self._state.value}")
        self._state = TaskState.RUNNING
        self._task = asyncio.create_task(self._run(), name=self.name)
        logger.info("%s started (%.1fs interval)", self.name, self._interval)

    async def stop(self) -> None:
        """Stop the schedule. Safe to call multiple times, and before start()."""
        if self._state is TaskState.STOPPED:
            return
        self._state = TaskState.STOPPED
        self._stop_token.set()

        task, self._task = self._task, None
        if task is not None and not task.done():
            try:
                await asyncio.wait_for(asyncio.shield(task), timeout=self._stop_grace)
            except asyncio.TimeoutError:
                logger.warning("%s did not finish within %.1fs, cancelling", self.name, self._stop_grace)
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        logger.info("%s stopped", self.name)

    async def _run(self) -> None:
        if not self._run_immediately and await self._wait_interval():
            return
        while self._state is TaskState.RUNNING:
            try:
                await self._callback()
            except Exception:
                logger.exception("%s cycle failed", self.name)
            if await self._wait_interval():
                return

    async def _wait_interval(self) -> bool:
        """Sleep one interval. Returns True when stop was requested meanwhile."""
        try:
            await asyncio.wait_for(self._stop_token.wait(), timeout=self._interval)
        except asyncio.TimeoutError:
            return self._state is not TaskState.RUNNING
        return True
