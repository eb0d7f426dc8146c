"""Cancellable periodic background tasks.

This module provides a small ticker used for maintenance work that must
run independently of request traffic, such as sweeping expired cache
entries.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Union

from tangohub.app.core.cache import ResponseCache
from tangohub.app.core.logging import get_logger

logger = get_logger(__name__)

TaskCallback = Callable[[], Union[Any, Awaitable[Any]]]


class PeriodicTask:
    """Runs a callback on a fixed interval until stopped.

    Usage:
        task = PeriodicTask("cache-sweep", cache.sweep_expired, interval=300)
        await task.start()
        ...
        await task.stop()

    The callback may be sync or async. Errors raised by one run are logged
    and the loop continues with the next interval.
    """

    def __init__(
        self,
        name: str,
        callback: TaskCallback,
        interval: float,
        run_immediately: bool = False,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self._callback = callback
        self._interval = interval
        self._run_immediately = run_immediately
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self.runs = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> Any:
        """Invoke the callback a single time."""
        result = self._callback()
        if inspect.isawaitable(result):
            result = await result
        self.runs += 1
        return result

    async def start(self) -> None:
        """Start the background loop."""
        if self._task is not None:
            logger.debug(f"Periodic task '{self.name}' already running")
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run())
        logger.info(f"Started periodic task '{self.name}' (interval: {self._interval}s)")

    async def stop(self) -> None:
        """Stop the background loop, cancelling it if it does not exit."""
        if self._task is None:
            return

        self._stop_event.set()

        try:
            await asyncio.wait_for(self._task, timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning(f"Periodic task '{self.name}' did not stop gracefully, cancelling")
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        finally:
            self._task = None
            logger.info(f"Stopped periodic task '{self.name}'")

    async def _run(self) -> None:
        if self._run_immediately:
            await self._safe_run()

        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                await self._safe_run()

    async def _safe_run(self) -> None:
        try:
            await self.run_once()
        except Exception as e:
            logger.error(f"Error during periodic task '{self.name}': {e}")


class CacheSweeper(PeriodicTask):
    """Periodically removes expired entries from a ResponseCache."""

    def __init__(self, cache: ResponseCache, interval: float = 300.0):
        super().__init__("cache-sweep", self._sweep, interval)
        self._cache = cache
        self.total_removed = 0

    def _sweep(self) -> int:
        removed = self._cache.sweep_expired()
        self.total_removed += removed
        if removed:
            logger.debug(f"Cache sweep removed {removed} expired entries")
        return removed
