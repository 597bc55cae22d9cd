"""
Periodic background task with an explicit start/stop lifecycle.

Subclasses implement ``run_once()``; the base class owns the asyncio task,
the interval sleep and error isolation. A tick that raises is logged and the
loop keeps going. ``run_once()`` must be idempotent: an external scheduler
may call it directly, concurrently with the loop. Subclasses may override
``handle_tick_error()`` to choose how a failed tick is reported.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from valor.core.logging.logger import LogContext, get_logger

logger = get_logger(__name__)


class PeriodicTask:
    """Base class for interval-driven background work."""

    name: str = "periodic-task"

    def __init__(self, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._interval = float(interval_seconds)
        self._task: Optional[asyncio.Task[None]] = None
        self._is_running: bool = False
        self._tick_count: int = 0
        self._error_count: int = 0

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def interval_seconds(self) -> float:
        return self._interval

    async def run_once(self) -> Any:
        raise NotImplementedError

    async def start(self) -> None:
        """Start the background loop. No-op when already running."""
        if self._is_running:
            logger.warning(f"{self.name} already running")
            return

        self._is_running = True
        self._task = asyncio.create_task(self._loop(), name=self.name)
        logger.info(
            f"{self.name} started",
            extra={"interval_seconds": self._interval},
        )

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish. No-op when stopped."""
        if not self._is_running:
            return

        self._is_running = False
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                logger.debug(f"{self.name} loop cancelled")

        logger.info(
            f"{self.name} stopped",
            extra={"ticks": self._tick_count, "errors": self._error_count},
        )

    async def _loop(self) -> None:
        while self._is_running:
            try:
                async with LogContext(component=self.name, operation="tick"):
                    await self.run_once()
                self._tick_count += 1
            except Exception as exc:
                self._error_count += 1
                self.handle_tick_error(exc)
            await asyncio.sleep(self._interval)

    def handle_tick_error(self, exc: Exception) -> None:
        """Report a failed tick. The loop continues either way."""
        logger.error(
            f"Error in {self.name} tick",
            extra={"error": str(exc), "error_type": type(exc).__name__},
            exc_info=True,
        )

    def get_status(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "is_running": self._is_running,
            "interval_seconds": self._interval,
            "ticks": self._tick_count,
            "errors": self._error_count,
        }
