"""Reconnect policy and the scheduler that drives it.

The policy is pure (no clock); the scheduler owns time. Tests swap the
asyncio scheduler for a fake one and advance it manually.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

import structlog

logger = structlog.get_logger()

RetryCallback = Callable[[], Awaitable[object]]


@dataclass(frozen=True)
class RetryPolicy:
    """Linear, capped reconnect backoff.

    failures: consecutive failed attempts so far (>= 1 when consulted).
    """

    max_attempts: int = 5
    base_delay: float = 2.0
    max_delay: float = 30.0

    def should_retry(self, failures: int) -> bool:
        return failures < self.max_attempts

    def delay_for(self, failures: int) -> float:
        return min(self.max_delay, self.base_delay * max(failures, 1))


class ScheduledHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Runs an async callback once after a delay."""

    def schedule(self, delay: float, callback: RetryCallback) -> ScheduledHandle: ...


class _AsyncioHandle:
    def __init__(self, timer: asyncio.TimerHandle) -> None:
        self._timer = timer
        self.task: asyncio.Task | None = None

    def cancel(self) -> None:
        self._timer.cancel()
        if self.task is not None and not self.task.done():
            self.task.cancel()


class AsyncioScheduler:
    """Scheduler backed by the running event loop's call_later."""

    def schedule(self, delay: float, callback: RetryCallback) -> ScheduledHandle:
        loop = asyncio.get_running_loop()
        handle: _AsyncioHandle

        def _fire() -> None:
            handle.task = loop.create_task(_run(callback), name="tool_server_retry")

        handle = _AsyncioHandle(loop.call_later(delay, _fire))
        return handle


async def _run(callback: RetryCallback) -> None:
    try:
        await callback()
    except asyncio.CancelledError:
        raise
    except Exception:
        logger.exception("scheduled_retry_failed")
