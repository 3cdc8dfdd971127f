"""Periodic health probe for the "connected" indicator.

Independent of ConnectionManager: a failed probe flips the indicator only,
it never touches the Session or triggers a reconnect.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger()

HealthProbe = Callable[..., Awaitable[bool]]


class HealthMonitor:
    """Polls a health probe every `interval` seconds."""

    def __init__(
        self,
        probe: HealthProbe,
        *,
        interval: float = 30.0,
        timeout: float = 5.0,
        on_change: Callable[[bool], None] | None = None,
    ) -> None:
        self._probe = probe
        self._interval = interval
        self._timeout = timeout
        self._on_change = on_change
        self._connected = True  # optimistic until the first probe says otherwise
        self._task: asyncio.Task | None = None
        self._cancelled = False

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def check_once(self) -> bool:
        """Run one probe and update the indicator. Never raises."""
        try:
            healthy = bool(
                await asyncio.wait_for(
                    self._probe(timeout=self._timeout), timeout=self._timeout
                )
            )
        except TimeoutError:
            logger.warning("health_probe_timeout", timeout_s=self._timeout)
            healthy = False
        except Exception as e:
            logger.warning("health_probe_failed", error=str(e))
            healthy = False

        if self._cancelled:
            return healthy
        if healthy != self._connected:
            self._connected = healthy
            logger.info("health_indicator_changed", connected=healthy)
            if self._on_change is not None:
                try:
                    self._on_change(healthy)
                except Exception:
                    logger.warning("health_listener_failed", exc_info=True)
        return healthy

    def start(self) -> None:
        """Start background probing (first probe runs immediately)."""
        if self.running:
            return
        self._cancelled = False
        self._task = asyncio.create_task(self._loop(), name="health_monitor")

    async def stop(self) -> None:
        self._cancelled = True
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _loop(self) -> None:
        while not self._cancelled:
            await self.check_once()
            await asyncio.sleep(self._interval)
