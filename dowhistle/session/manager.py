"""ConnectionManager: owns the one logical session to the tool server.

State machine:
    disconnected --connect()--> connecting --success--> connected
    connecting --failure--> failed --(scheduled retry)--> connecting
    connected --transport error--> disconnected

Session is mutated only by the _mark_* transition methods below.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from dowhistle.infra.errors import DoWhistleError
from dowhistle.session.models import ConnectionStatus, Session, SessionState
from dowhistle.session.retry import AsyncioScheduler, RetryPolicy

if TYPE_CHECKING:
    from dowhistle.session.retry import ScheduledHandle, Scheduler
    from dowhistle.transport.client import ToolServerTransport

logger = structlog.get_logger()


class ConnectionManager:
    """Connect/disconnect, status, and capped linear auto-reconnect.

    ensure_connected() is the single entry point for callers that need
    connectivity. Concurrent callers share one in-flight attempt.
    """

    def __init__(
        self,
        transport: ToolServerTransport,
        *,
        policy: RetryPolicy | None = None,
        scheduler: Scheduler | None = None,
        connect_timeout: float = 10.0,
    ) -> None:
        self._transport = transport
        self._policy = policy or RetryPolicy()
        self._scheduler = scheduler or AsyncioScheduler()
        self._connect_timeout = connect_timeout
        self._session = Session()
        self._lock = asyncio.Lock()
        self._retry_handle: ScheduledHandle | None = None
        self._closed = False
        # Bumped when an attempt finishes; lets lock waiters share its outcome
        self._generation = 0

    @property
    def is_connected(self) -> bool:
        return self._session.state == SessionState.connected

    @property
    def retry_pending(self) -> bool:
        return self._retry_handle is not None

    def get_status(self) -> ConnectionStatus:
        s = self._session
        return ConnectionStatus(
            connected=s.state == SessionState.connected,
            attempts=s.attempt_count,
            state=s.state,
            last_error=s.last_error,
        )

    async def connect(self) -> bool:
        """Attempt to connect once. Never raises; failure schedules a retry."""
        return await self._attempt(source="connect")

    async def ensure_connected(self) -> bool:
        """Return True immediately when connected, else make one attempt now."""
        if self.is_connected:
            return True
        return await self._attempt(source="ensure")

    async def disconnect(self) -> None:
        """Tear down the session. Transport errors are logged, not raised."""
        self._cancel_retry()
        async with self._lock:
            was_connected = self.is_connected
            if was_connected:
                try:
                    await self._transport.disconnect()
                except Exception:
                    logger.warning("tool_server_disconnect_failed", exc_info=True)
            self._mark_disconnected(None, reset_attempts=True)
            # An attempt that failed while we waited for the lock may have armed one
            self._cancel_retry()
        logger.info("tool_server_disconnected", was_connected=was_connected)

    async def close(self) -> None:
        """Teardown: stop retrying and disconnect. Later attempts return False."""
        self._closed = True
        await self.disconnect()

    def report_transport_error(self, error: BaseException | str) -> None:
        """Called by users of the session when a request hit a dead transport."""
        if self._session.state != SessionState.connected:
            return
        logger.warning("tool_server_connection_lost", error=str(error))
        self._mark_disconnected(str(error), reset_attempts=False)

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------

    async def _attempt(self, *, source: str) -> bool:
        if self._closed:
            return False
        generation = self._generation
        async with self._lock:
            # An attempt finished while we waited for the lock: share its outcome
            if generation != self._generation or self.is_connected:
                return self.is_connected
            if self._closed:
                return False

            self._mark_connecting()
            try:
                error = await self._connect_once()
            finally:
                self._generation += 1

            if self._closed:
                return False
            if error is None:
                self._mark_connected(source)
                return True
            self._mark_failed(error, source)
            return False

    async def _connect_once(self) -> str | None:
        """Run one transport connect under its own timeout. Returns an error or None."""
        try:
            await asyncio.wait_for(
                self._transport.connect(timeout=self._connect_timeout),
                timeout=self._connect_timeout,
            )
        except TimeoutError:
            return f"Connect timed out after {self._connect_timeout:g}s"
        except DoWhistleError as e:
            return str(e)
        except Exception as e:
            logger.exception("tool_server_connect_crashed")
            return str(e) or type(e).__name__
        return None

    async def _retry(self) -> None:
        self._retry_handle = None
        if self._closed or self.is_connected:
            return
        await self._attempt(source="retry")

    def _cancel_retry(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _mark_connecting(self) -> None:
        self._session.state = SessionState.connecting

    def _mark_connected(self, source: str) -> None:
        self._cancel_retry()
        previous_attempts = self._session.attempt_count
        self._session.state = SessionState.connected
        self._session.attempt_count = 0
        self._session.last_error = None
        logger.info(
            "tool_server_connected", source=source, previous_failures=previous_attempts
        )

    def _mark_failed(self, error: str, source: str) -> None:
        self._cancel_retry()
        s = self._session
        s.state = SessionState.failed
        s.attempt_count += 1
        s.last_error = error

        if self._policy.should_retry(s.attempt_count):
            delay = self._policy.delay_for(s.attempt_count)
            self._retry_handle = self._scheduler.schedule(delay, self._retry)
            logger.warning(
                "tool_server_connect_failed",
                source=source,
                attempt=s.attempt_count,
                max_attempts=self._policy.max_attempts,
                retry_in_s=delay,
                error=error,
            )
        else:
            logger.error(
                "tool_server_retries_exhausted",
                source=source,
                attempt=s.attempt_count,
                max_attempts=self._policy.max_attempts,
                error=error,
            )

    def _mark_disconnected(self, error: str | None, *, reset_attempts: bool) -> None:
        self._session.state = SessionState.disconnected
        self._session.last_error = error
        if reset_attempts:
            self._session.attempt_count = 0
