"""Tests for ConnectionManager: state machine, capped reconnect, shared attempts."""

from __future__ import annotations

import asyncio

import pytest

from dowhistle.infra.errors import ConnectivityError
from dowhistle.session.manager import ConnectionManager
from dowhistle.session.models import SessionState
from dowhistle.session.retry import RetryPolicy


class TestRetryPolicy:
    def test_defaults(self) -> None:
        p = RetryPolicy()
        assert (p.max_attempts, p.base_delay, p.max_delay) == (5, 2.0, 30.0)

    def test_linear_delay(self) -> None:
        p = RetryPolicy(base_delay=2.0, max_delay=30.0)
        assert [p.delay_for(n) for n in (1, 2, 3)] == [2.0, 4.0, 6.0]

    def test_delay_capped(self) -> None:
        p = RetryPolicy(max_attempts=10, base_delay=2.0, max_delay=5.0)
        assert p.delay_for(4) == 5.0

    def test_should_retry_below_cap_only(self) -> None:
        p = RetryPolicy(max_attempts=3)
        assert p.should_retry(2)
        assert not p.should_retry(3)


class TestConnect:
    @pytest.mark.asyncio
    async def test_success_marks_connected(self, connection, fake_transport) -> None:
        assert await connection.connect() is True
        status = connection.get_status()
        assert status.connected
        assert status.state == SessionState.connected
        assert status.attempts == 0
        assert fake_transport.connect_calls == 1

    @pytest.mark.asyncio
    async def test_failure_schedules_retry(
        self, connection, fake_transport, fake_scheduler
    ) -> None:
        fake_transport.fail_connect = True
        assert await connection.connect() is False
        status = connection.get_status()
        assert status.state == SessionState.failed
        assert status.attempts == 1
        assert "unreachable" in status.last_error
        assert [h.delay for h in fake_scheduler.active] == [2.0]
        assert connection.retry_pending

    @pytest.mark.asyncio
    async def test_retries_stop_at_max_attempts(
        self, connection, fake_transport, fake_scheduler
    ) -> None:
        fake_transport.fail_connect = True
        await connection.connect()
        await fake_scheduler.fire_next()
        assert [h.delay for h in fake_scheduler.active] == [4.0]

        await fake_scheduler.fire_next()
        status = connection.get_status()
        assert status.state == SessionState.failed
        assert status.attempts == 3
        assert fake_scheduler.active == []
        assert not connection.retry_pending
        assert fake_transport.connect_calls == 3

    @pytest.mark.asyncio
    async def test_retry_success_resets_attempts(
        self, connection, fake_transport, fake_scheduler
    ) -> None:
        fake_transport.connect_errors = [ConnectivityError("refused"), None]
        await connection.connect()
        await fake_scheduler.fire_next()
        status = connection.get_status()
        assert status.connected
        assert status.attempts == 0
        assert status.last_error is None

    @pytest.mark.asyncio
    async def test_unexpected_exception_counts_as_failure(
        self, connection, fake_transport
    ) -> None:
        fake_transport.connect_errors = [RuntimeError("boom")]
        assert await connection.connect() is False
        assert connection.get_status().last_error == "boom"

    @pytest.mark.asyncio
    async def test_connect_timeout_is_failure(self, fake_transport, fake_scheduler) -> None:
        fake_transport.connect_delay = 1.0
        manager = ConnectionManager(
            fake_transport, scheduler=fake_scheduler, connect_timeout=0.01
        )
        assert await manager.connect() is False
        assert "timed out" in manager.get_status().last_error


class TestEnsureConnected:
    @pytest.mark.asyncio
    async def test_connected_makes_no_network_call(self, connection, fake_transport) -> None:
        await connection.connect()
        assert await connection.ensure_connected() is True
        assert await connection.ensure_connected() is True
        assert fake_transport.connect_calls == 1

    @pytest.mark.asyncio
    async def test_attempts_immediately_and_cancels_pending_retry(
        self, connection, fake_transport, fake_scheduler
    ) -> None:
        fake_transport.connect_errors = [ConnectivityError("refused"), None]
        await connection.connect()
        pending = fake_scheduler.active[0]

        assert await connection.ensure_connected() is True
        assert pending.cancelled
        assert not connection.retry_pending

    @pytest.mark.asyncio
    async def test_user_attempt_allowed_after_exhaustion(
        self, connection, fake_transport, fake_scheduler
    ) -> None:
        fake_transport.fail_connect = True
        await connection.connect()
        await fake_scheduler.fire_next()
        await fake_scheduler.fire_next()
        assert fake_scheduler.active == []

        fake_transport.fail_connect = False
        assert await connection.ensure_connected() is True

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_attempt(
        self, connection, fake_transport
    ) -> None:
        fake_transport.connect_delay = 0.01
        results = await asyncio.gather(
            connection.ensure_connected(), connection.ensure_connected()
        )
        assert results == [True, True]
        assert fake_transport.connect_calls == 1

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_failed_attempt(
        self, connection, fake_transport, fake_scheduler
    ) -> None:
        fake_transport.fail_connect = True
        fake_transport.connect_delay = 0.01
        results = await asyncio.gather(
            *(connection.ensure_connected() for _ in range(3))
        )
        assert results == [False, False, False]
        assert fake_transport.connect_calls == 1
        assert connection.get_status().attempts == 1
        assert [h.delay for h in fake_scheduler.active] == [2.0]

    @pytest.mark.asyncio
    async def test_later_caller_makes_fresh_attempt(self, connection, fake_transport) -> None:
        fake_transport.fail_connect = True
        await connection.ensure_connected()
        await connection.ensure_connected()
        assert fake_transport.connect_calls == 2
        assert connection.get_status().attempts == 2


class TestDisconnect:
    @pytest.mark.asyncio
    async def test_disconnect_when_connected(self, connection, fake_transport) -> None:
        await connection.connect()
        await connection.disconnect()
        assert connection.get_status().state == SessionState.disconnected
        assert fake_transport.disconnect_calls == 1

    @pytest.mark.asyncio
    async def test_disconnect_when_not_connected_skips_transport(
        self, connection, fake_transport, fake_scheduler
    ) -> None:
        fake_transport.fail_connect = True
        await connection.connect()
        await connection.disconnect()
        assert fake_transport.disconnect_calls == 0
        assert fake_scheduler.active == []
        assert connection.get_status().attempts == 0

    @pytest.mark.asyncio
    async def test_disconnect_during_failing_attempt_leaves_no_retry(
        self, connection, fake_transport, fake_scheduler
    ) -> None:
        fake_transport.fail_connect = True
        fake_transport.connect_delay = 0.05
        attempt = asyncio.create_task(connection.connect())
        await asyncio.sleep(0)

        await connection.disconnect()
        assert await attempt is False
        assert connection.get_status().state == SessionState.disconnected
        assert fake_scheduler.active == []
        assert not connection.retry_pending

    @pytest.mark.asyncio
    async def test_close_blocks_further_attempts(
        self, connection, fake_transport, fake_scheduler
    ) -> None:
        fake_transport.fail_connect = True
        await connection.connect()
        await connection.close()
        assert fake_scheduler.active == []

        fake_transport.fail_connect = False
        assert await connection.ensure_connected() is False
        assert fake_transport.connect_calls == 1

    @pytest.mark.asyncio
    async def test_transport_error_drops_connection(self, connection, fake_transport) -> None:
        await connection.connect()
        connection.report_transport_error(ConnectivityError("reset by peer"))
        status = connection.get_status()
        assert status.state == SessionState.disconnected
        assert status.last_error == "reset by peer"

        assert await connection.ensure_connected() is True
        assert fake_transport.connect_calls == 2

    def test_transport_error_ignored_when_not_connected(self, connection) -> None:
        connection.report_transport_error("late error")
        assert connection.get_status().last_error is None
