"""Shared pytest fixtures for DoWhistle assistant tests.

Provides in-process fakes for the tool server transport and the retry
scheduler, so reconnection and tool flows run deterministically without
a network or real timers.
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from dowhistle.auth.bridge import AuthBridge
from dowhistle.auth.store import InMemoryCredentialStore
from dowhistle.infra.errors import ConnectivityError
from dowhistle.session.manager import ConnectionManager
from dowhistle.session.retry import RetryPolicy


class FakeHandle:
    def __init__(self, delay: float, callback) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Records scheduled retries; tests fire them by hand."""

    def __init__(self) -> None:
        self.handles: list[FakeHandle] = []

    def schedule(self, delay: float, callback) -> FakeHandle:
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def active(self) -> list[FakeHandle]:
        return [h for h in self.handles if not h.cancelled]

    async def fire_next(self) -> None:
        handle = self.active[0]
        self.handles.remove(handle)
        await handle.callback()


class FakeTransport:
    """Scriptable stand-in for ToolServerClient.

    connect_errors: consumed one per connect() call (None means success);
    once empty, fail_connect decides. replies: consumed one per tool call;
    an exception instance is raised instead of returned.
    """

    def __init__(self) -> None:
        self.connect_errors: list[BaseException | None] = []
        self.fail_connect = False
        self.connect_delay = 0.0
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.healthy = True
        self.replies: list[Any] = []
        self.tool_delay = 0.0
        self.tool_calls: list[tuple[str, dict[str, Any], dict[str, str]]] = []

    async def connect(self, *, timeout: float | None = None) -> None:
        self.connect_calls += 1
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.connect_errors:
            error = self.connect_errors.pop(0)
            if error is not None:
                raise error
            return
        if self.fail_connect:
            raise ConnectivityError("Tool server unreachable", code="TRANSPORT_ERROR")

    async def disconnect(self) -> None:
        self.disconnect_calls += 1

    async def health(self, *, timeout: float | None = None) -> bool:
        return self.healthy

    async def execute_tool(self, tool_name, arguments, *, headers=None, timeout=None):
        self.tool_calls.append((tool_name, dict(arguments), dict(headers or {})))
        if self.tool_delay:
            await asyncio.sleep(self.tool_delay)
        reply = self.replies.pop(0) if self.replies else {"success": True, "data": None}
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture()
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def fake_scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture()
def connection(fake_transport, fake_scheduler) -> ConnectionManager:
    return ConnectionManager(
        fake_transport,
        policy=RetryPolicy(max_attempts=3, base_delay=2.0, max_delay=5.0),
        scheduler=fake_scheduler,
        connect_timeout=1.0,
    )


@pytest.fixture()
def credential_store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture()
def auth(credential_store) -> AuthBridge:
    return AuthBridge(credential_store)
