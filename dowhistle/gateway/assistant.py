"""Assistant: composition root consumed by presentation layers.

Owns the wiring (connection, health, router, auth, location) and the
teardown flag. Presentation calls send(text) and renders the ChatMessage.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from dowhistle.agent.context import RequestContext, StaticLocation
from dowhistle.agent.fallback import LanguageModelFallback
from dowhistle.agent.model_client import OpenAICompatModelClient
from dowhistle.agent.result_parser import ResultParser
from dowhistle.agent.router import CONNECTIVITY_MESSAGE, IntentRouter
from dowhistle.auth.bridge import AuthBridge
from dowhistle.auth.store import InMemoryCredentialStore
from dowhistle.gateway.protocol import AssistantStatus, ChatMessage, ToolCommand
from dowhistle.session.health import HealthMonitor
from dowhistle.session.manager import ConnectionManager
from dowhistle.session.retry import RetryPolicy
from dowhistle.tools.invoker import ToolInvoker
from dowhistle.transport.client import ToolServerClient

if TYPE_CHECKING:
    from dowhistle.agent.context import LocationProvider
    from dowhistle.auth.store import CredentialStore
    from dowhistle.config.settings import Settings

logger = structlog.get_logger()

Closer = Callable[[], Awaitable[None]]

UNKNOWN_COMMAND_MESSAGE = "Please say which action to run."


class Assistant:
    def __init__(
        self,
        router: IntentRouter,
        connection: ConnectionManager,
        auth: AuthBridge,
        *,
        health: HealthMonitor | None = None,
        location: LocationProvider | None = None,
        closers: list[Closer] | None = None,
    ) -> None:
        self._router = router
        self._connection = connection
        self._auth = auth
        self._health = health
        self._location = location or StaticLocation()
        self._closers = closers or []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def auth(self) -> AuthBridge:
        return self._auth

    async def start(self) -> None:
        """Initial connect (failure schedules background retries) and health probing."""
        connected = await self._connection.connect()
        logger.info("assistant_started", connected=connected)
        if self._health is not None and not self._closed:
            self._health.start()

    def build_context(self, text: str) -> RequestContext:
        creds = self._auth.current_credentials()
        return RequestContext(
            raw_text=text,
            location=self._location.get_location(),
            credentials=creds if (creds.user_id or creds.token) else None,
        )

    async def send(self, text: str) -> ChatMessage | None:
        """Route one user message. None for blank input or after close()."""
        if self._closed or not text.strip():
            return None
        context = self.build_context(text)
        try:
            reply = await self._router.route(text, context)
        except Exception:
            logger.exception("assistant_send_failed")
            reply = CONNECTIVITY_MESSAGE
        if self._closed:
            return None
        return ChatMessage(text=reply)

    async def execute(
        self, tool_name: str, arguments: dict[str, Any] | None = None
    ) -> ChatMessage | None:
        """Run an explicit tool command (sign-in, OTP, whistles...)."""
        if self._closed:
            return None
        try:
            command = ToolCommand(tool_name=tool_name, arguments=arguments or {})
        except ValidationError:
            return ChatMessage(text=UNKNOWN_COMMAND_MESSAGE)
        try:
            reply = await self._router.run_tool(command.tool_name, command.arguments)
        except Exception:
            logger.exception("assistant_execute_failed", tool_name=command.tool_name)
            reply = CONNECTIVITY_MESSAGE
        if self._closed:
            return None
        return ChatMessage(text=reply)

    def status(self) -> AssistantStatus:
        conn = self._connection.get_status()
        return AssistantStatus(
            connected=conn.connected,
            health_ok=self._health.connected if self._health is not None else conn.connected,
            attempts=conn.attempts,
            state=conn.state,
            last_error=conn.last_error,
            authenticated=self._auth.current_credentials().is_authenticated,
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._router.cancel()
        if self._health is not None:
            await self._health.stop()
        await self._connection.close()
        for closer in self._closers:
            try:
                await closer()
            except Exception:
                logger.warning("assistant_close_step_failed", exc_info=True)
        logger.info("assistant_closed")


def build_assistant(
    settings: Settings,
    *,
    store: CredentialStore | None = None,
    location: LocationProvider | None = None,
) -> Assistant:
    """Wire the real HTTP transport, OpenAI client, and in-memory stores."""
    ts = settings.tool_server
    transport = ToolServerClient(ts.base_url, timeout=ts.request_timeout_s)
    connection = ConnectionManager(
        transport,
        policy=RetryPolicy(
            max_attempts=ts.max_connect_attempts,
            base_delay=ts.retry_base_delay_s,
            max_delay=ts.retry_max_delay_s,
        ),
        connect_timeout=ts.connect_timeout_s,
    )
    health = HealthMonitor(
        transport.health, interval=ts.health_interval_s, timeout=ts.health_timeout_s
    )
    auth = AuthBridge(store or InMemoryCredentialStore())
    closers: list[Closer] = [transport.aclose]

    model_client = None
    if settings.openai.api_key:
        model_client = OpenAICompatModelClient(
            api_key=settings.openai.api_key, base_url=settings.openai.base_url
        )
        closers.append(model_client.close)
    else:
        logger.warning("openai_api_key_missing", msg="Using offline canned replies")

    fallback = LanguageModelFallback(
        model_client,
        settings.openai.model,
        auth=auth,
        max_tokens=settings.openai.max_output_tokens,
        temperature=settings.openai.temperature,
        timeout=settings.openai.timeout_s,
    )
    router = IntentRouter(
        ToolInvoker(transport, connection, auth=auth, timeout=ts.request_timeout_s),
        ResultParser(display_limit=settings.search.display_limit),
        auth,
        fallback,
        radius_km=settings.search.radius_km,
        result_limit=settings.search.result_limit,
    )
    return Assistant(
        router, connection, auth, health=health, location=location, closers=closers
    )
