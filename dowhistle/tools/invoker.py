"""ToolInvoker: one remote tool call over the managed session.

Flow: ensure_connected → required-argument check → auth headers → single call.
Never raises; every outcome is a ToolResultEnvelope. No retries here.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

import structlog

from dowhistle.infra.errors import ConnectivityError, ToolExecutionError
from dowhistle.tools.catalog import missing_arguments
from dowhistle.tools.envelope import (
    MISSING_ARGUMENT,
    NOT_CONNECTED,
    TIMEOUT,
    TOOL_ERROR,
    TRANSPORT_ERROR,
    ToolCallEnvelope,
    ToolResultEnvelope,
)

if TYPE_CHECKING:
    from dowhistle.auth.bridge import AuthBridge
    from dowhistle.session.manager import ConnectionManager
    from dowhistle.transport.client import ToolServerTransport

logger = structlog.get_logger()


def _unwrap_reply(raw: Any) -> ToolResultEnvelope:
    """Map the server's {success, data?, error?} reply onto an envelope.

    Replies without a success flag are treated as a bare successful payload.
    """
    if isinstance(raw, dict) and "success" in raw:
        if raw["success"]:
            return ToolResultEnvelope.ok(raw.get("data"))
        error = raw.get("error") or raw.get("message") or "Tool call failed"
        return ToolResultEnvelope.fail(str(error), code=TOOL_ERROR)
    return ToolResultEnvelope.ok(raw)


class ToolInvoker:
    """Executes named tools on the tool server."""

    def __init__(
        self,
        transport: ToolServerTransport,
        connection: ConnectionManager,
        *,
        auth: AuthBridge | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._transport = transport
        self._connection = connection
        self._auth = auth
        self._timeout = timeout

    async def invoke(
        self, tool_name: str, arguments: dict[str, Any] | None = None
    ) -> ToolResultEnvelope:
        call = ToolCallEnvelope(tool_name=tool_name, arguments=dict(arguments or {}))

        if not await self._connection.ensure_connected():
            logger.warning("tool_skipped_not_connected", tool_name=tool_name)
            return ToolResultEnvelope.fail("not connected", code=NOT_CONNECTED)

        missing = missing_arguments(call.tool_name, call.arguments)
        if missing:
            return ToolResultEnvelope.fail(
                f"Missing required argument(s) for {tool_name}: {', '.join(missing)}",
                code=MISSING_ARGUMENT,
            )

        headers = self._auth.inject_into({}) if self._auth is not None else {}
        return await self._execute(call, headers)

    async def _execute(
        self, call: ToolCallEnvelope, headers: dict[str, str]
    ) -> ToolResultEnvelope:
        t0 = time.monotonic()
        try:
            raw = await asyncio.wait_for(
                self._transport.execute_tool(
                    call.tool_name,
                    call.arguments,
                    headers=headers,
                    timeout=self._timeout,
                ),
                timeout=self._timeout,
            )
        except TimeoutError:
            result = ToolResultEnvelope.fail(
                f"Tool {call.tool_name} timed out after {self._timeout:g}s", code=TIMEOUT
            )
        except ConnectivityError as e:
            if e.code == TIMEOUT:
                result = ToolResultEnvelope.fail(str(e), code=TIMEOUT)
            else:
                self._connection.report_transport_error(e)
                result = ToolResultEnvelope.fail(str(e), code=TRANSPORT_ERROR)
        except ToolExecutionError as e:
            result = ToolResultEnvelope.fail(str(e), code=TOOL_ERROR)
        except Exception as e:
            logger.exception("tool_invoke_crashed", tool_name=call.tool_name)
            result = ToolResultEnvelope.fail(str(e) or type(e).__name__, code=TOOL_ERROR)
        else:
            result = _unwrap_reply(raw)

        logger.info(
            "tool_invoked",
            tool_name=call.tool_name,
            success=result.success,
            error_code=result.error_code,
            elapsed_s=round(time.monotonic() - t0, 3),
        )
        return result
