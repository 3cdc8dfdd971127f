"""HTTP transport to the tool-execution server.

Wraps the backend's /api/mcp/* endpoints. Network failures surface as
ConnectivityError, non-2xx replies as ToolExecutionError. Retry policy lives
in ConnectionManager; this module makes exactly one request per call.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol
from urllib.parse import quote

import httpx
import structlog

from dowhistle.infra.errors import ConnectivityError, ToolExecutionError

logger = structlog.get_logger()


class ToolServerTransport(Protocol):
    """What the core needs from the tool server."""

    async def connect(self, *, timeout: float | None = None) -> None: ...

    async def disconnect(self) -> None: ...

    async def health(self, *, timeout: float | None = None) -> bool: ...

    async def execute_tool(
        self,
        tool_name: str,
        arguments: Mapping[str, Any],
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> Any: ...


def _error_message(response: httpx.Response) -> str:
    """Best-effort error text from a failed reply body."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return f"HTTP {response.status_code}: {response.reason_phrase}"


class ToolServerClient:
    """httpx-based client for the tool server's REST surface."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> Any:
        try:
            response = await self._client.request(
                method,
                path,
                json=json,
                headers=dict(headers) if headers else None,
                timeout=timeout if timeout is not None else self._timeout,
            )
        except httpx.TimeoutException as e:
            raise ConnectivityError(
                f"Request timeout: {method} {path}", code="TIMEOUT"
            ) from e
        except httpx.TransportError as e:
            raise ConnectivityError(
                f"Tool server unreachable: {e}", code="TRANSPORT_ERROR"
            ) from e

        if response.is_error:
            raise ToolExecutionError(
                _error_message(response), code=f"HTTP_{response.status_code}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise ToolExecutionError(
                f"Invalid JSON from tool server ({method} {path})",
                code="PROTOCOL_ERROR",
            ) from e

    async def connect(self, *, timeout: float | None = None) -> None:
        """Open the server-side tool session. Raises ConnectivityError on refusal."""
        data = await self._request("POST", "/api/mcp/connect", timeout=timeout)
        if isinstance(data, dict) and data.get("success") is False:
            raise ConnectivityError(
                str(data.get("error") or data.get("message") or "Connect refused")
            )

    async def disconnect(self) -> None:
        await self._request("POST", "/api/mcp/disconnect")

    async def status(self) -> dict[str, Any]:
        data = await self._request("GET", "/api/mcp/status")
        return data if isinstance(data, dict) else {"data": data}

    async def health(self, *, timeout: float | None = None) -> bool:
        data = await self._request("GET", "/api/mcp/health", timeout=timeout)
        if isinstance(data, dict):
            return data.get("success", True) is not False
        return True

    async def list_tools(self) -> list[dict[str, Any]]:
        data = await self._request("GET", "/api/mcp/tools")
        if isinstance(data, dict):
            data = data.get("data", data.get("tools", []))
        return data if isinstance(data, list) else []

    async def execute_tool(
        self,
        tool_name: str,
        arguments: Mapping[str, Any],
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> Any:
        logger.debug("tool_request", tool_name=tool_name, arg_keys=sorted(arguments))
        return await self._request(
            "POST",
            f"/api/mcp/tools/{quote(tool_name, safe='')}",
            json=dict(arguments),
            headers=headers,
            timeout=timeout,
        )

    async def aclose(self) -> None:
        await self._client.aclose()
