from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

NOT_CONNECTED = "NOT_CONNECTED"
MISSING_ARGUMENT = "MISSING_ARGUMENT"
TIMEOUT = "TIMEOUT"
TRANSPORT_ERROR = "TRANSPORT_ERROR"
TOOL_ERROR = "TOOL_ERROR"


@dataclass(frozen=True)
class ToolCallEnvelope:
    """A named tool call as sent to the tool server."""

    tool_name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResultEnvelope:
    """Uniform result of one tool invocation.

    success=True  -> payload is meaningful, error is None.
    success=False -> error (and error_code) are meaningful, payload is None.
    """

    success: bool
    payload: Any = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def ok(cls, payload: Any) -> ToolResultEnvelope:
        return cls(success=True, payload=payload)

    @classmethod
    def fail(cls, error: str, *, code: str = TOOL_ERROR) -> ToolResultEnvelope:
        return cls(success=False, error=error, error_code=code)

    @property
    def not_connected(self) -> bool:
        return not self.success and self.error_code == NOT_CONNECTED
