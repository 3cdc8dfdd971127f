"""Custom exception hierarchy for the DoWhistle assistant core.

All application-specific exceptions inherit from DoWhistleError,
which carries an error code that ends up in result envelopes and logs.
"""

from __future__ import annotations


class DoWhistleError(Exception):
    """Base exception for all assistant errors."""

    def __init__(self, message: str, *, code: str = "INTERNAL_ERROR") -> None:
        super().__init__(message)
        self.code = code


class ConnectivityError(DoWhistleError):
    """Tool server unreachable, timed out, or session not connected."""

    def __init__(self, message: str, *, code: str = "NOT_CONNECTED") -> None:
        super().__init__(message, code=code)


class ToolExecutionError(DoWhistleError):
    """Tool server reachable, but the call failed or returned success=false."""

    def __init__(self, message: str, *, code: str = "TOOL_ERROR") -> None:
        super().__init__(message, code=code)


class LLMError(DoWhistleError):
    """Errors from completion API calls (timeouts, rate limits, failures)."""

    def __init__(self, message: str, *, code: str = "LLM_ERROR") -> None:
        super().__init__(message, code=code)


class FallbackError(LLMError):
    """Language-model fallback could not produce a reply."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="FALLBACK_ERROR")
