"""LanguageModelFallback: free-text replies for anything the router can't answer directly.

One completion request per message, bounded output, no retry. Failures
become FALLBACK_APOLOGY; nothing is raised to the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from dowhistle.agent.prompt_builder import build_system_prompt
from dowhistle.auth.bridge import AUTHORIZATION_HEADER
from dowhistle.infra.errors import FallbackError

if TYPE_CHECKING:
    from dowhistle.agent.context import RequestContext
    from dowhistle.agent.model_client import ModelClient
    from dowhistle.auth.bridge import AuthBridge

logger = structlog.get_logger()

FALLBACK_APOLOGY = (
    "Sorry, I couldn't come up with an answer just now. "
    "Please try again, or ask me about DoWhistle rides, services, or offers."
)
EMPTY_COMPLETION_TEXT = (
    "I'm here to help with DoWhistle: rides, local services, and nearby offers. "
    "What do you need?"
)

# Offline replies, first matching rule wins
_CANNED_RULES: list[tuple[tuple[str, ...], str]] = [
    (
        ("book", "ride"),
        "I can help you find nearby ride providers on DoWhistle. Share your pickup "
        "area and I'll connect you with available Whistlers.",
    ),
    (
        ("service", "provider", "offer"),
        "DoWhistle connects you with nearby rides, local services, and retail offers. "
        "Are you looking to book a service, find a deal, or register as a provider?",
    ),
    (
        ("location", "area"),
        "Tell me your location or allow location access, and I'll show nearby "
        "Whistlers that match your need.",
    ),
    (
        ("price", "cost", "fare"),
        "Pricing depends on the provider, distance, and service type. I can help you "
        "compare nearby options before you connect.",
    ),
    (
        ("help", "how"),
        "I'm your DoWhistle Assistant. I can guide you to post a Whistle, find nearby "
        "providers, or connect with rides and services.",
    ),
]
_CANNED_DEFAULT = (
    "Hi! I'm the DoWhistle Assistant. I can help you find rides, local services, "
    "or nearby offers. What do you need right now?"
)


def canned_reply(text: str) -> str:
    lower = text.lower()
    for words, reply in _CANNED_RULES:
        if any(word in lower for word in words):
            return reply
    return _CANNED_DEFAULT


class LanguageModelFallback:
    """Completion-backed replies; canned replies when no model client is configured."""

    def __init__(
        self,
        model_client: ModelClient | None,
        model: str = "gpt-4o-mini",
        *,
        auth: AuthBridge | None = None,
        max_tokens: int = 300,
        temperature: float | None = 0.7,
        timeout: float = 20.0,
    ) -> None:
        self._model_client = model_client
        self._model = model
        self._auth = auth
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._timeout = timeout

    async def generate(self, raw_text: str, context: RequestContext) -> str:
        if self._model_client is None:
            logger.debug("fallback_offline_reply")
            return canned_reply(raw_text)

        try:
            text = await self._complete(raw_text, context)
        except FallbackError as e:
            logger.warning(
                "fallback_failed",
                error=str(e),
                cause=type(e.__cause__).__name__ if e.__cause__ else None,
            )
            return FALLBACK_APOLOGY

        return text if text.strip() else EMPTY_COMPLETION_TEXT

    async def _complete(self, raw_text: str, context: RequestContext) -> str:
        messages = [
            {"role": "system", "content": build_system_prompt(context)},
            {"role": "user", "content": raw_text},
        ]
        headers = None
        if self._auth is not None:
            # The bearer token is left off model requests: Authorization there
            # carries the provider API key. Only the correlation header goes out.
            headers = self._auth.inject_into({})
            headers.pop(AUTHORIZATION_HEADER, None)
        try:
            return await self._model_client.chat(
                messages,
                self._model,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
                timeout=self._timeout,
                extra_headers=headers,
            )
        except Exception as e:
            raise FallbackError(str(e) or type(e).__name__) from e
