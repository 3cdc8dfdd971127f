"""IntentRouter: direct coordinate search or language-model fallback.

Decision per message, first match wins:
1. Text carries a latitude and a longitude → `search` tool call. This path
   never falls back to the model; failures are reported as such.
2. Anything else → LanguageModelFallback.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from dowhistle.agent.query import SearchQuery, parse_search_query
from dowhistle.tools.catalog import ToolName

if TYPE_CHECKING:
    from dowhistle.agent.context import RequestContext
    from dowhistle.agent.fallback import LanguageModelFallback
    from dowhistle.agent.result_parser import ResultParser
    from dowhistle.auth.bridge import AuthBridge
    from dowhistle.tools.invoker import ToolInvoker

logger = structlog.get_logger()

CONNECTIVITY_MESSAGE = (
    "I'm having trouble responding right now. Please try again, "
    "or tell me how I can help with DoWhistle services."
)


class IntentRouter:
    def __init__(
        self,
        invoker: ToolInvoker,
        parser: ResultParser,
        auth: AuthBridge,
        fallback: LanguageModelFallback,
        *,
        radius_km: float = 10.0,
        result_limit: int = 10,
    ) -> None:
        self._invoker = invoker
        self._parser = parser
        self._auth = auth
        self._fallback = fallback
        self._radius_km = radius_km
        self._result_limit = result_limit
        self._cancelled = False

    def cancel(self) -> None:
        """Teardown: in-flight flows stop writing credentials once they resume."""
        self._cancelled = True

    async def route(self, raw_text: str, context: RequestContext) -> str:
        """Produce the reply for one user message. Never raises."""
        try:
            query = parse_search_query(raw_text)
            if query is None:
                logger.info("route_fallback", chars=len(raw_text))
                return await self._fallback.generate(raw_text, context)

            logger.info(
                "route_search",
                keyword=query.keyword or None,
                latitude=query.latitude,
                longitude=query.longitude,
            )
            return await self._search(query)
        except Exception:
            logger.exception("route_failed")
            return CONNECTIVITY_MESSAGE

    def search_arguments(self, query: SearchQuery) -> dict[str, Any]:
        return {
            "latitude": query.latitude,
            "longitude": query.longitude,
            "keyword": query.keyword,
            "radius": self._radius_km,
            "limit": self._result_limit,
        }

    async def _search(self, query: SearchQuery) -> str:
        return await self.run_tool(
            ToolName.search, self.search_arguments(query), keyword=query.keyword
        )

    async def run_tool(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        *,
        keyword: str | None = None,
    ) -> str:
        """Invoke → parse → apply discovered identity. Returns display text."""
        envelope = await self._invoker.invoke(tool_name, arguments)
        if envelope.not_connected:
            return CONNECTIVITY_MESSAGE

        outcome = self._parser.parse(envelope, tool_name, keyword=keyword)
        if self._cancelled:
            logger.info("route_cancelled_after_tool", tool_name=tool_name)
            return outcome.display_text
        self._auth.apply(outcome)
        return outcome.display_text
