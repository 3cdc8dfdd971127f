"""ResultParser: tool result envelope → display text + discovered identity.

The tool server does not guarantee a stable payload layout, so match lists
are normalized first into a tagged MatchSet (one shape per known layout).
A payload that fits none of them is "unrecognized" and reads as zero results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import structlog

from dowhistle.agent.outcome import DiscoveredIdentity, IdentityKind, ParsedOutcome
from dowhistle.tools.catalog import ToolName
from dowhistle.tools.envelope import ToolResultEnvelope

logger = structlog.get_logger()

NO_RESULTS_MESSAGE = (
    "I couldn't find any matches near your location. "
    "Try a broader keyword or search a wider area."
)
SEARCH_FAILED_TEMPLATE = "Sorry, the search failed: {error}"
TOOL_FAILED_TEMPLATE = "Sorry, that request failed: {error}"
MORE_SUFFIX = "...and more"

DEFAULT_DISPLAY_LIMIT = 3

_MATCH_KEYS = ("providers", "businesses", "results")
_NAME_KEYS = ("name", "businessName", "business_name", "title")
_DISTANCE_KEYS = ("distance", "distance_km", "distanceKm")
_USER_ID_KEYS = ("user_id", "userId")
_TOKEN_KEYS = ("token", "accessToken", "access_token")

_DEFAULT_TEXT = {
    ToolName.sign_in: "Sign-in started. Enter the OTP sent to your phone.",
    ToolName.verify_otp: "You're verified and signed in.",
    ToolName.resend_otp: "A new OTP is on its way.",
}


class PayloadShape(StrEnum):
    top_level = "top_level"  # {"providers": [...]}
    data_wrapped = "data_wrapped"  # {"data": {"providers": [...]}}
    structured_content = "structured_content"  # {"structuredContent": {"result": {...}}}
    bare_list = "bare_list"  # [...]
    unrecognized = "unrecognized"


@dataclass(frozen=True)
class MatchSet:
    shape: PayloadShape
    matches: list[dict[str, Any]] = field(default_factory=list)


def _as_dict(value: Any) -> dict[str, Any] | None:
    return value if isinstance(value, dict) else None


def _matches_under(node: Any) -> list[Any] | None:
    node = _as_dict(node)
    if node is None:
        return None
    for key in _MATCH_KEYS:
        value = node.get(key)
        if isinstance(value, list):
            return value
    return None


def _structured_result(node: Any) -> dict[str, Any] | None:
    node = _as_dict(node)
    if not node:
        return None
    sc = _as_dict(node.get("structuredContent"))
    return _as_dict(sc.get("result")) if sc else None


def _coerce_matches(items: list[Any]) -> list[dict[str, Any]]:
    return [item if isinstance(item, dict) else {"name": str(item)} for item in items]


def normalize_matches(payload: Any) -> MatchSet:
    """Classify a search payload and pull out its match list."""
    if isinstance(payload, list):
        return MatchSet(PayloadShape.bare_list, _coerce_matches(payload))

    found = _matches_under(payload)
    if found is not None:
        return MatchSet(PayloadShape.top_level, _coerce_matches(found))

    root = _as_dict(payload) or {}
    data = root.get("data")
    if isinstance(data, list):
        return MatchSet(PayloadShape.data_wrapped, _coerce_matches(data))
    found = _matches_under(data)
    if found is not None:
        return MatchSet(PayloadShape.data_wrapped, _coerce_matches(found))

    for node in (payload, data):
        found = _matches_under(_structured_result(node))
        if found is not None:
            return MatchSet(PayloadShape.structured_content, _coerce_matches(found))

    return MatchSet(PayloadShape.unrecognized)


def _identity_layers(payload: Any) -> list[dict[str, Any]]:
    """Every dict an identity field may hide in, outermost first."""
    root = _as_dict(payload)
    if root is None:
        return []
    data = _as_dict(root.get("data"))
    candidates = [
        root,
        data,
        _as_dict(root.get("result")),
        _structured_result(root),
        _structured_result(data) if data else None,
    ]
    return [c for c in candidates if c is not None]


def _first_str(node: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = node.get(key)
        if isinstance(value, (str, int)) and not isinstance(value, bool) and str(value):
            return str(value)
    return None


def find_user_id(payload: Any) -> str | None:
    for layer in _identity_layers(payload):
        user = _as_dict(layer.get("user"))
        if user is not None:
            found = _first_str(user, ("id", *_USER_ID_KEYS))
            if found:
                return found
        found = _first_str(layer, _USER_ID_KEYS)
        if found:
            return found
    return None


def find_token(payload: Any) -> str | None:
    for layer in _identity_layers(payload):
        value = _first_str(layer, _TOKEN_KEYS)
        if value:
            return value
    return None


def format_distance(value: Any) -> str | None:
    """Render a distance in km with at most two decimals; None if absent."""
    if value is None or isinstance(value, bool) or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return str(value)
    return f"{number:.2f}".rstrip("0").rstrip(".")


def format_match(index: int, match: dict[str, Any]) -> str:
    name = _first_str(match, _NAME_KEYS) or "Unnamed provider"
    distance = None
    for key in _DISTANCE_KEYS:
        distance = format_distance(match.get(key))
        if distance is not None:
            break
    if distance is None:
        return f"{index}. {name}"
    return f"{index}. {name} (~{distance} km)"


def format_search(
    match_set: MatchSet,
    keyword: str | None = None,
    *,
    display_limit: int = DEFAULT_DISPLAY_LIMIT,
) -> str:
    """Header, the first `display_limit` matches in server order, and a suffix."""
    matches = match_set.matches
    if not matches:
        return NO_RESULTS_MESSAGE

    total = len(matches)
    if keyword:
        header = f'Found {total} result(s) for "{keyword}" near your location:'
    else:
        header = f"Found {total} result(s) near your location:"

    lines = [format_match(i, m) for i, m in enumerate(matches[:display_limit], start=1)]
    if total > display_limit:
        lines.append(MORE_SUFFIX)
    return header + "\n\n" + "\n".join(lines)


class ResultParser:
    """Interprets tool results for display and identity discovery."""

    def __init__(self, *, display_limit: int = DEFAULT_DISPLAY_LIMIT) -> None:
        self._display_limit = display_limit

    def parse(
        self,
        envelope: ToolResultEnvelope,
        executed_tool_name: str,
        *,
        keyword: str | None = None,
    ) -> ParsedOutcome:
        is_search = executed_tool_name == ToolName.search

        if not envelope.success:
            template = SEARCH_FAILED_TEMPLATE if is_search else TOOL_FAILED_TEMPLATE
            return ParsedOutcome(display_text=template.format(error=envelope.error))

        payload = envelope.payload
        if is_search:
            match_set = normalize_matches(payload)
            if match_set.shape == PayloadShape.unrecognized:
                logger.warning(
                    "tool_payload_unrecognized",
                    tool_name=executed_tool_name,
                    payload_type=type(payload).__name__,
                )
            logger.debug(
                "search_result_parsed",
                shape=match_set.shape,
                matches=len(match_set.matches),
            )
            return ParsedOutcome(
                display_text=format_search(
                    match_set, keyword, display_limit=self._display_limit
                )
            )

        return ParsedOutcome(
            display_text=self._message_text(payload, executed_tool_name),
            discovered_identity=self._discover_identity(payload, executed_tool_name),
        )

    def _discover_identity(
        self, payload: Any, executed_tool_name: str
    ) -> DiscoveredIdentity | None:
        if executed_tool_name == ToolName.sign_in:
            user_id = find_user_id(payload)
            if user_id:
                return DiscoveredIdentity(kind=IdentityKind.sign_in, user_id=user_id)
        elif executed_tool_name == ToolName.verify_otp:
            token = find_token(payload)
            if token:
                return DiscoveredIdentity(kind=IdentityKind.verify_otp, token=token)
        return None

    def _message_text(self, payload: Any, executed_tool_name: str) -> str:
        for layer in _identity_layers(payload):
            message = layer.get("message")
            if isinstance(message, str) and message.strip():
                return message.strip()
        return _DEFAULT_TEXT.get(executed_tool_name, "Done.")
