from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class IdentityKind(StrEnum):
    sign_in = "sign_in"
    verify_otp = "verify_otp"


@dataclass(frozen=True)
class DiscoveredIdentity:
    """Auth artifact found in a tool result."""

    kind: IdentityKind
    user_id: str | None = None
    token: str | None = None


@dataclass(frozen=True)
class ParsedOutcome:
    display_text: str
    discovered_identity: DiscoveredIdentity | None = None
