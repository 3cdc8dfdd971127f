from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class SessionState(StrEnum):
    disconnected = "disconnected"
    connecting = "connecting"
    connected = "connected"
    failed = "failed"


@dataclass
class Session:
    """The single logical connection to the tool server.

    Mutated only by ConnectionManager transition methods. Everyone else
    reads a ConnectionStatus snapshot.
    """

    state: SessionState = SessionState.disconnected
    attempt_count: int = 0
    last_error: str | None = None


@dataclass(frozen=True)
class ConnectionStatus:
    """Read-only snapshot of the session for callers and presentation."""

    connected: bool
    attempts: int
    state: SessionState
    last_error: str | None = None
