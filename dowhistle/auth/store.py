from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class Credentials:
    user_id: str | None = None
    token: str | None = None
    is_authenticated: bool = False


class CredentialStore(Protocol):
    """External credential storage. Persistence is the implementer's concern."""

    def get_credentials(self) -> Credentials: ...

    def set_user_id(self, user_id: str) -> None: ...

    def set_token(self, token: str) -> None: ...

    def clear(self) -> None: ...


class InMemoryCredentialStore:
    """Process-local store. Setting a token marks the user authenticated."""

    def __init__(self, credentials: Credentials | None = None) -> None:
        self._credentials = credentials or Credentials()

    def get_credentials(self) -> Credentials:
        return self._credentials

    def set_user_id(self, user_id: str) -> None:
        c = self._credentials
        self._credentials = Credentials(
            user_id=user_id, token=c.token, is_authenticated=c.is_authenticated
        )

    def set_token(self, token: str) -> None:
        self._credentials = Credentials(
            user_id=self._credentials.user_id, token=token, is_authenticated=True
        )

    def clear(self) -> None:
        self._credentials = Credentials()
