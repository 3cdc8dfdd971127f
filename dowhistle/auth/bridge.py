"""AuthBridge: the only writer of credentials.

Reads identity discovered in tool results (sign_in → user id,
verify_otp → token) and attaches current credentials to outbound requests.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

import structlog

from dowhistle.agent.outcome import IdentityKind

if TYPE_CHECKING:
    from dowhistle.agent.outcome import ParsedOutcome
    from dowhistle.auth.store import Credentials, CredentialStore

logger = structlog.get_logger()

AUTHORIZATION_HEADER = "Authorization"
USER_ID_HEADER = "X-User-Id"


class AuthBridge:
    def __init__(self, store: CredentialStore) -> None:
        self._store = store

    def current_credentials(self) -> Credentials:
        return self._store.get_credentials()

    def apply(self, outcome: ParsedOutcome) -> None:
        """Persist identity discovered in a parsed tool result, if any."""
        identity = outcome.discovered_identity
        if identity is None:
            return
        if identity.kind == IdentityKind.sign_in and identity.user_id:
            self._store.set_user_id(identity.user_id)
            logger.info("auth_user_id_saved", user_id=identity.user_id)
        elif identity.kind == IdentityKind.verify_otp and identity.token:
            self._store.set_token(identity.token)
            logger.info("auth_token_saved")

    def sign_out(self) -> None:
        self._store.clear()
        logger.info("auth_cleared")

    def inject_into(self, headers: Mapping[str, str] | None = None) -> dict[str, str]:
        """Return a copy of headers with bearer token and user id attached.

        Missing credentials are skipped; the request goes out unauthenticated.
        """
        result = dict(headers or {})
        creds = self._store.get_credentials()
        if creds.token:
            result[AUTHORIZATION_HEADER] = f"Bearer {creds.token}"
        if creds.user_id:
            result[USER_ID_HEADER] = creds.user_id
        return result
