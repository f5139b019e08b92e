"""The signed-in session: a refresh token kept in the credential store.

:class:`Session` ties a :class:`~idplogin.auth.token_client.TokenClient`
to a :class:`~idplogin.auth.credential_store.CredentialStore`. Both the CLI
commands and the metadata server go through it, so refresh-token rotation
and logout behave the same everywhere.
"""

from __future__ import annotations

import logging
from typing import Optional

from idplogin.auth.credential_store import REFRESH_TOKEN_KEY, CredentialStore
from idplogin.auth.token_client import TokenClient
from idplogin.exceptions import NoSessionError, UpstreamRejection
from idplogin.models import TokenResponse

logger = logging.getLogger(__name__)

NO_SESSION_MESSAGE = "No session detected. Please login first."


class Session:
    """Refresh, persist, and end the stored session.

    Args:
        token_client: Client for the IdP token and revocation endpoints.
        store: Where the refresh token is kept.
    """

    def __init__(self, token_client: TokenClient, store: CredentialStore) -> None:
        self._client = token_client
        self._store = store

    @property
    def refresh_token(self) -> Optional[str]:
        return self._store.get(REFRESH_TOKEN_KEY)

    def is_active(self) -> bool:
        return self.refresh_token is not None

    def clear(self) -> bool:
        return self._store.delete(REFRESH_TOKEN_KEY)

    def save(self, tokens: TokenResponse) -> bool:
        """Persist the refresh token of *tokens* if it carries one."""
        refresh_token = tokens.get("refresh_token")
        if not refresh_token:
            return False
        self._store.set(REFRESH_TOKEN_KEY, refresh_token)
        return True

    def refresh(self) -> TokenResponse:
        """Refresh the stored token, persisting a rotated refresh token.

        Raises:
            NoSessionError: If no refresh token is stored.
            UpstreamRejection: If the IdP rejects the refresh.
            TransportFailure: If the IdP cannot be reached.
        """
        refresh_token = self.refresh_token
        if refresh_token is None:
            raise NoSessionError(NO_SESSION_MESSAGE)
        tokens = self._client.refresh(refresh_token)
        if self.save(tokens):
            logger.debug("Stored rotated refresh token")
        return tokens

    def id_token(self) -> str:
        """Return a fresh ID token for the stored session."""
        tokens = self.refresh()
        id_token = tokens.get("id_token")
        if not id_token:
            raise UpstreamRejection("Token response missing 'id_token' field", status_code=200)
        return id_token

    def logout(self) -> str:
        """Forget the stored token, revoke it, and return the IdP logout URL.

        The token is deleted locally before revocation, so a failed
        revocation still ends the local session.

        Raises:
            NoSessionError: If no refresh token is stored.
            LogoutIncompleteError: If revocation failed after the refresh.
        """
        refresh_token = self.refresh_token
        if refresh_token is None:
            raise NoSessionError(NO_SESSION_MESSAGE)
        self.clear()
        return self._client.revoke_and_get_logout_url(refresh_token)
