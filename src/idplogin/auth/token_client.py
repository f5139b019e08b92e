"""Token endpoint operations: code exchange, refresh, revocation, and logout URLs.

:class:`TokenClient` wraps an :class:`httpx.Client` and turns every
provider answer into either a parsed token response or one of two errors:

- :class:`~idplogin.exceptions.UpstreamRejection` when the endpoint answers
  with a non-200 status (the message is the provider's
  ``error_description`` or ``error``),
- :class:`~idplogin.exceptions.TransportFailure` when the request never
  completes (DNS, refused connection, timeout).

Nothing is retried. Re-running ``refresh`` or ``authorize`` is the
caller's decision.

See Also:
    :class:`idplogin.auth.flow.AuthorizationFlow` for the interactive
    sign-in that calls :meth:`TokenClient.exchange_code`.
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from idplogin.exceptions import (
    LoginError,
    LogoutIncompleteError,
    TransportFailure,
    UpstreamRejection,
)
from idplogin.models import ClientConfig, TokenResponse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def _log_request(request: httpx.Request) -> None:
    # Bodies carry codes, verifiers and secrets: method and URL only.
    logger.debug("Making request to %s %s", request.method, request.url)


def provider_error_message(response: httpx.Response) -> str:
    """Extract the provider's error text from a failed response.

    Prefers ``error_description``, then ``error`` from a JSON body, then the
    raw body text, and finally ``"Unknown Error"``.
    """
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        message = payload.get("error_description") or payload.get("error")
        if message:
            return str(message)
    return response.text.strip() or "Unknown Error"


class TokenClient:
    """Client for the IdP token and revocation endpoints.

    All requests are form-encoded POSTs. ``client_secret`` is only sent when
    the :class:`~idplogin.models.ClientConfig` has one.

    Args:
        config: The OAuth client configuration.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests pass an
            :class:`httpx.MockTransport`).

    Example::

        with TokenClient(config) as client:
            tokens = client.refresh(refresh_token)
            print(tokens["id_token"])
    """

    def __init__(
        self,
        config: ClientConfig,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._config = config
        self._client = httpx.Client(
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
            event_hooks={"request": [_log_request]},
        )

    @property
    def config(self) -> ClientConfig:
        return self._config

    def __enter__(self) -> TokenClient:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        self._client.close()

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------

    def exchange_code(self, code: str, code_verifier: str, redirect_uri: str) -> TokenResponse:
        """Exchange an authorization code and its PKCE verifier for tokens.

        Args:
            code: The authorization code from the callback.
            code_verifier: The unhashed verifier whose challenge was sent
                in the authorization request.
            redirect_uri: The exact redirect URI used in that request.

        Returns:
            The token endpoint JSON.

        Raises:
            UpstreamRejection: On a non-200 answer.
            TransportFailure: If the endpoint cannot be reached.
        """
        data = {
            "grant_type": "authorization_code",
            **self._config.client_credentials(),
            "code": code,
            "code_verifier": code_verifier,
            "redirect_uri": redirect_uri,
        }
        return self._token_request(data)

    def refresh(self, refresh_token: str) -> TokenResponse:
        """Exchange a refresh token for a fresh token response.

        Raises:
            UpstreamRejection: On a non-200 answer, e.g. ``invalid_grant``.
            TransportFailure: If the endpoint cannot be reached.
        """
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            **self._config.client_credentials(),
        }
        return self._token_request(data)

    def revoke(self, token: str, token_type: str) -> None:
        """Revoke *token* at the revocation endpoint.

        Args:
            token: The token to revoke.
            token_type: The ``token_type_hint``, e.g. ``"refresh_token"``.

        Raises:
            UpstreamRejection: Unless the endpoint answers 200.
            TransportFailure: If the endpoint cannot be reached.
        """
        data = {
            "token": token,
            "token_type_hint": token_type,
            **self._config.client_credentials(),
        }
        response = self._post(self._config.revoke_uri, data)
        if response.status_code != 200:
            raise UpstreamRejection(
                provider_error_message(response),
                status_code=response.status_code,
                body=response.text,
            )
        logger.info("Revoked %s", token_type)

    # ------------------------------------------------------------------
    # Logout
    # ------------------------------------------------------------------

    def logout_url(self, id_token: str) -> str:
        """Build the RP-initiated logout URL carrying *id_token* as the hint."""
        separator = "&" if "?" in self._config.logout_uri else "?"
        return f"{self._config.logout_uri}{separator}id_token_hint={quote(id_token, safe='')}"

    def revoke_and_get_logout_url(self, refresh_token: str) -> str:
        """Revoke *refresh_token* and return the logout URL for the session.

        The logout endpoint needs an ``id_token_hint`` that the caller cannot
        rebuild, so the refresh token is first exchanged for a current ID
        token and only then revoked.

        Raises:
            UpstreamRejection: If the refresh is rejected (nothing is
                revoked) or the refresh response has no ``id_token``.
            TransportFailure: If the refresh cannot reach the endpoint.
            LogoutIncompleteError: If the refresh succeeded but the
                revocation failed. The error carries the refreshed response
                and the logout URL.
        """
        token_response = self.refresh(refresh_token)
        id_token = token_response.get("id_token")
        if not id_token:
            raise UpstreamRejection("Token response missing 'id_token' field", status_code=200)
        logout_url = self.logout_url(id_token)

        try:
            self.revoke(refresh_token, "refresh_token")
        except LoginError as exc:
            status = exc.status_code if isinstance(exc, UpstreamRejection) else 0
            raise LogoutIncompleteError(
                f"Refresh token was refreshed but could not be revoked: {exc}",
                token_response=token_response,
                logout_url=logout_url,
                status_code=status,
            ) from exc
        return logout_url

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _post(self, url: str, data: dict[str, str]) -> httpx.Response:
        try:
            return self._client.post(url, data=data)
        except httpx.HTTPError as exc:
            raise TransportFailure(str(exc) or exc.__class__.__name__) from exc

    def _token_request(self, data: dict[str, str]) -> TokenResponse:
        response = self._post(self._config.token_uri, data)
        if response.status_code != 200:
            raise UpstreamRejection(
                provider_error_message(response),
                status_code=response.status_code,
                body=response.text,
            )
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            raise UpstreamRejection(
                "Token endpoint returned a non-JSON response",
                status_code=response.status_code,
                body=response.text,
            )
        logger.debug("Token endpoint answered %s grant", data["grant_type"])
        return payload
