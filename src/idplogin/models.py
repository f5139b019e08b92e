"""Canonical Pydantic models shared across all idplogin modules.

**Configuration models**:
    :class:`ClientConfig` -- the OAuth client registration and IdP endpoints,
    read from ``oauth-config.json``.
    :class:`Settings` -- local defaults (listener host/ports, application id,
    scopes, timeouts), persisted as ``config.json`` in the config directory.

**Wire shapes**:
    :data:`TokenResponse` -- the token endpoint JSON, kept as an opaque dict.

All models use Pydantic v2. :class:`ClientConfig` is frozen so that a flow
can never observe a half-updated configuration.
"""

from __future__ import annotations

from typing import Any, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

TokenResponse = dict[str, Any]
"""Token endpoint response. Only ``id_token`` and ``refresh_token`` are interpreted."""


def _require_absolute(value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"must be an absolute http(s) URI, got {value!r}")
    return value


# --- Client Config ---


class ClientConfig(BaseModel):
    """OAuth client registration and identity provider endpoints.

    Field aliases match the camelCase keys of ``oauth-config.json``; the
    snake_case names are accepted as well.

    Example::

        ClientConfig(
            client_id="my-client",
            auth_uri="https://idp.example.com/oauth2/v1/authorize",
            token_uri="https://idp.example.com/oauth2/v1/token",
            revoke_uri="https://idp.example.com/oauth2/v1/revoke",
            logout_uri="https://idp.example.com/oauth2/v1/logout",
            success_uri="https://example.com/signed-in",
        )
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    client_id: str = Field(alias="clientId", min_length=1)
    client_secret: Optional[str] = Field(default=None, alias="clientSecret")
    auth_uri: str = Field(alias="authUri", description="Authorization endpoint")
    token_uri: str = Field(alias="tokenUri", description="Token endpoint")
    revoke_uri: str = Field(alias="revokeUri", description="Revocation endpoint")
    logout_uri: str = Field(alias="logoutUri", description="RP-initiated logout endpoint")
    success_uri: str = Field(
        alias="successUri", description="Where the browser lands after sign-in"
    )

    @field_validator("auth_uri", "token_uri", "revoke_uri", "logout_uri", "success_uri")
    @classmethod
    def _check_absolute(cls, value: str) -> str:
        return _require_absolute(value)

    def client_credentials(self) -> dict[str, str]:
        """Return the ``client_id`` (and ``client_secret`` when set) form fields."""
        data = {"client_id": self.client_id}
        if self.client_secret:
            data["client_secret"] = self.client_secret
        return data


# --- Local Settings ---


class Settings(BaseModel):
    """Local defaults persisted in the idplogin config directory.

    Attributes:
        host: Interface the login listener and metadata server bind to.
        port: Default port of the transient login listener.
        metadata_port: Port of the long-running metadata server.
        app_id: Key under which the refresh token is stored.
        default_scopes: Scopes requested by ``idplogin login``.
        timeout: Timeout in seconds for token/revoke endpoint calls.
    """

    host: str = Field(default="localhost")
    port: int = Field(default=5555, ge=0, le=65535)
    metadata_port: int = Field(default=5000, ge=0, le=65535)
    app_id: str = Field(default="WorkforcePoolTesting", min_length=1)
    default_scopes: str = Field(default="offline_access email")
    timeout: float = Field(default=30.0, gt=0)
