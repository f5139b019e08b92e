"""OAuth 2.0 Authorization Code + PKCE building blocks.

The main entry points are:

- :class:`AuthorizationFlow` -- interactive browser sign-in behind a
  transient local listener.
- :class:`TokenClient` -- code exchange, refresh, revocation, and logout
  URL construction.
- :class:`SessionStore` -- in-memory ``state -> code_verifier`` map.
- :func:`code_challenge` / :func:`generate_random_string` -- PKCE helpers.
- :class:`CredentialStore` -- on-disk secret storage for the refresh token.

Typical usage::

    from idplogin.auth import AuthorizationFlow, TokenClient

    client = TokenClient(config)
    flow = AuthorizationFlow(config, token_client=client)
    tokens = flow.authorize("offline_access email").result()
    logout_url = client.revoke_and_get_logout_url(tokens["refresh_token"])
"""

from idplogin.auth.credential_store import REFRESH_TOKEN_KEY, CredentialStore
from idplogin.auth.flow import AuthorizationFlow, merge_scopes
from idplogin.auth.pkce import (
    RandomGenerator,
    SecureRandom,
    code_challenge,
    generate_random_string,
)
from idplogin.auth.session_store import SessionStore
from idplogin.auth.token_client import TokenClient

__all__ = [
    "AuthorizationFlow",
    "CredentialStore",
    "REFRESH_TOKEN_KEY",
    "RandomGenerator",
    "SecureRandom",
    "SessionStore",
    "TokenClient",
    "code_challenge",
    "generate_random_string",
    "merge_scopes",
]
