"""idplogin -- Interactive OAuth 2.0 sign-in with PKCE for desktop tooling.

This package signs a user in against an OpenID Connect identity provider
using the Authorization Code grant with PKCE (:rfc:`7636`). A transient
local HTTP listener acts as the redirect target for the browser sign-in.
The resulting refresh token can later be exchanged for fresh ID tokens,
revoked, and turned into an RP-initiated logout URL.

Typical workflow::

    idplogin login           # browser sign-in, refresh token stored locally
    idplogin token           # print a fresh ID token
    idplogin logout          # revoke and print the IdP logout URL

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware settings and client configuration loading.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    metadata_server: Local token/logout endpoints for a signed-in session.
"""

__version__ = "0.3.0"
