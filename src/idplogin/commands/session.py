"""Session commands -- sign in, fetch tokens, serve them, and sign out.

These are registered directly on the root application:

* ``idplogin login`` -- browser sign-in; stores the refresh token.
* ``idplogin token`` -- refresh and print an ID token.
* ``idplogin serve`` -- run the local metadata server.
* ``idplogin logout`` -- revoke the refresh token and open the IdP logout page.
* ``idplogin status`` -- report whether a session is stored.

Typical workflow::

    idplogin login --serve       # sign in, then serve tokens on :5000
    curl localhost:5000/token    # fresh ID token
    idplogin logout
"""

from __future__ import annotations

import webbrowser
from typing import NoReturn, Optional

import typer

from idplogin.auth.credential_store import REFRESH_TOKEN_KEY, CredentialStore
from idplogin.auth.flow import AuthorizationFlow
from idplogin.auth.token_client import TokenClient
from idplogin.exceptions import (
    LoginError,
    LogoutIncompleteError,
    TransportFailure,
    UpstreamRejection,
)
from idplogin.metadata_server import MetadataServer
from idplogin.models import ClientConfig, Settings
from idplogin.output import (
    debug,
    error,
    format_response,
    info,
    print_data,
    success,
    suggest,
    warning,
)
from idplogin.session import Session


def _fail(exc: LoginError) -> NoReturn:
    error(exc.message)
    raise typer.Exit(code=exc.exit_code)


def _settings() -> Settings:
    from idplogin.config import load_settings

    try:
        return load_settings()
    except LoginError as exc:
        _fail(exc)


def _client_config(ctx: typer.Context) -> ClientConfig:
    """Load the client config, honouring the global ``--client-config`` flag."""
    from idplogin.config import load_client_config

    cli_path = ctx.obj.get("client_config") if ctx.obj else None
    try:
        return load_client_config(cli_path)
    except LoginError as exc:
        _fail(exc)


def _serve(session: Session, settings: Settings, port: Optional[int]) -> None:
    bind_port = settings.metadata_port if port is None else port
    try:
        server = MetadataServer(session, host=settings.host, port=bind_port)
    except OSError as exc:
        _fail(TransportFailure(f"Cannot bind metadata server on {settings.host}:{bind_port}: {exc}"))
    info(f"Get token endpoint: {server.address}/token")
    info(f"Get IdP token endpoint: {server.address}/idptoken")
    info(f"Logout endpoint: {server.address}/logout")
    server.serve_forever()
    info("Metadata server stopped.")


def login_command(
    ctx: typer.Context,
    scopes: Optional[str] = typer.Option(
        None, "--scopes", "-s", help="Space-delimited scopes (openid is always added)."
    ),
    port: Optional[int] = typer.Option(None, "--port", help="Login listener port."),
    serve: bool = typer.Option(
        False, "--serve/--no-serve", help="Start the metadata server after sign-in."
    ),
) -> None:
    """Sign in through the browser and store the refresh token.

    Any previously stored refresh token is discarded first. The command
    blocks until the IdP redirects back to the local listener.

    Raises:
        typer.Exit: With the error's exit code if sign-in fails.

    Example::

        idplogin login
        idplogin login --scopes "offline_access email profile" --serve
    """
    settings = _settings()
    client_config = _client_config(ctx)
    store = CredentialStore(settings.app_id)

    with TokenClient(client_config, timeout=settings.timeout) as client:
        session = Session(client, store)
        if session.clear():
            debug("Discarded previously stored refresh token")

        flow = AuthorizationFlow(
            client_config,
            token_client=client,
            host=settings.host,
            port=settings.port if port is None else port,
        )
        try:
            future = flow.authorize(scopes or settings.default_scopes)
            info(f"Waiting for sign-in at {flow.address}/auth ...")
            tokens = future.result()
        except LoginError as exc:
            _fail(exc)
        finally:
            flow.close()

        if session.save(tokens):
            success("Signed in. Refresh token stored.")
        else:
            warning("Signed in, but the IdP returned no refresh token (request offline_access).")

        if serve:
            _serve(session, settings, None)
        else:
            suggest("Serve ID tokens locally: idplogin serve")


def token_command(
    ctx: typer.Context,
    raw: bool = typer.Option(False, "--raw", help="Print only the ID token."),
) -> None:
    """Refresh the stored session and print a fresh ID token.

    A rotated refresh token returned by the IdP replaces the stored one.

    Example::

        idplogin token
        TOKEN=$(idplogin token --raw)
    """
    settings = _settings()
    client_config = _client_config(ctx)

    with TokenClient(client_config, timeout=settings.timeout) as client:
        session = Session(client, CredentialStore(settings.app_id))
        try:
            tokens = session.refresh()
        except LoginError as exc:
            _fail(exc)

    id_token = tokens.get("id_token")
    if not id_token:
        _fail(UpstreamRejection("Token response missing 'id_token' field", status_code=200))

    if raw:
        print_data(id_token)
        return
    data = {"id_token": id_token}
    for key in ("token_type", "expires_in", "scope"):
        if key in tokens:
            data[key] = tokens[key]
    format_response(data)


def serve_command(
    ctx: typer.Context,
    port: Optional[int] = typer.Option(None, "--port", help="Metadata server port."),
) -> None:
    """Serve ID tokens for the stored session over local HTTP.

    Runs until interrupted or until ``/logout`` is requested.

    Example::

        idplogin serve
        idplogin serve --port 8081
    """
    settings = _settings()
    client_config = _client_config(ctx)

    with TokenClient(client_config, timeout=settings.timeout) as client:
        session = Session(client, CredentialStore(settings.app_id))
        if not session.is_active():
            warning("No session stored yet; token requests will fail until you log in.")
        _serve(session, settings, port)


def logout_command(
    ctx: typer.Context,
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Print the logout URL without opening it."
    ),
) -> None:
    """Revoke the stored refresh token and end the IdP session.

    The local token is deleted even if revocation fails. The IdP logout
    URL is printed to stdout and, unless ``--no-browser`` is given, opened
    in the default browser.

    Example::

        idplogin logout
        idplogin logout --no-browser
    """
    settings = _settings()
    client_config = _client_config(ctx)

    with TokenClient(client_config, timeout=settings.timeout) as client:
        session = Session(client, CredentialStore(settings.app_id))
        try:
            logout_url = session.logout()
        except LogoutIncompleteError as exc:
            print_data(exc.logout_url)
            _fail(exc)
        except LoginError as exc:
            _fail(exc)

    print_data(logout_url)
    if not no_browser:
        webbrowser.open(logout_url)
    success("Refresh token revoked.")


def status_command() -> None:
    """Show whether a session is stored.

    Does not contact the IdP.

    Example::

        idplogin status --json
    """
    settings = _settings()
    store = CredentialStore(settings.app_id)
    active = store.get(REFRESH_TOKEN_KEY) is not None
    format_response(
        {
            "app_id": settings.app_id,
            "signed_in": active,
            "credential_file": str(store.path),
        }
    )
    if not active:
        suggest("Sign in: idplogin login")
