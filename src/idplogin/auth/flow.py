"""Interactive Authorization Code + PKCE flow behind a transient local listener.

:class:`AuthorizationFlow` runs the browser half of the sign-in:

1. :meth:`~AuthorizationFlow.authorize` binds a local HTTP listener and
   opens the default browser at ``<listener>/auth``.
2. ``GET /auth`` provisions a state token and a code verifier, remembers
   the verifier keyed by state, sets an ``HttpOnly`` ``session_state``
   cookie, and redirects to the IdP authorization endpoint with the S256
   challenge. The ``redirect_uri`` is the listener's ``/callback``.
3. ``GET /callback`` checks the returned state against the cookie and the
   session store, exchanges ``code`` + verifier for tokens, and redirects
   the browser to the configured success page.
4. The listener shuts down and the future returned by ``authorize()``
   completes with the token response or the error.

Only one flow may run per :class:`AuthorizationFlow` instance at a time.

See Also:
    :class:`idplogin.auth.token_client.TokenClient` for the code exchange.
"""

from __future__ import annotations

import logging
import threading
import webbrowser
from concurrent.futures import Future
from dataclasses import dataclass
from http.cookies import SimpleCookie
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Optional
from urllib.parse import parse_qs, quote, urlencode, urlparse

from idplogin.auth.pkce import (
    CODE_VERIFIER_LENGTH,
    STATE_LENGTH,
    VERIFIER_ALPHABET,
    RandomGenerator,
    SecureRandom,
    code_challenge,
)
from idplogin.auth.session_store import SessionStore
from idplogin.auth.token_client import TokenClient
from idplogin.exceptions import (
    ConcurrencyViolation,
    ProtocolViolation,
    TransportFailure,
    UpstreamRejection,
)
from idplogin.models import ClientConfig, TokenResponse

logger = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 5555
BASELINE_SCOPE = "openid"  # required for the IdP to return an ID token
SCOPE_SEPARATOR = " "
SESSION_COOKIE = "session_state"
INVALID_RESPONSE = "Invalid IdP response"


def merge_scopes(scopes: Optional[str]) -> str:
    """Return *scopes* with the baseline ``openid`` scope appended if absent."""
    requested = (scopes or "").split()
    if BASELINE_SCOPE not in requested:
        requested.append(BASELINE_SCOPE)
    return SCOPE_SEPARATOR.join(requested)


def _first(query: dict[str, list[str]], name: str) -> Optional[str]:
    values = query.get(name)
    return values[0] if values else None


def _read_cookie(header: Optional[str], name: str) -> Optional[str]:
    """Return cookie *name* from a ``Cookie`` header.

    Pairs are split by hand so that a malformed cookie set by another
    localhost app cannot hide the ones after it.
    """
    for pair in (header or "").split(";"):
        key, sep, value = pair.partition("=")
        if sep and key.strip() == name:
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] == '"':
                value = value[1:-1]
            return value
    return None


@dataclass
class _RunningFlow:
    """Listener handle and pending result of the flow in progress."""

    server: _ListenerServer
    address: str
    scopes: str
    future: Future[TokenResponse]
    closed: bool = False
    completed: bool = False

    @property
    def redirect_uri(self) -> str:
        return f"{self.address}/callback"


class _ListenerServer(ThreadingHTTPServer):
    # Handlers tear the server down from their own thread.
    daemon_threads = True
    block_on_close = False

    def __init__(self, address: tuple[str, int], flow: AuthorizationFlow) -> None:
        self.flow = flow
        self.running: Optional[_RunningFlow] = None
        super().__init__(address, _FlowRequestHandler)


class _FlowRequestHandler(BaseHTTPRequestHandler):
    server: _ListenerServer

    def do_GET(self) -> None:
        parsed = urlparse(self.path)
        running = self.server.running
        if running is None:
            self.send_text(503, "Listener is not ready")
        elif parsed.path == "/auth":
            self.server.flow._handle_auth(self, running)
        elif parsed.path == "/callback":
            self.server.flow._handle_callback(self, running, parse_qs(parsed.query))
        else:
            self.send_text(404, "Not Found")

    def send_text(self, status: int, body: str) -> None:
        payload = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def redirect(self, location: str, cookie: Optional[str] = None) -> None:
        self.send_response(302)
        self.send_header("Location", location)
        if cookie is not None:
            self.send_header("Set-Cookie", cookie)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("listener: " + format, *args)


class AuthorizationFlow:
    """Run the PKCE authorization code flow through a local listener.

    Args:
        config: The OAuth client configuration.
        token_client: Client used for the code exchange. One is created
            from *config* when omitted.
        host: Interface the listener binds to.
        port: Default listener port (``0`` picks a free port).
        random: Source of state tokens and code verifiers.
        sessions: Store correlating state tokens to verifiers.
        open_browser: Callable that opens a URL in the user's browser.

    Example::

        flow = AuthorizationFlow(config)
        future = flow.authorize("offline_access email")
        try:
            tokens = future.result()
        finally:
            flow.close()
    """

    def __init__(
        self,
        config: ClientConfig,
        token_client: Optional[TokenClient] = None,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        random: Optional[RandomGenerator] = None,
        sessions: Optional[SessionStore] = None,
        open_browser: Callable[[str], Any] = webbrowser.open,
    ) -> None:
        self._config = config
        self._token_client = token_client or TokenClient(config)
        self._host = host
        self._port = port
        self._random = random or SecureRandom()
        self._sessions = sessions if sessions is not None else SessionStore()
        self._open_browser = open_browser
        self._lock = threading.Lock()
        self._running: Optional[_RunningFlow] = None

    @property
    def is_running(self) -> bool:
        """Whether a listener is currently bound."""
        return self._running is not None

    @property
    def address(self) -> Optional[str]:
        """Base URL of the bound listener, e.g. ``http://localhost:5555``."""
        running = self._running
        return running.address if running is not None else None

    @property
    def scopes(self) -> Optional[str]:
        """Scopes requested by the running flow (baseline included)."""
        running = self._running
        return running.scopes if running is not None else None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def authorize(
        self, scopes: Optional[str] = None, port: Optional[int] = None
    ) -> Future[TokenResponse]:
        """Start the listener and the browser sign-in.

        Args:
            scopes: Optional space-delimited scopes. ``openid`` is always
                requested in addition.
            port: Listener port. Defaults to the port given at construction.

        Returns:
            A future that completes with the token response, or fails with
            :class:`~idplogin.exceptions.ProtocolViolation`,
            :class:`~idplogin.exceptions.UpstreamRejection`, or
            :class:`~idplogin.exceptions.TransportFailure`. It is cancelled
            if :meth:`close` runs first.

        Raises:
            ConcurrencyViolation: If a flow is already in progress.
            TransportFailure: If the listener cannot bind.
        """
        bind_port = self._port if port is None else port
        with self._lock:
            if self._running is not None:
                raise ConcurrencyViolation(
                    "Pending authorization flow. Close existing session to rerun."
                )
            self._sessions.clear()
            try:
                server = _ListenerServer((self._host, bind_port), self)
            except OSError as exc:
                raise TransportFailure(
                    f"Cannot bind login listener on {self._host}:{bind_port}: {exc}"
                ) from exc

            running = _RunningFlow(
                server=server,
                address=f"http://{self._host}:{server.server_port}",
                scopes=merge_scopes(scopes),
                future=Future(),
            )
            server.running = running
            self._running = running

        threading.Thread(
            target=server.serve_forever, name="idplogin-listener", daemon=True
        ).start()
        logger.info("Login listener on %s, redirecting to authorization URL", running.address)

        # Open the browser off-thread so a slow launcher never blocks the caller
        threading.Thread(
            target=self._open_browser, args=(f"{running.address}/auth",), daemon=True
        ).start()
        return running.future

    def close(self) -> None:
        """Stop the listener and cancel a still-pending result.

        Idempotent and safe when no flow is active. A ``/callback`` request
        that is already being handled runs to completion.
        """
        running = self._running
        if running is None:
            return
        self._teardown(running)
        if self._claim(running):
            running.future.cancel()

    def _claim(self, running: _RunningFlow) -> bool:
        """Return ``True`` for the single caller allowed to complete the future."""
        with self._lock:
            if running.completed:
                return False
            running.completed = True
            return True

    def _teardown(self, running: _RunningFlow) -> None:
        with self._lock:
            if self._running is running:
                self._running = None
            if running.closed:
                return
            running.closed = True
        running.server.shutdown()
        running.server.server_close()
        logger.debug("Login listener on %s closed", running.address)

    def _finish(
        self,
        running: _RunningFlow,
        result: Optional[TokenResponse] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        self._teardown(running)
        if not self._claim(running):
            return
        # Done-callbacks run inside these calls; the lock must not be held.
        if error is not None:
            running.future.set_exception(error)
        else:
            running.future.set_result(result or {})

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def build_authorization_url(self, state: str, challenge: str, redirect_uri: str, scopes: str) -> str:
        """Return the IdP authorization URL for one sign-in attempt."""
        params = {
            "client_id": self._config.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": scopes,
            "code_challenge": challenge,
            "code_challenge_method": "S256",
            "prompt": "login",
            "state": state,
        }
        separator = "&" if "?" in self._config.auth_uri else "?"
        return f"{self._config.auth_uri}{separator}{urlencode(params, safe='', quote_via=quote)}"

    def _handle_auth(self, handler: _FlowRequestHandler, running: _RunningFlow) -> None:
        verifier = self._random.generate(CODE_VERIFIER_LENGTH, VERIFIER_ALPHABET)
        state = self._random.generate(STATE_LENGTH)
        self._sessions.put(state, verifier)

        cookie = SimpleCookie()
        cookie[SESSION_COOKIE] = state
        cookie[SESSION_COOKIE]["httponly"] = True
        cookie[SESSION_COOKIE]["path"] = "/"

        location = self.build_authorization_url(
            state, code_challenge(verifier), running.redirect_uri, running.scopes
        )
        handler.redirect(location, cookie=cookie[SESSION_COOKIE].OutputString())

    def _consume_state(
        self,
        cookie_state: Optional[str],
        query_state: Optional[str],
        code: Optional[str],
    ) -> str:
        """Validate the callback parameters and take the matching verifier.

        Raises:
            ProtocolViolation: If ``state`` or ``code`` is missing, the cookie
                state differs, or the state was never issued or is consumed.
        """
        if not query_state or not code or cookie_state != query_state:
            raise ProtocolViolation(INVALID_RESPONSE)
        verifier = self._sessions.take(query_state)
        if verifier is None:
            raise ProtocolViolation(INVALID_RESPONSE)
        return verifier

    def _handle_callback(
        self,
        handler: _FlowRequestHandler,
        running: _RunningFlow,
        query: dict[str, list[str]],
    ) -> None:
        code = _first(query, "code")
        try:
            verifier = self._consume_state(
                _read_cookie(handler.headers.get("Cookie"), SESSION_COOKIE),
                _first(query, "state"),
                code,
            )
        except ProtocolViolation as exc:
            exc.detail = _first(query, "error_description") or _first(query, "error")
            logger.warning("Rejected IdP callback (%s)", exc.detail or "state validation failed")
            handler.send_text(400, INVALID_RESPONSE)
            self._finish(running, error=exc)
            return

        assert code is not None
        try:
            tokens = self._token_client.exchange_code(code, verifier, running.redirect_uri)
        except UpstreamRejection as exc:
            status = exc.status_code if 400 <= exc.status_code < 600 else 502
            handler.send_text(status, exc.body or exc.message)
            self._finish(running, error=exc)
            return
        except TransportFailure as exc:
            handler.send_text(500, exc.message)
            self._finish(running, error=exc)
            return
        except Exception as exc:
            handler.send_text(500, str(exc))
            self._finish(running, error=exc)
            return

        handler.redirect(self._config.success_uri)
        logger.info("Authorization code exchanged")
        self._finish(running, result=tokens)
