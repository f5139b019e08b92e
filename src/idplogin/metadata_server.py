"""Local metadata server exposing ID tokens for the signed-in session.

Once ``idplogin login`` has stored a refresh token, this server lets local
tools fetch ID tokens over HTTP without touching the credential store:

* ``GET /token`` -- a fresh ID token as ``text/plain``.
* ``GET /idptoken`` -- the same token as ``{"id_token": ...}``.
* ``GET /logout`` -- revoke the refresh token, redirect the browser to
  the IdP logout page, and stop the server.

Errors are reported as ``{"error": <message>}`` JSON.
"""

from __future__ import annotations

import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Optional
from urllib.parse import urlparse

from idplogin.exceptions import LoginError, NoSessionError
from idplogin.session import Session

logger = logging.getLogger(__name__)

DEFAULT_METADATA_PORT = 5000


class _MetadataHTTPServer(ThreadingHTTPServer):
    daemon_threads = True
    block_on_close = False

    def __init__(self, address: tuple[str, int], owner: MetadataServer) -> None:
        self.owner = owner
        super().__init__(address, _MetadataRequestHandler)


class _MetadataRequestHandler(BaseHTTPRequestHandler):
    server: _MetadataHTTPServer

    def do_GET(self) -> None:
        path = urlparse(self.path).path
        owner = self.server.owner
        if path == "/token":
            owner._handle_token(self, as_json=False)
        elif path == "/idptoken":
            owner._handle_token(self, as_json=True)
        elif path == "/logout":
            owner._handle_logout(self)
        else:
            self.send_body(404, "Not Found", "text/plain; charset=utf-8")

    def send_body(self, status: int, body: str, content_type: str) -> None:
        payload = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def send_json(self, status: int, data: dict[str, Any]) -> None:
        self.send_body(status, json.dumps(data), "application/json")

    def log_message(self, format: str, *args: Any) -> None:
        logger.info("Received " + format, *args)


class MetadataServer:
    """Serve ID tokens for the stored session on a local port.

    Args:
        session: The stored session to refresh and log out.
        host: Interface to bind.
        port: Port to bind (``0`` picks a free port).

    Example::

        server = MetadataServer(session, port=5000)
        print(f"Get token endpoint: {server.address}/token")
        server.serve_forever()
    """

    def __init__(
        self,
        session: Session,
        host: str = "localhost",
        port: int = DEFAULT_METADATA_PORT,
    ) -> None:
        self._session = session
        self._host = host
        self._server = _MetadataHTTPServer((host, port), self)
        self._stopping = threading.Event()

    @property
    def address(self) -> str:
        return f"http://{self._host}:{self._server.server_port}"

    def serve_forever(self) -> None:
        """Handle requests until :meth:`shutdown` is called or ``/logout`` succeeds."""
        logger.info("Starting metadata server %s", self.address)
        try:
            self._server.serve_forever()
        finally:
            self._server.server_close()

    def start(self) -> threading.Thread:
        """Serve from a daemon thread and return it."""
        thread = threading.Thread(target=self.serve_forever, name="idplogin-metadata", daemon=True)
        thread.start()
        return thread

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the server has been asked to stop; return whether it was."""
        return self._stopping.wait(timeout)

    def shutdown(self) -> None:
        """Stop serving. Safe to call more than once."""
        if self._stopping.is_set():
            return
        self._stopping.set()
        self._server.shutdown()

    @property
    def stopped(self) -> bool:
        return self._stopping.is_set()

    def _handle_token(self, handler: _MetadataRequestHandler, as_json: bool) -> None:
        try:
            id_token = self._session.id_token()
        except LoginError as exc:
            handler.send_json(400, {"error": exc.message})
            return
        if as_json:
            handler.send_json(200, {"id_token": id_token})
        else:
            handler.send_body(200, id_token, "text/plain; charset=utf-8")

    def _handle_logout(self, handler: _MetadataRequestHandler) -> None:
        try:
            logout_url = self._session.logout()
        except NoSessionError as exc:
            handler.send_json(400, {"error": exc.message})
            return
        except LoginError as exc:
            handler.send_body(500, exc.message, "text/plain; charset=utf-8")
            return

        handler.send_response(302)
        handler.send_header("Location", logout_url)
        handler.send_header("Content-Length", "0")
        handler.end_headers()
        handler.wfile.flush()
        # The redirect is on the wire before serve_forever() can return.
        logger.info("Session revoked, stopping metadata server")
        self.shutdown()
