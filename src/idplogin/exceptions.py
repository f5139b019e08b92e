"""Exception hierarchy for idplogin.

All exceptions inherit from :class:`LoginError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`idplogin.exit_codes`.
The top-level error handler in :func:`idplogin.app.main` catches
``LoginError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    LoginError (exit 1)
    +-- ConfigError              (exit 2)
    +-- ProtocolViolation        (exit 3)
    +-- UpstreamRejection        (exit 4)
    |   +-- LogoutIncompleteError (exit 4)
    +-- TransportFailure         (exit 5)
    +-- ConcurrencyViolation     (exit 6)
    +-- NoSessionError           (exit 7)
"""

from __future__ import annotations

from typing import Any, Optional

from idplogin.exit_codes import (
    EXIT_CONFIG_ERROR,
    EXIT_FLOW_IN_PROGRESS,
    EXIT_GENERIC_FAILURE,
    EXIT_NO_SESSION,
    EXIT_PROTOCOL_VIOLATION,
    EXIT_TRANSPORT_FAILURE,
    EXIT_UPSTREAM_REJECTION,
)


class LoginError(Exception):
    """Base exception for all idplogin errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`idplogin.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(LoginError):
    """Raised for configuration problems (missing client config, relative URIs, invalid JSON)."""

    exit_code = EXIT_CONFIG_ERROR


class ProtocolViolation(LoginError):
    """Raised when the IdP callback is malformed or fails anti-CSRF validation.

    Covers a missing ``code`` or ``state``, a ``state`` that differs from the
    ``session_state`` cookie, and a ``state`` that was never issued (or was
    already consumed). Never retried.

    Args:
        message: Error text (the browser always sees ``Invalid IdP response``).
        detail: Optional ``error``/``error_description`` sent by the IdP.
    """

    exit_code = EXIT_PROTOCOL_VIOLATION

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.detail = detail


class UpstreamRejection(LoginError):
    """Raised when the token or revocation endpoint answers with a non-200 status.

    The message is the provider's ``error_description`` or ``error`` verbatim.

    Args:
        message: The provider's error text.
        status_code: HTTP status returned by the provider.
        body: Raw response body, relayed to the browser on a failed callback.
    """

    exit_code = EXIT_UPSTREAM_REJECTION

    def __init__(self, message: str, status_code: int = 0, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class LogoutIncompleteError(UpstreamRejection):
    """Raised when revocation fails after the refresh step of a logout succeeded.

    The refresh token was exchanged successfully (so a logout URL could be
    built) but the provider refused to revoke it, leaving its server-side
    state unknown. Both halves are surfaced: the refreshed response and the
    best-effort logout URL are attached, and the revocation error is chained
    as ``__cause__``.

    Args:
        message: Description including the revocation error text.
        token_response: The successful refresh response.
        logout_url: Logout URL built from the refreshed ID token.
        status_code: HTTP status of the failed revocation (``0`` for
            transport errors).
    """

    def __init__(
        self,
        message: str,
        token_response: dict[str, Any],
        logout_url: str,
        status_code: int = 0,
    ):
        super().__init__(message, status_code=status_code)
        self.token_response = token_response
        self.logout_url = logout_url


class TransportFailure(LoginError):
    """Raised on network-level failures (timeout, DNS, refused connection, bind errors)."""

    exit_code = EXIT_TRANSPORT_FAILURE


class ConcurrencyViolation(LoginError):
    """Raised when ``authorize()`` is called while another flow is still running."""

    exit_code = EXIT_FLOW_IN_PROGRESS


class NoSessionError(LoginError):
    """Raised when an operation needs a stored refresh token and none exists."""

    exit_code = EXIT_NO_SESSION
