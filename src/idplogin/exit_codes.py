"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~idplogin.exceptions.LoginError` subclass.
Wrapper scripts can inspect the exit code to tell a rejected grant from a
network outage without parsing stderr.

Example::

    $ idplogin token
    $ echo $?
    7   # EXIT_NO_SESSION -- run `idplogin login` first
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_CONFIG_ERROR = 2
"""The client configuration or settings file is missing or invalid."""

EXIT_PROTOCOL_VIOLATION = 3
"""The identity provider callback was malformed or failed state validation."""

EXIT_UPSTREAM_REJECTION = 4
"""The token or revocation endpoint rejected the request."""

EXIT_TRANSPORT_FAILURE = 5
"""A network-level error occurred (timeout, DNS failure, connection refused, bind failure)."""

EXIT_FLOW_IN_PROGRESS = 6
"""Another authorization flow is already running in this process."""

EXIT_NO_SESSION = 7
"""No stored refresh token was found."""
