"""Shared test fixtures for idplogin.

Provides reusable fixtures for isolated config environments, client
configurations, output state, and running CLI commands. These fixtures
are automatically discovered by pytest and available to all test modules
without explicit imports.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from idplogin.models import ClientConfig
from idplogin.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Client config fixtures
# ---------------------------------------------------------------------------


CLIENT_CONFIG_DATA: dict[str, Any] = {
    "clientId": "test-client",
    "authUri": "https://idp.example.com/oauth2/v1/authorize",
    "tokenUri": "https://idp.example.com/oauth2/v1/token",
    "revokeUri": "https://idp.example.com/oauth2/v1/revoke",
    "logoutUri": "https://idp.example.com/oauth2/v1/logout",
    "successUri": "https://app.example.com/signed-in",
}


@pytest.fixture
def client_config_data() -> dict[str, Any]:
    """Raw ``oauth-config.json`` contents (camelCase keys, no secret)."""
    return dict(CLIENT_CONFIG_DATA)


@pytest.fixture
def client_config(client_config_data: dict[str, Any]) -> ClientConfig:
    """A validated public-client configuration."""
    return ClientConfig.model_validate(client_config_data)


@pytest.fixture
def client_config_file(isolated_config: Path, client_config_data: dict[str, Any]) -> Path:
    """Write ``oauth-config.json`` into the isolated working directory."""
    path = isolated_config / "oauth-config.json"
    path.write_text(json.dumps(client_config_data))
    return path


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path
    so that tests never touch real user config or credentials. Clears all
    IDPLOGIN_* environment variables and changes the working directory to
    tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("idplogin.config._is_xdg_platform", lambda: True)

    for var in ["IDPLOGIN_CLIENT_CONFIG", "IDPLOGIN_CLIENT_SECRET"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for the test."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner.

    Returns a CliRunner instance that captures stdout/stderr and
    provides a consistent interface for invoking Typer apps in tests.
    """
    from typer.testing import CliRunner

    return CliRunner()
