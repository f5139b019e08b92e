"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for idplogin:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.idplogin/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Settings** -- A single :class:`~idplogin.models.Settings` JSON file
  storing local defaults (listener ports, application id, scopes).
* **Client config** -- The OAuth client registration
  (:class:`~idplogin.models.ClientConfig`) read from ``oauth-config.json``.
  :func:`find_client_config` applies the lookup precedence.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from idplogin.exceptions import ConfigError
from idplogin.models import ClientConfig, Settings

_APP_NAME = "idplogin"
_SETTINGS_FILENAME = "config.json"
CLIENT_CONFIG_FILENAME = "oauth-config.json"

CLIENT_CONFIG_ENV = "IDPLOGIN_CLIENT_CONFIG"
CLIENT_SECRET_ENV = "IDPLOGIN_CLIENT_SECRET"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/idplogin/`` (default ``~/.config/idplogin/``).
    On macOS/Windows: ``~/.idplogin/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (credentials, crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/idplogin/`` (default ``~/.local/share/idplogin/``).
    On macOS/Windows: ``~/.idplogin/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. When *mode* is given
    the permissions are applied before any content is written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        if mode is not None:
            os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


def _read_json(path: Path, what: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read {what} at {path}: {exc}") from exc


# --- Settings ---


def settings_path() -> Path:
    """Path to the settings file."""
    return get_config_dir() / _SETTINGS_FILENAME


def load_settings() -> Settings:
    """Load local settings from the config directory.

    Returns:
        The deserialised :class:`~idplogin.models.Settings`. If the file
        does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            validation.
    """
    path = settings_path()
    if not path.is_file():
        return Settings()
    data = _read_json(path, "settings")
    try:
        return Settings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings at {path}: {exc}") from exc


def save_settings(settings: Settings) -> None:
    """Persist the settings atomically to disk."""
    data = settings.model_dump(mode="json")
    atomic_write(settings_path(), json.dumps(data, indent=2) + "\n")


# --- Client config ---


def find_client_config(cli_path: Optional[str] = None) -> Path:
    """Locate ``oauth-config.json``.

    Precedence (high to low):
        1. ``cli_path`` (the ``--client-config`` flag)
        2. ``IDPLOGIN_CLIENT_CONFIG`` environment variable
        3. ``./oauth-config.json``
        4. ``<config_dir>/oauth-config.json``

    Raises:
        ConfigError: If an explicitly named file does not exist, or no
            candidate exists at all.
    """
    explicit = cli_path or os.environ.get(CLIENT_CONFIG_ENV)
    if explicit:
        path = Path(explicit).expanduser()
        if not path.is_file():
            raise ConfigError(f"Client config not found: {path}")
        return path

    for candidate in (Path.cwd() / CLIENT_CONFIG_FILENAME, get_config_dir() / CLIENT_CONFIG_FILENAME):
        if candidate.is_file():
            return candidate

    raise ConfigError(
        f"No {CLIENT_CONFIG_FILENAME} found in the current directory or {get_config_dir()}"
    )


def parse_client_config(data: Any, source: str = "<memory>") -> ClientConfig:
    """Validate a client config mapping, applying the client secret override.

    Raises:
        ConfigError: If a required field is missing or a URI is not absolute.
    """
    if not isinstance(data, dict):
        raise ConfigError(f"Client config at {source} must be a JSON object")
    secret = os.environ.get(CLIENT_SECRET_ENV)
    if secret:
        data = {**data, "clientSecret": secret}
    try:
        return ClientConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid client config at {source}: {exc}") from exc


def load_client_config(cli_path: Optional[str] = None) -> ClientConfig:
    """Find, read, and validate the OAuth client configuration."""
    path = find_client_config(cli_path)
    return parse_client_config(_read_json(path, "client config"), str(path))
