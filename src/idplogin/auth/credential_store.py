"""Persistent secret store keyed by application id.

Stores secrets in ``~/.local/share/idplogin/credentials/<app_id>.json``
(XDG) or the platform-equivalent directory. Files are written atomically
via :func:`~idplogin.config.atomic_write` with ``0o600`` permissions so
that secrets are never world-readable, even momentarily.

Each application id maps to one JSON file holding any number of named
entries. idplogin itself only uses :data:`REFRESH_TOKEN_KEY`.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from idplogin.config import atomic_write, get_data_dir

REFRESH_TOKEN_KEY = "RefreshToken"


class CredentialEntry(BaseModel):
    """A single stored secret.

    Attributes:
        value: The secret itself.
        updated_at: UTC time of the last write.
    """

    value: str
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CredentialFile(BaseModel):
    """On-disk layout of one application's secrets."""

    entries: dict[str, CredentialEntry] = Field(default_factory=dict)


def _credentials_dir() -> Path:
    """Return the credentials directory, creating it if needed."""
    path = get_data_dir() / "credentials"
    path.mkdir(parents=True, exist_ok=True)
    return path


class CredentialStore:
    """Get, set, and delete secrets for a single application id.

    A missing or unreadable file reads as empty; writes replace the whole
    file atomically.

    Args:
        app_id: Identifier the secrets are keyed under.

    Example::

        store = CredentialStore("WorkforcePoolTesting")
        store.set(REFRESH_TOKEN_KEY, "rt-123")
        assert store.get(REFRESH_TOKEN_KEY) == "rt-123"
    """

    def __init__(self, app_id: str) -> None:
        self._app_id = app_id
        self._path = _credentials_dir() / f"{app_id}.json"

    @property
    def path(self) -> Path:
        """The filesystem path to this application's credential file."""
        return self._path

    def get(self, key: str) -> Optional[str]:
        """Return the secret stored under *key*, or ``None``."""
        entry = self._load().entries.get(key)
        return entry.value if entry is not None else None

    def set(self, key: str, value: str) -> None:
        """Store *value* under *key*, replacing any previous value.

        Raises:
            OSError: If the file cannot be written.
        """
        data = self._load()
        data.entries[key] = CredentialEntry(value=value)
        self._save(data)

    def delete(self, key: str) -> bool:
        """Remove *key*. Returns ``True`` if an entry was deleted."""
        data = self._load()
        if data.entries.pop(key, None) is None:
            return False
        if data.entries:
            self._save(data)
        else:
            self._path.unlink(missing_ok=True)
        return True

    def _load(self) -> CredentialFile:
        if not self._path.is_file():
            return CredentialFile()
        try:
            return CredentialFile.model_validate_json(self._path.read_text(encoding="utf-8"))
        except (ValidationError, OSError):
            return CredentialFile()

    def _save(self, data: CredentialFile) -> None:
        text = json.dumps(data.model_dump(mode="json"), indent=2) + "\n"
        atomic_write(self._path, text, mode=0o600)
