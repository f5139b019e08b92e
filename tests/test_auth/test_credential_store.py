"""Tests for the credential store."""

from __future__ import annotations

import json
import os
import stat
from pathlib import Path

import pytest

from idplogin.auth.credential_store import REFRESH_TOKEN_KEY, CredentialEntry, CredentialStore


@pytest.fixture()
def store(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> CredentialStore:
    """Create a CredentialStore that writes to a temp directory."""
    monkeypatch.setattr("idplogin.auth.credential_store.get_data_dir", lambda: tmp_path)
    return CredentialStore("test-app")


class TestCredentialEntry:
    def test_timestamp_defaults_to_now_utc(self) -> None:
        entry = CredentialEntry(value="abc")
        assert entry.value == "abc"
        assert entry.updated_at.tzinfo is not None


class TestCredentialStore:
    def test_path_is_keyed_by_app_id(self, store: CredentialStore, tmp_path: Path) -> None:
        assert store.path == tmp_path / "credentials" / "test-app.json"

    def test_get_missing(self, store: CredentialStore) -> None:
        assert store.get(REFRESH_TOKEN_KEY) is None

    def test_set_and_get(self, store: CredentialStore) -> None:
        store.set(REFRESH_TOKEN_KEY, "rt-1")
        assert store.get(REFRESH_TOKEN_KEY) == "rt-1"

    def test_set_replaces(self, store: CredentialStore) -> None:
        store.set(REFRESH_TOKEN_KEY, "rt-1")
        store.set(REFRESH_TOKEN_KEY, "rt-2")
        assert store.get(REFRESH_TOKEN_KEY) == "rt-2"

    def test_entries_are_independent(self, store: CredentialStore) -> None:
        store.set("a", "1")
        store.set("b", "2")
        assert store.delete("a") is True
        assert store.get("a") is None
        assert store.get("b") == "2"

    def test_delete_last_entry_removes_file(self, store: CredentialStore) -> None:
        store.set(REFRESH_TOKEN_KEY, "rt")
        assert store.path.exists()
        assert store.delete(REFRESH_TOKEN_KEY) is True
        assert not store.path.exists()

    def test_delete_missing(self, store: CredentialStore) -> None:
        assert store.delete(REFRESH_TOKEN_KEY) is False

    def test_persists_across_instances(self, store: CredentialStore) -> None:
        store.set(REFRESH_TOKEN_KEY, "rt")
        assert CredentialStore("test-app").get(REFRESH_TOKEN_KEY) == "rt"
        assert CredentialStore("other-app").get(REFRESH_TOKEN_KEY) is None

    def test_file_layout(self, store: CredentialStore) -> None:
        store.set(REFRESH_TOKEN_KEY, "rt")
        data = json.loads(store.path.read_text())
        assert data["entries"][REFRESH_TOKEN_KEY]["value"] == "rt"
        assert "updated_at" in data["entries"][REFRESH_TOKEN_KEY]

    def test_corrupt_file_reads_as_empty(self, store: CredentialStore) -> None:
        store.path.write_text("{not json")
        assert store.get(REFRESH_TOKEN_KEY) is None
        store.set(REFRESH_TOKEN_KEY, "rt")
        assert store.get(REFRESH_TOKEN_KEY) == "rt"

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_file_permissions(self, store: CredentialStore) -> None:
        store.set(REFRESH_TOKEN_KEY, "rt")
        mode = stat.S_IMODE(store.path.stat().st_mode)
        assert mode == 0o600
