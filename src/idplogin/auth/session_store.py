"""In-memory correlation of state tokens to PKCE code verifiers.

Entries live only between the ``/auth`` and ``/callback`` hits of a single
authorization attempt and are never written to disk.
"""

from __future__ import annotations

import threading
from typing import Optional


class SessionStore:
    """Thread-safe ``state -> code_verifier`` mapping with destructive reads.

    The listener serves each request on its own thread, so :meth:`take` is
    an atomic check-and-delete: a state value can be consumed at most once.
    """

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}
        self._lock = threading.Lock()

    def put(self, state: str, verifier: str) -> None:
        with self._lock:
            self._entries[state] = verifier

    def take(self, state: str) -> Optional[str]:
        """Remove and return the verifier stored for *state*, or ``None``."""
        with self._lock:
            return self._entries.pop(state, None)

    def clear(self) -> None:
        """Drop every entry (stale sessions of an aborted flow)."""
        with self._lock:
            self._entries.clear()

    def __contains__(self, state: object) -> bool:
        with self._lock:
            return state in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
