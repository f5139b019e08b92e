"""Random strings and S256 code challenges for PKCE (:rfc:`7636`).

The state token and the code verifier are both drawn from a
:class:`RandomGenerator`. Production code uses :class:`SecureRandom`,
backed by :mod:`secrets`; tests inject their own generator to pin the
values that end up in the authorization redirect.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
from typing import Protocol

DEFAULT_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"
"""Alphabet for state tokens."""

VERIFIER_ALPHABET = (
    "abcdefghijklmnopqrstuvwxyz"
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "0123456789"
    "-._~"
)
"""The RFC 7636 ``unreserved`` character set allowed in a code verifier."""

STATE_LENGTH = 20
CODE_VERIFIER_LENGTH = 80  # RFC 7636: 43-128 characters


class RandomGenerator(Protocol):
    """Source of random strings for state tokens and code verifiers."""

    def generate(self, length: int, alphabet: str = DEFAULT_ALPHABET) -> str:
        ...


def generate_random_string(length: int, alphabet: str = DEFAULT_ALPHABET) -> str:
    """Return *length* characters drawn uniformly from *alphabet*.

    Args:
        length: Number of characters, must be positive.
        alphabet: Characters to draw from. Defaults to lowercase
            alphanumerics.

    Raises:
        ValueError: If *length* is not positive or *alphabet* is empty.
    """
    if length <= 0:
        raise ValueError(f"length must be positive, got {length}")
    if not alphabet:
        raise ValueError("alphabet must not be empty")
    return "".join(secrets.choice(alphabet) for _ in range(length))


class SecureRandom:
    """:class:`RandomGenerator` backed by the operating system CSPRNG."""

    def generate(self, length: int, alphabet: str = DEFAULT_ALPHABET) -> str:
        return generate_random_string(length, alphabet)


def code_challenge(verifier: str) -> str:
    """Derive the S256 code challenge for *verifier*.

    ``BASE64URL(SHA256(ASCII(code_verifier)))`` without ``=`` padding.
    """
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
