"""Generation and digesting of opaque refresh credentials."""

from __future__ import annotations

import hashlib
import secrets

# 40 random bytes -> 320 bits of entropy, hex encoded (80 chars)
CREDENTIAL_BYTES = 40
DIGEST_PREFIX_LEN = 12


def generate_credential() -> str:
    """Return a fresh credential drawn from the OS CSPRNG."""
    return secrets.token_hex(CREDENTIAL_BYTES)


def digest_credential(credential: str) -> str:
    """Deterministic one-way digest (SHA-256 hex) used as the storage key."""
    return hashlib.sha256(credential.encode("utf-8")).hexdigest()


def digest_prefix(digest: str) -> str:
    """Short, log-safe prefix of a digest for correlating diagnostics."""
    return digest[:DIGEST_PREFIX_LEN]
