"""
lending_api.services._shared.ports
==================================

Collection of *ports* (hexagonal interfaces) that define the contracts
for refresh-token persistence and access-token issuing.

These ports decouple the session services from concrete implementations
of storage engines and JWT libraries.

Modules
-------
- :mod:`refresh_token_store`:
    Defines :class:`~.RefreshTokenStore` and its value objects
    (:class:`~.RefreshTokenRecord`, :class:`~.TokenMetadata`,
    :class:`~.RevocationReason`), plus the in-memory engine.

- :mod:`token_provider`:
    Defines :class:`~.TokenProvider`, the abstraction for access-token creation
    and decoding.

Design Notes
------------
Concrete adapters (SQLAlchemy, Redis, Flask-JWT-Extended) implement these
interfaces under ``lending_api.infra``.
"""

from __future__ import annotations

from .refresh_token_store import (
    InMemoryRefreshTokenStore,
    RefreshTokenRecord,
    RefreshTokenStore,
    RevocationReason,
    TokenMetadata,
)
from .token_provider import StubTokenProvider, TokenProvider

__all__ = [
    "RefreshTokenStore",
    "RefreshTokenRecord",
    "RevocationReason",
    "TokenMetadata",
    "InMemoryRefreshTokenStore",
    "TokenProvider",
    "StubTokenProvider",
]
