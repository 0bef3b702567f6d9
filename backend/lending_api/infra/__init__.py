"""
Concrete adapters for the service-layer ports.

:func:`get_refresh_token_store` picks the refresh-token engine named by the
``REFRESH_TOKEN_STORE`` config key for the current application.
"""

from __future__ import annotations

from datetime import timedelta

from flask import current_app

from lending_api.services._shared.ports import InMemoryRefreshTokenStore, RefreshTokenStore

ENGINES = ("sqlalchemy", "redis", "memory")


def get_refresh_token_store() -> RefreshTokenStore:
    """Return the refresh-token store configured for ``current_app``.

    :raises RuntimeError: If the engine name is unknown or Redis is selected
        without ``REDIS_URL``.
    """
    engine = str(current_app.config.get("REFRESH_TOKEN_STORE", "sqlalchemy")).lower()

    if engine == "sqlalchemy":
        from lending_api.infra.sqlalchemy.sqlalchemy_refresh_token_store import (
            SQLAlchemyRefreshTokenStore,
        )

        return SQLAlchemyRefreshTokenStore()

    if engine == "redis":
        from lending_api.infra.redis.redis_refresh_token_store import RedisRefreshTokenStore

        client = current_app.extensions.get("redis_client")
        if client is None:
            raise RuntimeError("REFRESH_TOKEN_STORE=redis requires REDIS_URL.")
        retention = timedelta(days=int(current_app.config["REFRESH_TOKEN_RETENTION_DAYS"]))
        return RedisRefreshTokenStore(r=client, retention=retention)

    if engine == "memory":
        # One instance per app so state survives across requests
        store = current_app.extensions.get("refresh_token_memory_store")
        if store is None:
            store = InMemoryRefreshTokenStore()
            current_app.extensions["refresh_token_memory_store"] = store
        return store

    raise RuntimeError(f"Unknown REFRESH_TOKEN_STORE {engine!r}; expected one of {ENGINES}.")


__all__ = ["ENGINES", "get_refresh_token_store"]
