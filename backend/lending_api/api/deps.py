"""Shared API helpers for request parsing and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from datetime import timedelta
from typing import Any, TypeVar

from flask import Response, current_app, jsonify, request
from flask_jwt_extended import verify_jwt_in_request

from lending_api.infra import get_refresh_token_store
from lending_api.infra.jwt.flask_jwt_token_provider import JWTTokenProvider
from lending_api.services._shared.ports import TokenMetadata
from lending_api.services.auth import AuthService
from lending_api.services.auth.dto import AuthTokenConfig

F = TypeVar("F", bound=Callable[..., Any])

# Column bound for ``client_identity``; longer User-Agent strings are cut
CLIENT_IDENTITY_MAX = 512


def require_auth(func: F) -> F:
    """Ensure the request carries a valid JWT access token."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        verify_jwt_in_request(optional=False)
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def request_metadata() -> TokenMetadata:
    """Diagnostic context of the current request for refresh-token records."""

    user_agent = request.headers.get("User-Agent") or None
    return TokenMetadata(
        ip=request.remote_addr or None,
        client_identity=user_agent[:CLIENT_IDENTITY_MAX] if user_agent else None,
    )


def token_config() -> AuthTokenConfig:
    """Build the token lifetimes from the application config."""

    access = current_app.config.get("JWT_ACCESS_TOKEN_EXPIRES", timedelta(minutes=15))
    return AuthTokenConfig(
        access_expires=access,
        refresh_expires=timedelta(days=int(current_app.config["REFRESH_TOKEN_TTL_DAYS"])),
    )


def get_auth_service() -> AuthService:
    """Wire an :class:`AuthService` with the configured adapters."""

    return AuthService(
        token_provider=JWTTokenProvider(),
        refresh_store=get_refresh_token_store(),
        token_cfg=token_config(),
    )


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]
