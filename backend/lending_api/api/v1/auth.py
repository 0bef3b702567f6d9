"""Authentication endpoints: register, login, refresh and logout."""

from __future__ import annotations

from flask import Blueprint, Response, current_app, request
from flask_jwt_extended import get_jwt_identity

from lending_api.api.deps import (
    get_auth_service,
    json_response,
    request_metadata,
    require_auth,
    timing,
)
from lending_api.core.extensions import limiter
from lending_api.schemas import (
    LoginSchema,
    LogoutSchema,
    RefreshResponseSchema,
    RefreshSchema,
    RegisterSchema,
    TokenPairSchema,
)
from lending_api.services.auth.dto import LoginIn, LogoutIn, RefreshIn, RegisterIn

bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_schema = RefreshSchema()
logout_schema = LogoutSchema()
token_pair_schema = TokenPairSchema()
refresh_response_schema = RefreshResponseSchema()


def _login_rate_limit() -> str:
    return str(current_app.config.get("AUTH_LOGIN_RATE_LIMIT", "10 per 15 minutes"))


def _refresh_rate_limit() -> str:
    return str(current_app.config.get("AUTH_REFRESH_RATE_LIMIT", "30 per 15 minutes"))


@bp.post("/register")
@timing
def register():
    """Create an account and return its first token pair."""

    data = register_schema.load(request.get_json(silent=True) or {})
    result = get_auth_service().register(RegisterIn(**data), request_metadata())
    return json_response({"data": token_pair_schema.dump(result)}, status=201)


@bp.post("/login")
@limiter.limit(_login_rate_limit)
@timing
def login():
    """Authenticate credentials and issue an access/refresh pair."""

    data = login_schema.load(request.get_json(silent=True) or {})
    result = get_auth_service().login(LoginIn(**data), request_metadata())
    return json_response({"data": token_pair_schema.dump(result)})


@bp.post("/refresh")
@limiter.limit(_refresh_rate_limit)
@timing
def refresh():
    """Exchange a refresh credential for a rotated pair.

    Any credential that is unknown, expired, revoked or already used yields
    401 ``invalid_refresh_token``.
    """

    data = refresh_schema.load(request.get_json(silent=True) or {})
    result = get_auth_service().refresh(RefreshIn(**data), request_metadata())
    return json_response({"data": refresh_response_schema.dump(result)})


@bp.post("/logout")
@require_auth
@timing
def logout():
    """Revoke the supplied refresh credential, or every session of the caller."""

    data = logout_schema.load(request.get_json(silent=True) or {})
    dto = LogoutIn(user_id=str(get_jwt_identity()), refresh_token=data.get("refresh_token"))
    get_auth_service().logout(dto, request_metadata())
    return Response(status=204)
