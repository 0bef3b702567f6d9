# lending_api/infra/jwt/flask_jwt_token_provider.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, cast

from flask_jwt_extended import create_access_token as _create_access
from flask_jwt_extended import decode_token as _decode

from lending_api.services._shared.ports import TokenProvider


@dataclass(slots=True)
class JWTTokenProvider(TokenProvider):
    """
    Access-token adapter for Flask-JWT-Extended.

    .. note::
       Requires an active Flask app context with ``JWT_SECRET_KEY`` set.
       Refresh credentials never go through here; they are opaque values
       owned by the session services.
    """

    def create_access_token(
        self,
        *,
        identity: str | int,
        additional_claims: dict[str, Any] | None = None,
        expires_delta: timedelta | None = None,
        fresh: bool = False,
    ) -> str:
        # Flask-JWT-Extended requires a string subject
        return cast(
            str,
            _create_access(
                identity=str(identity),
                additional_claims=dict(additional_claims or {}),
                expires_delta=expires_delta,
                fresh=fresh,
            ),
        )

    def decode(self, token: str) -> dict[str, Any]:
        return cast(dict[str, Any], _decode(token))

    def get_subject(self, token: str) -> int | str:
        return cast(int | str, self.decode(token)["sub"])
