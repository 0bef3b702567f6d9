# lending_api/services/auth/dto.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class RegisterIn:
    """
    Input DTO for registration.

    :param email: User email (normalized by the model).
    :param password: Raw password (hashed by the model setter).
    """

    email: str
    password: str
    full_name: str | None = None
    phone: str | None = None


@dataclass(frozen=True, slots=True)
class LoginIn:
    """
    Input DTO for login.

    :param email: User email.
    :type email: str
    :param password: Raw password (to be verified).
    :type password: str
    """

    email: str
    password: str


@dataclass(frozen=True, slots=True)
class RefreshIn:
    """
    Input DTO for token refresh.

    :param refresh_token: Opaque refresh credential.
    :type refresh_token: str
    """

    refresh_token: str

    def __repr__(self) -> str:
        return "RefreshIn(refresh_token=***)"


@dataclass(frozen=True, slots=True)
class LogoutIn:
    """
    Input DTO for logout.

    :param user_id: Authenticated caller (access-token subject).
    :param refresh_token: Credential to revoke; ``None`` revokes every
        active session of ``user_id``.
    """

    user_id: str
    refresh_token: str | None = None

    def __repr__(self) -> str:
        return f"LogoutIn(user_id={self.user_id!r})"


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class UserPublicOut:
    """Public projection of a user (no password hash)."""

    id: int
    email: str
    full_name: str | None
    role: str
    phone: str | None = None


@dataclass(frozen=True, slots=True)
class AuthResultOut:
    """
    Output of register/login: a token pair plus the user.

    :param access_token: Encoded access JWT.
    :param refresh_token: Opaque refresh credential (plaintext, shown once).
    :param user: Public user projection.
    """

    access_token: str
    refresh_token: str
    user: UserPublicOut
    token_type: str = "Bearer"

    def __repr__(self) -> str:
        return f"AuthResultOut(user_id={self.user.id!r})"


@dataclass(frozen=True, slots=True)
class RefreshOut:
    """Output of a refresh: the rotated pair and the owning user id."""

    access_token: str
    refresh_token: str
    user_id: str
    token_type: str = "Bearer"

    def __repr__(self) -> str:
        return f"RefreshOut(user_id={self.user_id!r})"


# ------------------------ Config DTO --------------------------------------- #


@dataclass(frozen=True, slots=True)
class AuthTokenConfig:
    """
    Token emission configuration.

    :param access_expires: Access token lifetime.
    :type access_expires: timedelta
    :param refresh_expires: Refresh credential lifetime.
    :type refresh_expires: timedelta
    """

    access_expires: timedelta = timedelta(minutes=15)
    refresh_expires: timedelta = timedelta(days=30)
