"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and should never import or depend
on Flask or HTTP. They serve as stable contracts between the token stores,
the session-lifecycle services and the API layer.

The translation to HTTP responses (RFC 7807) is handled by
``lending_api/core/errors.py`` via ``BaseService.translate_exceptions()``.
"""

from __future__ import annotations

from dataclasses import dataclass

# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - They can be safely raised from stores, repositories or domain logic.
    - The API layer translates them to ``APIError``.
    """

    pass


# --------------------------------------------------------------------------- #
# Session lifecycle errors
# --------------------------------------------------------------------------- #


class InvalidRefreshToken(ServiceError):
    """
    The presented refresh credential cannot be used.

    One outcome covers never-issued, expired, revoked and replayed credentials
    so a caller learns nothing about *why* it failed.
    """

    def __init__(self, message: str = "Invalid refresh token") -> None:
        super().__init__(message)


class StorageUnavailable(ServiceError):
    """
    The token store could not complete an operation.

    Raised ``from`` the engine's own exception. Never retried inside the
    session services; retry policy belongs to the caller.
    """

    def __init__(self, message: str = "Token store unavailable") -> None:
        super().__init__(message)


class TokenGenerationError(ServiceError):
    """Raised when a freshly generated credential collides with a stored digest or id."""

    def __init__(self, message: str = "Refresh token generation failed") -> None:
        super().__init__(message)


# --------------------------------------------------------------------------- #
# Generic domain errors
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found in the repository.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param key: Identifier or search key.
    :type key: str | int
    """

    entity: str
    key: str | int

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.entity} not found: {self.key}"


@dataclass(slots=True)
class ConflictError(ServiceError):
    """
    Raised when a unique constraint or business rule conflict occurs.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param detail: Short human-readable explanation.
    :type detail: str
    """

    entity: str
    detail: str

    def __str__(self) -> str:  # pragma: no cover
        return f"Conflict on {self.entity}: {self.detail}"


class AuthenticationError(ServiceError):
    """Raised when credential verification fails (login)."""

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)
