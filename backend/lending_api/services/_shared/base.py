# lending_api/services/_shared/base.py
from __future__ import annotations

import logging

from lending_api.core import errors as api_errors
from lending_api.services._shared.clock import Clock, utc_now
from lending_api.services._shared.errors import (
    AuthenticationError,
    ConflictError,
    InvalidRefreshToken,
    NotFoundError,
    ServiceError,
    StorageUnavailable,
    TokenGenerationError,
)


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Own the time source so expiry decisions are testable.
    * Centralize error translation to API errors.
    * Keep services thin, orchestration-only, no web/ORM leakage.
    """

    def __init__(self, *, clock: Clock = utc_now) -> None:
        """
        Initialize the base service.

        :param clock: Callable returning the current aware UTC datetime.
        :type clock: Clock
        """
        self._clock = clock
        self.log = logging.getLogger(type(self).__module__)

    def now_utc(self):
        return self._clock()

    # -------------------------- Units of work -------------------------------

    def rw_uow(self):
        """Create a read-write Unit of Work on the Flask-scoped session."""
        from lending_api.uow import SQLAlchemyUnitOfWork

        return SQLAlchemyUnitOfWork()

    def ro_uow(self):
        """Create a read-only Unit of Work (never commits)."""
        from lending_api.uow import SQLAlchemyUnitOfWork

        return SQLAlchemyUnitOfWork(read_only=True)

    # -------------------------- Error handling ------------------------------

    @staticmethod
    def translate_exceptions(exc: Exception) -> Exception:
        """
        Map domain/service-level errors to API-level (HTTP) errors.

        :param exc: Exception raised within the service.
        :type exc: Exception
        :returns: Translated exception ready to be re-raised.
        :rtype: Exception
        """
        if isinstance(exc, InvalidRefreshToken):
            # → 401, one code for every refresh failure
            return api_errors.Unauthorized(str(exc), code="invalid_refresh_token")

        if isinstance(exc, AuthenticationError):
            return api_errors.Unauthorized(str(exc))

        if isinstance(exc, StorageUnavailable):
            # → 503; the client owns retry/backoff
            return api_errors.ServiceUnavailable()

        if isinstance(exc, TokenGenerationError):
            return api_errors.APIError(
                message="Unexpected error",
                status_code=500,
                code="internal_server_error",
            )

        if isinstance(exc, NotFoundError):
            return api_errors.NotFound(str(exc))

        if isinstance(exc, ConflictError):
            return api_errors.Conflict(str(exc))

        # Any other ServiceError subclass → 400 Bad Request
        if isinstance(exc, ServiceError):
            return api_errors.APIError(
                message=str(exc),
                status_code=400,
                code="bad_request",
            )

        # Fallback: return untouched (will bubble up to Flask handler)
        return exc
