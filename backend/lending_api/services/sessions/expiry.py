# lending_api/services/sessions/expiry.py
from __future__ import annotations

from datetime import datetime, timedelta

from lending_api.services._shared.base import BaseService
from lending_api.services._shared.clock import Clock, utc_now
from lending_api.services._shared.ports.refresh_token_store import RefreshTokenStore

DEFAULT_REFRESH_TTL = timedelta(days=30)
DEFAULT_RETENTION = timedelta(days=7)


class ExpiryPolicy(BaseService):
    """
    Lifetime arithmetic and housekeeping for refresh-token records.

    :class:`~.TokenIssuer` stamps every record with :meth:`expires_at_for`.
    Expiry itself is enforced at read time by every store (a record past
    ``expires_at`` is never returned as active). :meth:`sweep` only reclaims
    space and may run at any cadence, or never.

    :param store: Engine holding refresh-token records.
    :param ttl: Fixed lifetime of every credential.
    :param retention: How long inactive records are kept before :meth:`sweep`.
    :raises ValueError: If ``ttl`` is not positive or ``retention`` is negative.
    """

    def __init__(
        self,
        *,
        store: RefreshTokenStore,
        ttl: timedelta = DEFAULT_REFRESH_TTL,
        retention: timedelta = DEFAULT_RETENTION,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(clock=clock)
        if ttl <= timedelta(0):
            raise ValueError("Refresh token TTL must be positive.")
        if retention < timedelta(0):
            raise ValueError("Retention must not be negative.")
        self.store = store
        self.ttl = ttl
        self.retention = retention

    def expires_at_for(self, issued_at: datetime) -> datetime:
        return issued_at + self.ttl

    def cutoff(self) -> datetime:
        """Records expired or revoked at or before this instant may be deleted."""
        return self.now_utc() - self.retention

    def sweep(self) -> int:
        """
        Delete records past the retention window.

        :returns: Number of records removed.
        """
        cutoff = self.cutoff()
        count = self.store.purge(cutoff)
        self.log.info(
            "refresh_token.purged count=%d",
            count,
            extra={"event": "refresh_token.purged", "count": count},
        )
        return count
