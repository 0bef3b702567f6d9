# lending_api/services/sessions/issuer.py
from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

from lending_api.services._shared.base import BaseService
from lending_api.services._shared.clock import Clock, utc_now
from lending_api.services._shared.ports.refresh_token_store import (
    RefreshTokenRecord,
    RefreshTokenStore,
    TokenMetadata,
)
from lending_api.services.sessions.credentials import (
    digest_credential,
    digest_prefix,
    generate_credential,
)
from lending_api.services.sessions.dto import IssuedToken
from lending_api.services.sessions.expiry import DEFAULT_REFRESH_TTL, ExpiryPolicy


class TokenIssuer(BaseService):
    """
    Mint refresh credentials and persist their records.

    Called by the authentication flow after login/registration and by the
    rotation coordinator for every descendant.
    """

    def __init__(
        self,
        *,
        store: RefreshTokenStore,
        ttl: timedelta = DEFAULT_REFRESH_TTL,
        clock: Clock = utc_now,
    ) -> None:
        """
        :param store: Engine holding refresh-token records.
        :param ttl: Fixed lifetime of every credential.
        :param clock: Time source.
        :raises ValueError: If ``ttl`` is not positive.
        """
        super().__init__(clock=clock)
        self.store = store
        self.expiry = ExpiryPolicy(store=store, ttl=ttl, clock=clock)

    def issue(self, user_id: str | int, metadata: TokenMetadata | None = None) -> IssuedToken:
        """
        Generate a credential for ``user_id`` and store its digest.

        :returns: The plaintext credential (only time it is available) and the record.
        :raises TokenGenerationError: On digest collision; not retried.
        :raises StorageUnavailable: If the store cannot persist the record.
        """
        credential = generate_credential()
        issued_at = self.now_utc()
        record = RefreshTokenRecord(
            id=str(uuid4()),
            user_id=str(user_id),
            token_digest=digest_credential(credential),
            issued_at=issued_at,
            expires_at=self.expiry.expires_at_for(issued_at),
            metadata=metadata or TokenMetadata(),
        )
        stored = self.store.insert(record)
        self.log.info(
            "refresh_token.issued",
            extra={
                "event": "refresh_token.issued",
                "user_id": stored.user_id,
                "token_id": stored.id,
                "digest_prefix": digest_prefix(stored.token_digest),
            },
        )
        return IssuedToken(credential=credential, record=stored)
