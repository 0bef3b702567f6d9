# lending_api/services/sessions/rotation.py
from __future__ import annotations

from lending_api.services._shared.base import BaseService
from lending_api.services._shared.errors import InvalidRefreshToken
from lending_api.services._shared.ports.refresh_token_store import (
    RefreshTokenStore,
    RevocationReason,
    TokenMetadata,
)
from lending_api.services.sessions.credentials import digest_credential, digest_prefix
from lending_api.services.sessions.dto import RotationOut
from lending_api.services.sessions.issuer import TokenIssuer


class RotationCoordinator(BaseService):
    """
    Exchange an active refresh credential for its descendant.

    Security
    --------
    - Exactly one caller can win the ``active -> rotated`` transition on a
      record (the store's conditional update decides), and only the winner
      mints a descendant. A replayed or stolen credential therefore fails
      closed instead of forking a second chain.
    - Every failure is the same :class:`InvalidRefreshToken`; unknown,
      expired, revoked and replayed credentials are indistinguishable.
    """

    def __init__(self, *, store: RefreshTokenStore, issuer: TokenIssuer) -> None:
        super().__init__(clock=issuer.now_utc)
        self.store = store
        self.issuer = issuer

    def rotate(self, credential: str, metadata: TokenMetadata | None = None) -> RotationOut:
        """
        Retire ``credential`` and issue its replacement for the same user.

        :param credential: Plaintext refresh credential presented by the client.
        :param metadata: Request context merged into the retired record and
            attached to the descendant.
        :raises InvalidRefreshToken: If the credential is not active or a
            concurrent call already retired it.
        :raises StorageUnavailable: Propagated from the store untouched.
        """
        if not credential:
            raise InvalidRefreshToken()

        digest = digest_credential(credential)

        # 1) Resolve the active record (None for unknown/expired/revoked)
        current = self.store.find_active_by_digest(digest)
        if current is None:
            self._reject(digest, "not_active")

        # 2) Win the transition or fail closed
        if not self.store.mark_revoked_if_active(current.id, RevocationReason.ROTATED, metadata):
            self._reject(digest, "lost_race", token_id=current.id)

        # 3) Only the winner mints the descendant
        issued = self.issuer.issue(current.user_id, metadata or current.metadata)

        # 4) Link the chain
        self.store.set_replaced_by(current.id, issued.record.id)

        self.log.info(
            "refresh_token.rotated",
            extra={
                "event": "refresh_token.rotated",
                "user_id": current.user_id,
                "token_id": current.id,
                "digest_prefix": digest_prefix(digest),
            },
        )
        return RotationOut(user_id=current.user_id, credential=issued.credential, record=issued.record)

    def _reject(self, digest: str, cause: str, *, token_id: str | None = None):
        self.log.warning(
            "refresh_token.rotation_rejected cause=%s",
            cause,
            extra={
                "event": "refresh_token.rotation_rejected",
                "token_id": token_id,
                "digest_prefix": digest_prefix(digest),
            },
        )
        raise InvalidRefreshToken()
