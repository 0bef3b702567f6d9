# lending_api/services/sessions/revocation.py
from __future__ import annotations

from lending_api.services._shared.base import BaseService
from lending_api.services._shared.clock import Clock, utc_now
from lending_api.services._shared.ports.refresh_token_store import (
    RefreshTokenRecord,
    RefreshTokenStore,
    RevocationReason,
    TokenMetadata,
)
from lending_api.services.sessions.credentials import digest_credential, digest_prefix


class RevocationManager(BaseService):
    """
    Explicit revocation: logout of one session, or of every session of a user.

    Revoking a credential retires only that record. Ancestors are already
    rotated and descendants cannot exist for an active tip, so a chain has
    nothing else to kill.
    """

    def __init__(self, *, store: RefreshTokenStore, clock: Clock = utc_now) -> None:
        super().__init__(clock=clock)
        self.store = store

    def revoke(
        self,
        credential: str,
        reason: RevocationReason = RevocationReason.USER_LOGOUT,
        metadata: TokenMetadata | None = None,
    ) -> RefreshTokenRecord | None:
        """
        Revoke the record behind ``credential`` if it is active.

        :returns: The revoked record snapshot, or ``None`` if the credential
            was unknown, expired, already revoked, or lost a concurrent race.
        :raises ValueError: If ``reason`` is ``rotated``; that transition is
            reserved for rotation.
        """
        if reason == RevocationReason.ROTATED:
            raise ValueError("'rotated' is reserved for rotation")
        if not credential:
            return None

        digest = digest_credential(credential)
        current = self.store.find_active_by_digest(digest)
        if current is None:
            return None
        if not self.store.mark_revoked_if_active(current.id, reason, metadata):
            return None

        self.log.info(
            "refresh_token.revoked reason=%s",
            reason.value,
            extra={
                "event": "refresh_token.revoked",
                "user_id": current.user_id,
                "token_id": current.id,
                "digest_prefix": digest_prefix(digest),
                "reason": reason.value,
            },
        )
        return self.store.get(current.id)

    def revoke_record(
        self,
        record_id: str,
        reason: RevocationReason = RevocationReason.OTHER,
    ) -> bool:
        """
        Revoke a record the server already holds by id (no credential at hand).

        :returns: ``True`` if this call performed the transition.
        :raises ValueError: If ``reason`` is ``rotated``.
        """
        if reason == RevocationReason.ROTATED:
            raise ValueError("'rotated' is reserved for rotation")
        if not self.store.mark_revoked_if_active(record_id, reason):
            return False

        record = self.store.get(record_id)
        self.log.info(
            "refresh_token.revoked reason=%s",
            reason.value,
            extra={
                "event": "refresh_token.revoked",
                "user_id": record.user_id if record is not None else None,
                "token_id": record_id,
                "reason": reason.value,
            },
        )
        return True

    def revoke_all_for_user(
        self,
        user_id: str | int,
        reason: RevocationReason = RevocationReason.USER_LOGOUT_ALL,
    ) -> int:
        """
        Revoke every active record owned by ``user_id``.

        Already-revoked and expired records are untouched and not counted.

        :returns: Number of records transitioned by this call.
        """
        if reason == RevocationReason.ROTATED:
            raise ValueError("'rotated' is reserved for rotation")
        count = self.store.revoke_all_active_for_user(str(user_id), reason)
        self.log.info(
            "refresh_token.revoked_all count=%d",
            count,
            extra={
                "event": "refresh_token.revoked_all",
                "user_id": str(user_id),
                "reason": reason.value,
                "count": count,
            },
        )
        return count
