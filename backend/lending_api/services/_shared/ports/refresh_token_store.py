from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from typing import Protocol

from lending_api.services._shared.clock import Clock, utc_now
from lending_api.services._shared.errors import TokenGenerationError


class RevocationReason(StrEnum):
    """Why a refresh-token record stopped being active."""

    ROTATED = "rotated"
    USER_LOGOUT = "user_logout"
    USER_LOGOUT_ALL = "user_logout_all"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class TokenMetadata:
    """
    Diagnostic context attached to a refresh-token record.

    Informational only; never consulted for authorization decisions.

    :ivar ip: Originating network address.
    :ivar client_identity: Client identity string (e.g. the User-Agent).
    """

    ip: str | None = None
    client_identity: str | None = None

    def merged(self, patch: TokenMetadata | None) -> TokenMetadata:
        """Return a copy where every non-empty field of ``patch`` wins."""
        if patch is None:
            return self
        return TokenMetadata(
            ip=patch.ip if patch.ip is not None else self.ip,
            client_identity=(
                patch.client_identity
                if patch.client_identity is not None
                else self.client_identity
            ),
        )


@dataclass(frozen=True, slots=True)
class RefreshTokenRecord:
    """
    Persisted state of one issued refresh credential.

    The plaintext credential is never part of the record; only its digest is.

    :ivar id: Opaque record identifier, stable for the record's lifetime.
    :ivar user_id: Owning principal.
    :ivar token_digest: One-way digest of the credential (globally unique).
    :ivar issued_at: Issuance instant (UTC).
    :ivar expires_at: ``issued_at + TTL`` (UTC).
    :ivar revoked_at: Revocation instant, ``None`` while not revoked.
    :ivar revoked_reason: One of :class:`RevocationReason` once revoked.
    :ivar replaced_by: Id of the direct descendant once rotated.
    :ivar metadata: Diagnostic context.
    """

    id: str
    user_id: str
    token_digest: str
    issued_at: datetime
    expires_at: datetime
    revoked_at: datetime | None = None
    revoked_reason: RevocationReason | None = None
    replaced_by: str | None = None
    metadata: TokenMetadata = field(default_factory=TokenMetadata)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def is_active(self, now: datetime) -> bool:
        """Active iff never revoked and not yet past ``expires_at``."""
        return self.revoked_at is None and not self.is_expired(now)


class RefreshTokenStore(Protocol):
    """
    Durable storage for refresh-token records.

    Every engine (relational, Redis, in-memory) implements this contract; the
    session services are written once against it and never branch on engine.

    State transitions MUST be atomic conditional operations: the check that a
    record is still active and the write that revokes it cannot be separated
    by another writer.
    """

    def insert(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        """
        Persist a brand-new record.

        :raises TokenGenerationError: if the digest (or id) already exists.
        :raises StorageUnavailable: if the engine cannot complete the write.
        """
        ...

    def find_active_by_digest(self, digest: str) -> RefreshTokenRecord | None:
        """
        Return the record for ``digest`` only while it is active.

        Unknown, revoked and expired digests all yield ``None``.
        """
        ...

    def mark_revoked_if_active(
        self,
        record_id: str,
        reason: RevocationReason,
        metadata_patch: TokenMetadata | None = None,
    ) -> bool:
        """
        Atomically revoke ``record_id`` if it is still active.

        :returns: ``True`` only if *this* call performed the transition.
        """
        ...

    def set_replaced_by(self, record_id: str, descendant_id: str) -> None:
        """Link a rotated record to its descendant (set at most once)."""
        ...

    def revoke_all_active_for_user(self, user_id: str, reason: RevocationReason) -> int:
        """
        Revoke every active record of ``user_id``.

        :returns: Number of records this call transitioned.
        """
        ...

    def get(self, record_id: str) -> RefreshTokenRecord | None:
        """Fetch a record snapshot by id regardless of its state."""
        ...

    def purge(self, before: datetime) -> int:
        """
        Physically delete records expired or revoked at or before ``before``.

        Housekeeping only; correctness never depends on when it runs.

        :returns: Number of records removed.
        """
        ...


class InMemoryRefreshTokenStore(RefreshTokenStore):
    """
    In-memory refresh-token store.

    .. note::
       A single threading lock makes every operation atomic within one
       process. Suitable for unit tests and single-process development only.
    """

    def __init__(self, *, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._by_id: dict[str, RefreshTokenRecord] = {}
        self._by_digest: dict[str, str] = {}
        self._by_user: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    # -------------------------- API ----------------------------

    def insert(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        with self._lock:
            if record.token_digest in self._by_digest or record.id in self._by_id:
                raise TokenGenerationError("Refresh token digest collision")
            self._by_id[record.id] = record
            self._by_digest[record.token_digest] = record.id
            self._by_user.setdefault(record.user_id, set()).add(record.id)
            return record

    def find_active_by_digest(self, digest: str) -> RefreshTokenRecord | None:
        with self._lock:
            record_id = self._by_digest.get(digest)
            record = self._by_id.get(record_id) if record_id else None
            if record is None or not record.is_active(self._clock()):
                return None
            return record

    def mark_revoked_if_active(
        self,
        record_id: str,
        reason: RevocationReason,
        metadata_patch: TokenMetadata | None = None,
    ) -> bool:
        with self._lock:
            return self._revoke_locked(record_id, reason, metadata_patch, self._clock())

    def set_replaced_by(self, record_id: str, descendant_id: str) -> None:
        with self._lock:
            record = self._by_id.get(record_id)
            if record is None or record.replaced_by is not None:
                return
            self._by_id[record_id] = replace(record, replaced_by=descendant_id)

    def revoke_all_active_for_user(self, user_id: str, reason: RevocationReason) -> int:
        with self._lock:
            now = self._clock()
            ids = sorted(self._by_user.get(user_id, set()))
            return sum(1 for rid in ids if self._revoke_locked(rid, reason, None, now))

    def get(self, record_id: str) -> RefreshTokenRecord | None:
        with self._lock:
            return self._by_id.get(record_id)

    def purge(self, before: datetime) -> int:
        with self._lock:
            doomed = [
                r
                for r in self._by_id.values()
                if r.expires_at <= before or (r.revoked_at is not None and r.revoked_at <= before)
            ]
            for r in doomed:
                del self._by_id[r.id]
                self._by_digest.pop(r.token_digest, None)
                owned = self._by_user.get(r.user_id)
                if owned is not None:
                    owned.discard(r.id)
                    if not owned:
                        del self._by_user[r.user_id]
            return len(doomed)

    # ------------------------- helpers -------------------------

    def _revoke_locked(
        self,
        record_id: str,
        reason: RevocationReason,
        metadata_patch: TokenMetadata | None,
        now: datetime,
    ) -> bool:
        record = self._by_id.get(record_id)
        if record is None or not record.is_active(now):
            return False
        self._by_id[record_id] = replace(
            record,
            revoked_at=now,
            revoked_reason=reason,
            metadata=record.metadata.merged(metadata_patch),
        )
        return True
