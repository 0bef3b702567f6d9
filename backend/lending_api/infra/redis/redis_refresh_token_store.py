# comments in English; reST docstrings
from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime, timedelta

import redis  # type: ignore[import-untyped]

from lending_api.services._shared.clock import Clock, as_utc, utc_now
from lending_api.services._shared.errors import StorageUnavailable, TokenGenerationError
from lending_api.services._shared.ports import (
    RefreshTokenRecord,
    RefreshTokenStore,
    RevocationReason,
    TokenMetadata,
)

DEFAULT_RETENTION = timedelta(days=7)


def _b(value: bytes | str | None, default: str = "") -> str:
    if value is None:
        return default
    return value.decode() if isinstance(value, bytes | bytearray) else str(value)


class RedisRefreshTokenStore(RefreshTokenStore):
    """
    Redis-backed refresh-token store, one hash document per record.

    Layout
    ------
    - ``rt:{id}``: hash with the record fields (timestamps in ISO-8601).
    - ``rt:d:{digest}``: string holding the record id; written with ``NX``.
    - ``rt:u:{user_id}``: set of record ids not yet revoked.

    Record and digest keys expire natively at ``expires_at + retention``; the
    user index expires with its longest-lived member, and :meth:`purge` drops
    ids whose record is already gone.

    Conditional transitions use WATCH/MULTI/EXEC (optimistic locking): the
    record hash is watched, its state re-checked, and the write only commits
    if no other client touched the hash in between; otherwise the loop
    retries against the fresh state.

    :param r: A Redis client (already connected).
    :param clock: Time source for activity checks and TTLs.
    :param retention: How long inactive records outlive their expiry.
    """

    def __init__(
        self,
        *,
        r: redis.Redis,
        clock: Clock = utc_now,
        retention: timedelta = DEFAULT_RETENTION,
    ) -> None:
        self.r = r
        self._clock = clock
        self.retention = retention

    # -------------------- helpers --------------------

    @staticmethod
    def _k(record_id: str) -> str:
        return f"rt:{record_id}"

    @staticmethod
    def _kd(digest: str) -> str:
        return f"rt:d:{digest}"

    @staticmethod
    def _ku(user_id: str) -> str:
        return f"rt:u:{user_id}"

    @staticmethod
    def _is_record_key(key: str) -> bool:
        return not key.startswith(("rt:d:", "rt:u:"))

    def _ttl(self, expires_at: datetime) -> int:
        remaining = (expires_at + self.retention) - self._clock()
        return max(1, int(remaining.total_seconds()))

    @contextmanager
    def _guard(self) -> Iterator[None]:
        try:
            yield
        except redis.RedisError as exc:
            raise StorageUnavailable() from exc

    @staticmethod
    def _to_mapping(record: RefreshTokenRecord) -> dict[str, str]:
        mapping = {
            "user_id": record.user_id,
            "token_digest": record.token_digest,
            "issued_at": record.issued_at.isoformat(),
            "expires_at": record.expires_at.isoformat(),
        }
        if record.revoked_at is not None:
            mapping["revoked_at"] = record.revoked_at.isoformat()
        if record.revoked_reason is not None:
            mapping["revoked_reason"] = record.revoked_reason.value
        if record.replaced_by is not None:
            mapping["replaced_by"] = record.replaced_by
        if record.metadata.ip is not None:
            mapping["ip"] = record.metadata.ip
        if record.metadata.client_identity is not None:
            mapping["client_identity"] = record.metadata.client_identity
        return mapping

    @staticmethod
    def _to_record(record_id: str, h: Mapping[bytes, bytes]) -> RefreshTokenRecord:
        def _dt(field: bytes) -> datetime | None:
            raw = h.get(field)
            return as_utc(datetime.fromisoformat(_b(raw))) if raw else None

        reason = h.get(b"revoked_reason")
        issued_at = _dt(b"issued_at")
        expires_at = _dt(b"expires_at")
        if issued_at is None or expires_at is None:
            raise StorageUnavailable(f"Corrupt refresh token document: {record_id}")
        return RefreshTokenRecord(
            id=record_id,
            user_id=_b(h.get(b"user_id")),
            token_digest=_b(h.get(b"token_digest")),
            issued_at=issued_at,
            expires_at=expires_at,
            revoked_at=_dt(b"revoked_at"),
            revoked_reason=RevocationReason(_b(reason)) if reason else None,
            replaced_by=_b(h.get(b"replaced_by")) or None,
            metadata=TokenMetadata(
                ip=_b(h.get(b"ip")) or None,
                client_identity=_b(h.get(b"client_identity")) or None,
            ),
        )

    # -------------------- API ------------------------

    def insert(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        key = self._k(record.id)
        ttl = self._ttl(record.expires_at)
        with self._guard():
            if self.r.exists(key):
                raise TokenGenerationError("Refresh token id collision")
            # Claim the digest first; NX makes a collision visible instead of overwriting
            if not self.r.set(self._kd(record.token_digest), record.id, nx=True, ex=ttl):
                raise TokenGenerationError("Refresh token digest collision")

            with self.r.pipeline(transaction=True) as p:
                p.hset(key, mapping=self._to_mapping(record))
                p.expire(key, ttl)
                if record.revoked_at is None:
                    key_u = self._ku(record.user_id)
                    p.sadd(key_u, record.id)
                    # The index lives as long as its longest-lived member
                    p.expire(key_u, ttl, nx=True)
                    p.expire(key_u, ttl, gt=True)
                p.execute()
        return record

    def find_active_by_digest(self, digest: str) -> RefreshTokenRecord | None:
        with self._guard():
            rid_b = self.r.get(self._kd(digest))
            if not rid_b:
                return None
            record_id = _b(rid_b)
            h = self.r.hgetall(self._k(record_id))
        if not h:
            return None
        record = self._to_record(record_id, h)
        if record.token_digest != digest or not record.is_active(self._clock()):
            return None
        return record

    def mark_revoked_if_active(
        self,
        record_id: str,
        reason: RevocationReason,
        metadata_patch: TokenMetadata | None = None,
    ) -> bool:
        key = self._k(record_id)
        with self._guard():
            # Retry loop for optimistic locking in case of concurrent modifications
            while True:
                try:
                    with self.r.pipeline() as p:
                        p.watch(key)
                        h = p.hgetall(key)
                        if not h:
                            p.unwatch()
                            return False
                        now = self._clock()
                        current = self._to_record(record_id, h)
                        if not current.is_active(now):
                            p.unwatch()
                            return False

                        mapping = {"revoked_at": now.isoformat(), "revoked_reason": reason.value}
                        if metadata_patch is not None:
                            if metadata_patch.ip is not None:
                                mapping["ip"] = metadata_patch.ip
                            if metadata_patch.client_identity is not None:
                                mapping["client_identity"] = metadata_patch.client_identity

                        p.multi()
                        p.hset(key, mapping=mapping)
                        p.srem(self._ku(current.user_id), record_id)
                        p.execute()
                        return True
                except redis.WatchError:
                    # Someone else wrote the hash; re-evaluate against fresh state
                    continue

    def set_replaced_by(self, record_id: str, descendant_id: str) -> None:
        key = self._k(record_id)
        with self._guard():
            while True:
                try:
                    with self.r.pipeline() as p:
                        p.watch(key)
                        h = p.hgetall(key)
                        if not h or h.get(b"replaced_by"):
                            p.unwatch()
                            return
                        p.multi()
                        p.hset(key, "replaced_by", descendant_id)
                        p.execute()
                        return
                except redis.WatchError:
                    continue

    def revoke_all_active_for_user(self, user_id: str, reason: RevocationReason) -> int:
        key_u = self._ku(user_id)
        with self._guard():
            members = sorted(_b(m) for m in self.r.smembers(key_u))

        count = 0
        stale: list[str] = []
        for record_id in members:
            if self.mark_revoked_if_active(record_id, reason):
                count += 1
            else:
                stale.append(record_id)

        if stale:
            # Expired or vanished entries no longer belong in the user's index
            with self._guard():
                self.r.srem(key_u, *stale)
        return count

    def get(self, record_id: str) -> RefreshTokenRecord | None:
        with self._guard():
            h = self.r.hgetall(self._k(record_id))
        if not h:
            return None
        return self._to_record(record_id, h)

    def purge(self, before: datetime) -> int:
        removed = 0
        with self._guard():
            for raw_key in self.r.scan_iter(match="rt:*", count=500):
                key = _b(raw_key)
                if not self._is_record_key(key):
                    continue
                h = self.r.hgetall(key)
                if not h:
                    continue
                record = self._to_record(key[len("rt:"):], h)
                revoked_before = record.revoked_at is not None and record.revoked_at <= before
                if not (record.expires_at <= before or revoked_before):
                    continue
                with self.r.pipeline(transaction=True) as p:
                    p.delete(key)
                    p.delete(self._kd(record.token_digest))
                    p.srem(self._ku(record.user_id), record.id)
                    out = p.execute()
                removed += int(out[0])

            # Records that expired natively leave dangling ids in the user indexes
            for raw_key in self.r.scan_iter(match="rt:u:*", count=500):
                key_u = _b(raw_key)
                orphans = [
                    member
                    for member in (_b(m) for m in self.r.smembers(key_u))
                    if not self.r.exists(self._k(member))
                ]
                if orphans:
                    self.r.srem(key_u, *orphans)
        return removed
