# tests/unit/infra/test_refresh_token_store_contract.py
"""
Behavioural contract shared by every refresh-token engine.

The same cases run against the in-memory store, the Redis store (on
fakeredis) and the SQLAlchemy store (on the transactional SQLite session);
the session services rely on nothing beyond what is asserted here.
"""

from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

import pytest

from lending_api.infra.redis.redis_refresh_token_store import RedisRefreshTokenStore
from lending_api.infra.sqlalchemy.sqlalchemy_refresh_token_store import (
    SQLAlchemyRefreshTokenStore,
)
from lending_api.services._shared.errors import TokenGenerationError
from lending_api.services._shared.ports import (
    InMemoryRefreshTokenStore,
    RefreshTokenRecord,
    RevocationReason,
    TokenMetadata,
)
from lending_api.services.sessions.credentials import digest_credential, generate_credential

TTL = timedelta(days=30)


@pytest.fixture(params=["memory", "redis", "sqlalchemy"])
def store(request, clock, fake_redis, session):
    """One store per engine, all driven by the same mutable clock."""
    if request.param == "memory":
        return InMemoryRefreshTokenStore(clock=clock)
    if request.param == "redis":
        return RedisRefreshTokenStore(r=fake_redis, clock=clock)
    return SQLAlchemyRefreshTokenStore(session_factory=lambda: session, clock=clock)


def _record(clock, user_id: str = "u1", *, issued_ago: timedelta = timedelta(0), **kw):
    issued_at = clock() - issued_ago
    return RefreshTokenRecord(
        id=kw.pop("id", str(uuid4())),
        user_id=user_id,
        token_digest=kw.pop("token_digest", digest_credential(generate_credential())),
        issued_at=issued_at,
        expires_at=issued_at + kw.pop("ttl", TTL),
        metadata=kw.pop("metadata", TokenMetadata()),
    )


# ------------------------------- Lookup ---------------------------------- #


def test_insert_then_find_active_returns_same_record(store, clock):
    rec = store.insert(_record(clock, metadata=TokenMetadata(ip="10.0.0.1", client_identity="ua/1")))

    found = store.find_active_by_digest(rec.token_digest)

    assert found is not None
    assert found.id == rec.id
    assert found.user_id == "u1"
    assert found.expires_at == rec.expires_at
    assert found.revoked_at is None
    assert found.metadata == TokenMetadata(ip="10.0.0.1", client_identity="ua/1")


def test_find_unknown_digest_returns_none(store):
    assert store.find_active_by_digest(digest_credential("never-issued")) is None


def test_expiry_hides_record_without_write(store, clock):
    rec = store.insert(_record(clock))

    clock.advance(days=30)  # now == expires_at -> already inactive

    assert store.find_active_by_digest(rec.token_digest) is None
    snapshot = store.get(rec.id)
    assert snapshot is not None
    assert snapshot.revoked_at is None


def test_insert_duplicate_digest_raises_generation_error(store, clock):
    rec = store.insert(_record(clock))

    with pytest.raises(TokenGenerationError):
        store.insert(_record(clock, token_digest=rec.token_digest))

    assert store.find_active_by_digest(rec.token_digest).id == rec.id


# ---------------------------- Transitions -------------------------------- #


def test_mark_revoked_if_active_transitions_exactly_once(store, clock):
    rec = store.insert(_record(clock))

    assert store.mark_revoked_if_active(rec.id, RevocationReason.USER_LOGOUT) is True
    assert store.mark_revoked_if_active(rec.id, RevocationReason.USER_LOGOUT) is False

    assert store.find_active_by_digest(rec.token_digest) is None
    snapshot = store.get(rec.id)
    assert snapshot.revoked_at == clock()
    assert snapshot.revoked_reason is RevocationReason.USER_LOGOUT


def test_mark_revoked_merges_metadata_patch(store, clock):
    rec = store.insert(_record(clock, metadata=TokenMetadata(ip="10.0.0.1", client_identity="ua/1")))

    store.mark_revoked_if_active(rec.id, RevocationReason.ROTATED, TokenMetadata(ip="10.0.0.2"))

    assert store.get(rec.id).metadata == TokenMetadata(ip="10.0.0.2", client_identity="ua/1")


def test_mark_revoked_on_expired_or_unknown_is_false(store, clock):
    rec = store.insert(_record(clock))
    clock.advance(days=31)

    assert store.mark_revoked_if_active(rec.id, RevocationReason.OTHER) is False
    assert store.mark_revoked_if_active(str(uuid4()), RevocationReason.OTHER) is False
    assert store.get(rec.id).revoked_at is None


def test_set_replaced_by_is_set_at_most_once(store, clock):
    parent = store.insert(_record(clock))
    first = store.insert(_record(clock))
    second = store.insert(_record(clock))
    store.mark_revoked_if_active(parent.id, RevocationReason.ROTATED)

    store.set_replaced_by(parent.id, first.id)
    store.set_replaced_by(parent.id, second.id)

    assert store.get(parent.id).replaced_by == first.id


def test_revoke_all_active_for_user_counts_only_its_active_records(store, clock):
    a1 = store.insert(_record(clock, "u1"))
    a2 = store.insert(_record(clock, "u1"))
    already = store.insert(_record(clock, "u1"))
    store.mark_revoked_if_active(already.id, RevocationReason.USER_LOGOUT)
    expired = store.insert(_record(clock, "u1", issued_ago=timedelta(days=31)))
    other = store.insert(_record(clock, "u2"))

    assert store.revoke_all_active_for_user("u1", RevocationReason.USER_LOGOUT_ALL) == 2

    for rec in (a1, a2):
        snapshot = store.get(rec.id)
        assert snapshot.revoked_reason is RevocationReason.USER_LOGOUT_ALL
    assert store.get(already.id).revoked_reason is RevocationReason.USER_LOGOUT
    assert store.get(expired.id).revoked_at is None
    assert store.find_active_by_digest(other.token_digest) is not None
    assert store.revoke_all_active_for_user("u1", RevocationReason.USER_LOGOUT_ALL) == 0


def test_revoke_all_for_unknown_user_is_zero(store):
    assert store.revoke_all_active_for_user("nobody", RevocationReason.USER_LOGOUT_ALL) == 0


def test_get_unknown_id_returns_none(store):
    assert store.get(str(uuid4())) is None


# ------------------------------ Housekeeping ----------------------------- #


def test_purge_removes_only_records_inactive_before_cutoff(store, clock):
    now = clock()
    expired_long_ago = store.insert(_record(clock, issued_ago=TTL + timedelta(days=3)))
    expired_recently = store.insert(_record(clock, issued_ago=TTL + timedelta(days=1)))
    active = store.insert(_record(clock))
    revoked_now = store.insert(_record(clock))
    store.mark_revoked_if_active(revoked_now.id, RevocationReason.USER_LOGOUT)

    clock.now = now - timedelta(days=3)
    revoked_long_ago = store.insert(_record(clock))
    store.mark_revoked_if_active(revoked_long_ago.id, RevocationReason.USER_LOGOUT)
    clock.now = now

    removed = store.purge(now - timedelta(days=2))

    assert removed == 2
    assert store.get(expired_long_ago.id) is None
    assert store.get(revoked_long_ago.id) is None
    for kept in (expired_recently, active, revoked_now):
        assert store.get(kept.id) is not None
    assert store.find_active_by_digest(active.token_digest) is not None
