# lending_api/infra/sqlalchemy/sqlalchemy_refresh_token_store.py
from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any, cast

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from lending_api.core.extensions import db
from lending_api.models.refresh_token import RefreshToken
from lending_api.services._shared.clock import Clock, as_utc, utc_now
from lending_api.services._shared.errors import StorageUnavailable, TokenGenerationError
from lending_api.services._shared.ports import (
    RefreshTokenRecord,
    RefreshTokenStore,
    RevocationReason,
    TokenMetadata,
)


def _default_session() -> Session:
    return cast(Session, db.session)


class SQLAlchemyRefreshTokenStore(RefreshTokenStore):
    """
    Relational refresh-token store on the Flask-SQLAlchemy session.

    Every state transition is a single conditional ``UPDATE`` whose ``WHERE``
    clause carries the activity predicate; ``rowcount == 1`` tells the caller
    it won. Each operation commits on its own so the transition is durable
    before the session service acts on it.

    :param session_factory: Callable returning the session to use. Defaults
        to the Flask-scoped ``db.session``.
    :param clock: Time source for the activity predicate.
    """

    def __init__(
        self,
        *,
        session_factory: Callable[[], Session] = _default_session,
        clock: Clock = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    @property
    def session(self) -> Session:
        return self._session_factory()

    # -------------------- helpers --------------------

    @contextmanager
    def _guard(self) -> Iterator[Session]:
        """Run one unit of work, mapping engine failures to service errors."""
        session = self.session
        try:
            yield session
        except IntegrityError as exc:
            session.rollback()
            raise TokenGenerationError("Refresh token digest collision") from exc
        except DBAPIError as exc:
            # OperationalError and friends: connection lost, lock timeout...
            session.rollback()
            raise StorageUnavailable() from exc

    @staticmethod
    def _active_clause(now: datetime) -> Any:
        return and_(RefreshToken.revoked_at.is_(None), RefreshToken.expires_at > now)

    @staticmethod
    def _to_record(row: RefreshToken) -> RefreshTokenRecord:
        return RefreshTokenRecord(
            id=row.id,
            user_id=row.user_id,
            token_digest=row.token_digest,
            issued_at=as_utc(row.issued_at),
            expires_at=as_utc(row.expires_at),
            revoked_at=as_utc(row.revoked_at) if row.revoked_at is not None else None,
            revoked_reason=(
                RevocationReason(row.revoked_reason) if row.revoked_reason is not None else None
            ),
            replaced_by=row.replaced_by,
            metadata=TokenMetadata(ip=row.ip_address, client_identity=row.client_identity),
        )

    # -------------------- API ------------------------

    def insert(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        with self._guard() as session:
            session.add(
                RefreshToken(
                    id=record.id,
                    user_id=record.user_id,
                    token_digest=record.token_digest,
                    issued_at=record.issued_at,
                    expires_at=record.expires_at,
                    revoked_at=record.revoked_at,
                    revoked_reason=record.revoked_reason.value if record.revoked_reason else None,
                    replaced_by=record.replaced_by,
                    ip_address=record.metadata.ip,
                    client_identity=record.metadata.client_identity,
                )
            )
            session.commit()
        return record

    def find_active_by_digest(self, digest: str) -> RefreshTokenRecord | None:
        with self._guard() as session:
            stmt = (
                select(RefreshToken)
                .where(RefreshToken.token_digest == digest, self._active_clause(self._clock()))
                .execution_options(populate_existing=True)
            )
            row = session.execute(stmt).scalars().first()
            return self._to_record(row) if row is not None else None

    def mark_revoked_if_active(
        self,
        record_id: str,
        reason: RevocationReason,
        metadata_patch: TokenMetadata | None = None,
    ) -> bool:
        now = self._clock()
        values: dict[str, Any] = {"revoked_at": now, "revoked_reason": reason.value}
        if metadata_patch is not None:
            if metadata_patch.ip is not None:
                values["ip_address"] = metadata_patch.ip
            if metadata_patch.client_identity is not None:
                values["client_identity"] = metadata_patch.client_identity

        stmt = (
            update(RefreshToken)
            .where(RefreshToken.id == record_id, self._active_clause(now))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with self._guard() as session:
            result = session.execute(stmt)
            session.commit()
        return result.rowcount == 1

    def set_replaced_by(self, record_id: str, descendant_id: str) -> None:
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.id == record_id, RefreshToken.replaced_by.is_(None))
            .values(replaced_by=descendant_id)
            .execution_options(synchronize_session=False)
        )
        with self._guard() as session:
            session.execute(stmt)
            session.commit()

    def revoke_all_active_for_user(self, user_id: str, reason: RevocationReason) -> int:
        now = self._clock()
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, self._active_clause(now))
            .values(revoked_at=now, revoked_reason=reason.value)
            .execution_options(synchronize_session=False)
        )
        with self._guard() as session:
            result = session.execute(stmt)
            session.commit()
        return int(result.rowcount or 0)

    def get(self, record_id: str) -> RefreshTokenRecord | None:
        with self._guard() as session:
            stmt = (
                select(RefreshToken)
                .where(RefreshToken.id == record_id)
                .execution_options(populate_existing=True)
            )
            row = session.execute(stmt).scalars().first()
            return self._to_record(row) if row is not None else None

    def purge(self, before: datetime) -> int:
        stmt = (
            delete(RefreshToken)
            .where(
                or_(
                    RefreshToken.expires_at <= before,
                    and_(RefreshToken.revoked_at.is_not(None), RefreshToken.revoked_at <= before),
                )
            )
            .execution_options(synchronize_session=False)
        )
        with self._guard() as session:
            result = session.execute(stmt)
            session.commit()
        return int(result.rowcount or 0)
