"""Relational row backing one issued refresh credential."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from lending_api.core.extensions import db


class RefreshToken(db.Model):
    """
    Persisted refresh-token record.

    Only the SHA-256 digest of the credential is stored. ``user_id`` is an
    opaque string so the same shape works for every principal type.

    Fields
    ------
    id : str
        UUID4 string, primary key.
    user_id : str
        Owning principal.
    token_digest : str
        Hex digest; unique across the table.
    issued_at, expires_at : datetime
        Lifetime bounds (UTC).
    revoked_at : datetime | None
        Set once by the conditional revoke update.
    revoked_reason : str | None
        ``rotated``, ``user_logout``, ``user_logout_all`` or ``other``.
    replaced_by : str | None
        Id of the direct descendant after rotation.
    ip_address, client_identity : str | None
        Diagnostic metadata.
    """

    __tablename__ = "refresh_tokens"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    token_digest: Mapped[str] = mapped_column(String(64), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revoked_reason: Mapped[str | None] = mapped_column(String(32), nullable=True)
    replaced_by: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("refresh_tokens.id", ondelete="SET NULL"),
        nullable=True,
    )
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    client_identity: Mapped[str | None] = mapped_column(String(512), nullable=True)

    __table_args__ = (
        UniqueConstraint("token_digest", name="uq_refresh_tokens_token_digest"),
        Index("ix_refresh_tokens_user_id_revoked_at", "user_id", "revoked_at"),
    )

    def __repr__(self) -> str:
        return f"<RefreshToken id={self.id} user_id={self.user_id}>"
