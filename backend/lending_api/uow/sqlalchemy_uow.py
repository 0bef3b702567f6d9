"""
SQLAlchemy implementation of UnitOfWork for Flask.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from lending_api.core.extensions import db
from lending_api.repositories import UserRepository
from lending_api.uow.base import UnitOfWork


class SQLAlchemyUnitOfWork(UnitOfWork):
    """
    UoW on the Flask-scoped session, shared by every repository it exposes.

    :param read_only: When ``True`` nothing is committed on exit; a read
        path never flushes pending state on behalf of a caller.
    """

    def __init__(self, *, read_only: bool = False) -> None:
        self.session: Session = db.session
        self.read_only = read_only
        self.users = UserRepository(session=self.session)

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        # No-op: the session is lazily started on the first statement.
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.rollback()
            return
        if self.read_only:
            return
        try:
            self.commit()
        except Exception:
            self.rollback()
            raise

    def commit(self) -> None:
        if self.read_only:
            raise RuntimeError("Read-only unit of work cannot commit.")
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
