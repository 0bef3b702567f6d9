"""Tests for the SQLAlchemy unit of work."""

from __future__ import annotations

import pytest
from sqlalchemy import select

from lending_api.models.user import User
from lending_api.uow import SQLAlchemyUnitOfWork


def _emails(session) -> set[str]:
    return set(session.execute(select(User.email)).scalars())


class TestSQLAlchemyUnitOfWork:
    def test_commits_on_success(self, app, session):
        with SQLAlchemyUnitOfWork() as uow:
            uow.users.create(email="rw@example.com", password="pw")

        session.expire_all()
        assert "rw@example.com" in _emails(session)

    def test_rolls_back_on_error(self, app, session):
        with pytest.raises(RuntimeError), SQLAlchemyUnitOfWork() as uow:
            uow.users.create(email="boom@example.com", password="pw")
            raise RuntimeError("boom")

        assert "boom@example.com" not in _emails(session)

    def test_read_only_rejects_commit(self, app, session):
        with SQLAlchemyUnitOfWork(read_only=True) as uow, pytest.raises(RuntimeError):
            uow.commit()

    def test_read_only_does_not_commit(self, app, session):
        with SQLAlchemyUnitOfWork(read_only=True) as uow:
            uow.session.add(User(email="ro@example.com", password_hash="x"))

        assert uow.session.new
        uow.session.rollback()
        assert "ro@example.com" not in _emails(session)
