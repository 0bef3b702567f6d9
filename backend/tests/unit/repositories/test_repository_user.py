"""Tests for UserRepository."""

from __future__ import annotations

from lending_api.repositories import UserRepository
from tests.factories.user import DEFAULT_PASSWORD, UserFactory


class TestUserRepository:
    def test_get_by_email_is_case_insensitive(self, session):
        user = UserFactory(email="mixed@example.com")
        repo = UserRepository(session=session)

        assert repo.get_by_email("  MIXED@Example.com") is user
        assert repo.get_by_email("missing@example.com") is None

    def test_exists_by_email(self, session):
        UserFactory(email="taken@example.com")
        repo = UserRepository(session=session)

        assert repo.exists_by_email("Taken@example.com") is True
        assert repo.exists_by_email("free@example.com") is False

    def test_create_hashes_password_and_assigns_id(self, session):
        repo = UserRepository(session=session)

        user = repo.create(email="New@Example.com", password="s3cret-pass", full_name="New")

        assert user.id is not None
        assert user.email == "new@example.com"
        assert user.role == "borrower"
        assert user.verify_password("s3cret-pass")

    def test_authenticate(self, session):
        user = UserFactory()
        repo = UserRepository(session=session)

        assert repo.authenticate(user.email, DEFAULT_PASSWORD) is user
        assert repo.authenticate(user.email, "wrong") is None
        assert repo.authenticate("ghost@example.com", DEFAULT_PASSWORD) is None
