"""Tests for the User model."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from lending_api.models.user import User


class TestUser:
    def test_password_hashing(self, session):
        u = User(email="Test@Example.com", full_name="Tester")
        u.password = "secret123"
        session.add(u)
        session.commit()
        assert u.password_hash != "secret123"
        assert u.verify_password("secret123") is True
        assert u.verify_password("wrong") is False

    def test_password_is_write_only(self):
        u = User(email="a@example.com")
        u.password = "x"
        with pytest.raises(AttributeError):
            _ = u.password

    def test_empty_password_rejected(self):
        u = User(email="a@example.com")
        with pytest.raises(ValueError):
            u.password = ""

    def test_email_normalized_and_unique(self, session):
        u1 = User(email="  Alice@Example.com ")
        u1.password = "pw"
        session.add(u1)
        session.commit()
        assert u1.email == "alice@example.com"

        u2 = User(email="alice@example.com")
        u2.password = "pw"
        session.add(u2)
        with pytest.raises(IntegrityError):
            session.commit()

    @pytest.mark.parametrize("email", ["", "no-at-sign", "user@localhost"])
    def test_malformed_email_rejected(self, email):
        with pytest.raises(ValueError):
            User(email=email)

    def test_role_defaults_to_borrower(self, session):
        u = User(email="b@example.com", role=None)
        u.password = "pw"
        session.add(u)
        session.commit()
        assert u.role == "borrower"
        assert u.is_active is True

    def test_role_is_normalized(self):
        u = User(email="c@example.com", role=" Officer ")
        assert u.role == "officer"
