"""User repository: lookups and password checks."""

from __future__ import annotations

from typing import cast

from sqlalchemy import select

from lending_api.models.user import User
from lending_api.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    It never issues access or refresh tokens; that belongs to the services.
    """

    model = User

    def get_by_email(self, email: str) -> User | None:
        """Fetch a user by email (case-insensitive).

        :param email: Email address to normalise and search.
        :type email: str
        :rtype: User | None
        """
        stmt = select(User).where(User.email == email.lower().strip())
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def exists_by_email(self, email: str) -> bool:
        stmt = select(User.id).where(User.email == email.lower().strip())
        return bool(self.session.execute(stmt).first())

    def create(
        self,
        *,
        email: str,
        password: str,
        full_name: str | None = None,
        phone: str | None = None,
        role: str | None = None,
    ) -> User:
        """Stage a new user; the model setter hashes ``password``.

        :returns: The flushed user with its primary key assigned.
        """
        user = User(email=email, full_name=full_name, phone=phone, role=role)
        user.password = password
        return self.add(user)

    def authenticate(self, email: str, password: str) -> User | None:
        """Return the user when ``email``/``password`` match, else ``None``."""
        user = self.get_by_email(email)
        if not user or not user.verify_password(password):
            return None
        return user
