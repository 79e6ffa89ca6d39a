"""User repository: the user directory backed by the ``users`` table."""

from __future__ import annotations

from typing import cast
from uuid import UUID

from sqlalchemy import select

from authsvc.models.user import User
from authsvc.repositories.base import BaseRepository
from authsvc.services._shared.errors import NotFoundError


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    Implements the ``UserDirectory`` port. It never issues tokens; it only
    answers whether an identity exists and where to reach it.
    """

    model = User

    def exists(self, user_id: UUID) -> bool:
        """Return ``True`` when a user with ``user_id`` exists.

        :param user_id: Identifier to look up.
        :type user_id: UUID
        :rtype: bool
        """
        stmt = select(User.id).where(User.id == user_id)
        return bool(self.session.execute(stmt).first())

    def get_email(self, user_id: UUID) -> str:
        """Return the email address of a user.

        :raises NotFoundError: If the user does not exist.
        """
        stmt = select(User.email).where(User.id == user_id)
        email = self.session.execute(stmt).scalar_one_or_none()
        if email is None:
            raise NotFoundError("User", user_id)
        return cast(str, email)
