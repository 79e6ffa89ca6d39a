from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Protocol
from uuid import UUID

from authsvc.services._shared.errors import NotFoundError


class UserDirectory(Protocol):
    """Yes/no existence oracle keyed by user identity."""

    def exists(self, user_id: UUID) -> bool: ...


class EmailDirectory(Protocol):
    """Resolves the contact address of a user."""

    def get_email(self, user_id: UUID) -> str:
        """
        :raises NotFoundError: If the user is unknown.
        """
        ...


class InMemoryUserDirectory(UserDirectory):
    """Dictionary-backed directory mapping user ids to email addresses."""

    def __init__(self, users: Mapping[UUID, str] | Iterable[UUID] | None = None) -> None:
        self._users: dict[UUID, str] = {}
        if isinstance(users, Mapping):
            self._users.update(users)
        elif users is not None:
            self._users.update({uid: "" for uid in users})

    def add(self, user_id: UUID, email: str = "") -> None:
        self._users[user_id] = email

    def remove(self, user_id: UUID) -> None:
        self._users.pop(user_id, None)

    def exists(self, user_id: UUID) -> bool:
        return user_id in self._users

    def get_email(self, user_id: UUID) -> str:
        try:
            return self._users[user_id]
        except KeyError as exc:
            raise NotFoundError("User", user_id) from exc
