"""Generic repository base for SQLAlchemy 2.x.

Repositories stay persistence-only:
- They never implement use cases or domain policies.
- They never call commit/rollback on the Flask-scoped session; services and
  transaction scopes own transaction boundaries.
"""

from __future__ import annotations

from typing import Generic, TypeVar, cast

from sqlalchemy.orm import Session

from authsvc.core.extensions import db

E = TypeVar("E")  # SQLAlchemy mapped entity type


class BaseRepository(Generic[E]):
    """Persistence-only repository for a single aggregate.

    Subclasses MUST define ``model``: the SQLAlchemy mapped class.
    """

    #: SQLAlchemy mapped model (must be set by subclasses)
    model: type[E]

    def __init__(self, session: Session | None = None) -> None:
        """Initialise the repository with an optional SQLAlchemy session.

        When no explicit session is provided the repository falls back to the
        Flask-scoped session exposed by ``authsvc.core.extensions``.

        :param session: Session shared across the calling scope.
        :type session: :class:`sqlalchemy.orm.Session` | None
        """
        self._session: Session | None = session

    @property
    def session(self) -> Session:
        """Return the injected session, or the Flask-scoped one."""
        if self._session is not None:
            return self._session
        return cast(Session, db.session)
