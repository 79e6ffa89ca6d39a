"""
SQLAlchemy implementation of the serializable transaction scope.
"""

from __future__ import annotations

import logging
from contextlib import suppress

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from authsvc.core.extensions import db
from authsvc.services._shared.errors import TransactionError
from authsvc.uow.base import TransactionScope

log = logging.getLogger(__name__)

_ISOLATION_LEVELS = (
    "READ COMMITTED",
    "REPEATABLE READ",
    "SERIALIZABLE",
    "READ UNCOMMITTED",
)


class SQLAlchemyTransactionScope(TransactionScope[Session]):
    """
    Transaction scope owning a private SQLAlchemy session.

    The scope does not share the Flask-scoped ``db.session``: each refresh runs
    on its own connection checked out with the requested isolation level, so
    concurrent rotations are serialized by the database rather than by the
    request context.

    Parameters
    ----------
    engine:
        Engine to bind to. Defaults to the Flask-SQLAlchemy engine of the
        current application.
    isolation_level:
        Isolation level requested through ``execution_options``. Defaults to
        ``"SERIALIZABLE"``.
    deadline:
        Absolute ``time.monotonic()`` deadline, or ``None``.

    Notes
    -----
    *PostgreSQL*: the remaining time is also pushed to the server as
    ``SET LOCAL statement_timeout`` so a blocked statement is cancelled.
    *SQLite*: pysqlite defers ``BEGIN`` until the first write, so reads are
    not isolated. Stores bound to this scope guard their writes with a
    compare-and-swap on the value read earlier in the scope.
    """

    def __init__(
        self,
        *,
        engine: Engine | None = None,
        isolation_level: str | None = "SERIALIZABLE",
        deadline: float | None = None,
    ) -> None:
        super().__init__(deadline=deadline)
        bind = engine if engine is not None else db.engine
        if isolation_level:
            iso = isolation_level.upper().strip()
            if iso not in _ISOLATION_LEVELS:
                log.warning("Unknown isolation_level '%s'; attempting as-is.", iso)
            bind = bind.execution_options(isolation_level=iso)
        self.isolation_level = isolation_level
        self._session = Session(bind=bind, autoflush=False, expire_on_commit=False)
        self._timeout_applied = False

    # ----------------------------- Public API ---------------------------------

    @property
    def context(self) -> Session:
        """Return the private session, applying the deadline on first use."""
        self.ensure_active()
        if not self._timeout_applied:
            self._timeout_applied = True
            self._apply_statement_timeout()
        return self._session

    # ----------------------------- Backend hooks ------------------------------

    def _do_commit(self) -> None:
        try:
            self._session.commit()
        except SQLAlchemyError as exc:
            raise TransactionError(detail=f"commit unit of work: {exc}") from exc
        finally:
            self._session.close()

    def _do_rollback(self) -> None:
        try:
            self._session.rollback()
        except SQLAlchemyError as exc:
            log.error("failed to rollback unit of work: %s", exc)
        finally:
            with suppress(SQLAlchemyError):
                self._session.close()

    # ------------------------------ Internals --------------------------------

    def _apply_statement_timeout(self) -> None:
        left = self.remaining()
        if left is None:
            return
        bind = self._session.get_bind()
        if bind.dialect.name != "postgresql":
            return
        millis = max(int(left * 1000), 1)
        try:
            self._session.execute(text(f"SET LOCAL statement_timeout = {millis}"))
        except SQLAlchemyError as exc:
            raise TransactionError(detail=f"set statement timeout: {exc}") from exc


def sqlalchemy_scope_factory(
    *, engine: Engine | None = None, isolation_level: str | None = "SERIALIZABLE"
):
    """
    Build a scope factory bound to an engine and isolation level.

    :returns: Callable accepting ``deadline=`` and returning a fresh scope.
    """

    def factory(*, deadline: float | None = None) -> SQLAlchemyTransactionScope:
        return SQLAlchemyTransactionScope(
            engine=engine, isolation_level=isolation_level, deadline=deadline
        )

    return factory
