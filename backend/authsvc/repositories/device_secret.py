"""Device secret repository backed by the ``refresh_token`` table."""

from __future__ import annotations

from datetime import datetime
from typing import cast
from uuid import UUID

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from authsvc.core.extensions import db
from authsvc.models.device_secret import DeviceSecret
from authsvc.services._shared.errors import NotFoundError, PersistenceError, TransactionError
from authsvc.services._shared.ports.secret_store import SecretStore, describe_key
from authsvc.uow.base import TransactionScope

_UPSERT_DIALECTS = ("postgresql", "sqlite")


class SQLAlchemyDeviceSecretStore(SecretStore[Session]):
    """
    Persistence for device secrets, keyed by ``(user_id, device_id)``.

    * :meth:`upsert_secret` runs in its own short transaction on the engine.
    * :meth:`lookup_secret` and :meth:`replace_secret` run inside the
      caller's :class:`~authsvc.uow.sqlalchemy_uow.SQLAlchemyTransactionScope`
      and never commit.

    Database failures outside a scope surface as :class:`PersistenceError`;
    inside a scope they abort the transaction and surface as
    :class:`TransactionError`.
    """

    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine if self._engine is not None else db.engine

    # ------------------------------ Unscoped ---------------------------------

    def upsert_secret(self, user_id: UUID, device_id: bytes, secret_hash: bytes) -> None:
        """Insert the record, or overwrite its hash when the key exists."""
        try:
            with self.engine.begin() as conn:
                if conn.dialect.name in _UPSERT_DIALECTS:
                    self._upsert_on_conflict(conn, user_id, device_id, secret_hash)
                else:
                    self._update_then_insert(conn, user_id, device_id, secret_hash)
        except SQLAlchemyError as exc:
            raise PersistenceError(
                detail=f"upsert {describe_key(user_id, device_id)}: {exc}"
            ) from exc

    def prune_stale(self, before: datetime) -> int:
        """
        Delete records whose last rotation happened before ``before``.

        :returns: Number of deleted records.
        :raises PersistenceError: On database failure.
        """
        stmt = delete(DeviceSecret).where(DeviceSecret.updated_at < before)
        try:
            with self.engine.begin() as conn:
                result = conn.execute(stmt)
        except SQLAlchemyError as exc:
            raise PersistenceError(detail=f"prune device secrets: {exc}") from exc
        return int(result.rowcount or 0)

    # ------------------------------- Scoped ----------------------------------

    def lookup_secret(
        self, scope: TransactionScope[Session], user_id: UUID, device_id: bytes
    ) -> bytes:
        stmt = select(DeviceSecret.token_hash).where(
            DeviceSecret.user_id == user_id,
            DeviceSecret.device_id == device_id,
        )
        try:
            token_hash = scope.context.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise TransactionError(
                detail=f"get token hash {describe_key(user_id, device_id)}: {exc}"
            ) from exc
        if token_hash is None:
            raise NotFoundError("DeviceSecret", describe_key(user_id, device_id))
        return cast(bytes, token_hash)

    def replace_secret(
        self,
        scope: TransactionScope[Session],
        user_id: UUID,
        old_device_id: bytes,
        new_device_id: bytes,
        secret_hash: bytes,
        *,
        expected_hash: bytes,
    ) -> None:
        session = scope.context
        try:
            if new_device_id != old_device_id:
                # The target slot may already hold a session of this user.
                session.execute(
                    delete(DeviceSecret)
                    .where(
                        DeviceSecret.user_id == user_id,
                        DeviceSecret.device_id == new_device_id,
                    )
                    .execution_options(synchronize_session=False)
                )
            result = session.execute(
                update(DeviceSecret)
                .where(
                    DeviceSecret.user_id == user_id,
                    DeviceSecret.device_id == old_device_id,
                    # compare-and-swap: a concurrent rotation leaves zero rows
                    DeviceSecret.token_hash == expected_hash,
                )
                .values(device_id=new_device_id, token_hash=secret_hash, updated_at=func.now())
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as exc:
            raise TransactionError(
                detail=f"replace token hash {describe_key(user_id, old_device_id)}: {exc}"
            ) from exc
        if not result.rowcount:
            raise NotFoundError("DeviceSecret", describe_key(user_id, old_device_id))

    # ------------------------------ Internals --------------------------------

    def _upsert_on_conflict(
        self, conn: Connection, user_id: UUID, device_id: bytes, secret_hash: bytes
    ) -> None:
        if conn.dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import insert as dialect_insert
        else:
            from sqlalchemy.dialects.sqlite import insert as dialect_insert

        stmt = dialect_insert(DeviceSecret.__table__).values(
            user_id=user_id, device_id=device_id, token_hash=secret_hash
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "device_id"],
            set_={"token_hash": stmt.excluded.token_hash, "updated_at": func.now()},
        )
        conn.execute(stmt)

    def _update_then_insert(
        self, conn: Connection, user_id: UUID, device_id: bytes, secret_hash: bytes
    ) -> None:
        result = conn.execute(
            update(DeviceSecret)
            .where(DeviceSecret.user_id == user_id, DeviceSecret.device_id == device_id)
            .values(token_hash=secret_hash, updated_at=func.now())
        )
        if not result.rowcount:
            conn.execute(
                insert(DeviceSecret).values(
                    user_id=user_id, device_id=device_id, token_hash=secret_hash
                )
            )
