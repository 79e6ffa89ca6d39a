from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Protocol, TypeVar
from uuid import UUID

from authsvc.services._shared.errors import NotFoundError, TransactionError
from authsvc.uow.base import TransactionScope

T = TypeVar("T")

SecretKey = tuple[UUID, bytes]


class SecretStore(Protocol[T]):
    """
    Persistence contract for device secrets keyed by ``(user_id, device_id)``.

    ``T`` is the opaque transaction handle exposed by the scopes the store
    works with, so services never depend on a concrete database type.
    """

    def upsert_secret(self, user_id: UUID, device_id: bytes, secret_hash: bytes) -> None:
        """
        Insert or overwrite the secret hash for a key, outside any scope.

        Used only at first issuance for a ``(user, device)`` pair.
        """

    def lookup_secret(self, scope: TransactionScope[T], user_id: UUID, device_id: bytes) -> bytes:
        """
        Return the stored hash for a key inside ``scope``.

        :raises NotFoundError: If no record exists for the key.
        """

    def replace_secret(
        self,
        scope: TransactionScope[T],
        user_id: UUID,
        old_device_id: bytes,
        new_device_id: bytes,
        secret_hash: bytes,
        *,
        expected_hash: bytes,
    ) -> None:
        """
        Conditionally move/overwrite the record at ``(user_id, old_device_id)``.

        The write only applies while the record still holds ``expected_hash``
        (the value returned by :meth:`lookup_secret` in the same scope).

        :raises NotFoundError: If zero rows matched the old key and hash.
        """


def describe_key(user_id: UUID, device_id: bytes) -> str:
    """Render a store key for log and error messages."""
    return f"{user_id}/{device_id.hex()[:16]}"


@dataclass(slots=True)
class _Pending:
    # version observed per key read in the scope (None = absent)
    reads: dict[SecretKey, int | None] = field(default_factory=dict)
    # buffered writes (None = delete)
    writes: dict[SecretKey, bytes | None] = field(default_factory=dict)


class InMemoryTransactionScope(TransactionScope[_Pending]):
    """
    Optimistic, snapshot-checked scope over :class:`InMemorySecretStore`.

    Writes are buffered; ``commit()`` applies them only if nothing the scope
    read has changed since, which mirrors a serializable backend rejecting
    the second of two conflicting writers.
    """

    def __init__(self, store: InMemorySecretStore, *, deadline: float | None = None) -> None:
        super().__init__(deadline=deadline)
        self._store = store
        self._pending = _Pending()

    @property
    def context(self) -> _Pending:
        return self._pending

    def _do_commit(self) -> None:
        self._store._apply(self._pending)

    def _do_rollback(self) -> None:
        self._pending = _Pending()


class InMemorySecretStore(SecretStore[_Pending]):
    """
    In-memory device secret store with transactional scopes.

    .. note::
       Uses a threading lock to keep committed state consistent across
       threads in unit tests.
    """

    def __init__(self) -> None:
        # key -> (hash, version)
        self._rows: dict[SecretKey, tuple[bytes, int]] = {}
        self._lock = threading.Lock()

    # ------------------------- helpers -------------------------

    def begin(self, *, deadline: float | None = None) -> InMemoryTransactionScope:
        """Scope factory bound to this store."""
        return InMemoryTransactionScope(self, deadline=deadline)

    def _committed(self, key: SecretKey) -> tuple[bytes, int] | None:
        with self._lock:
            return self._rows.get(key)

    def _read(self, pending: _Pending, key: SecretKey) -> bytes | None:
        if key in pending.writes:
            return pending.writes[key]
        row = self._committed(key)
        pending.reads.setdefault(key, row[1] if row else None)
        return row[0] if row else None

    def _apply(self, pending: _Pending) -> None:
        with self._lock:
            for key, version in pending.reads.items():
                row = self._rows.get(key)
                current = row[1] if row else None
                if current != version:
                    raise TransactionError(
                        detail="could not serialize access due to concurrent update"
                    )
            for key, value in pending.writes.items():
                if value is None:
                    self._rows.pop(key, None)
                    continue
                row = self._rows.get(key)
                self._rows[key] = (value, (row[1] if row else 0) + 1)

    # -------------------------- API ----------------------------

    def upsert_secret(self, user_id: UUID, device_id: bytes, secret_hash: bytes) -> None:
        with self._lock:
            row = self._rows.get((user_id, device_id))
            self._rows[(user_id, device_id)] = (secret_hash, (row[1] if row else 0) + 1)

    def lookup_secret(
        self, scope: TransactionScope[_Pending], user_id: UUID, device_id: bytes
    ) -> bytes:
        scope.ensure_active()
        value = self._read(scope.context, (user_id, device_id))
        if value is None:
            raise NotFoundError("DeviceSecret", describe_key(user_id, device_id))
        return value

    def replace_secret(
        self,
        scope: TransactionScope[_Pending],
        user_id: UUID,
        old_device_id: bytes,
        new_device_id: bytes,
        secret_hash: bytes,
        *,
        expected_hash: bytes,
    ) -> None:
        scope.ensure_active()
        pending = scope.context
        old_key = (user_id, old_device_id)
        if self._read(pending, old_key) != expected_hash:
            raise NotFoundError("DeviceSecret", describe_key(user_id, old_device_id))
        new_key = (user_id, new_device_id)
        if new_key != old_key:
            self._read(pending, new_key)
            pending.writes[old_key] = None
        pending.writes[new_key] = secret_hash

    # ------------------------- inspection ----------------------

    def get(self, user_id: UUID, device_id: bytes) -> bytes | None:
        """Fetch the committed hash for a key (test/inspection helper)."""
        row = self._committed((user_id, device_id))
        return row[0] if row else None

    def keys(self) -> list[SecretKey]:
        with self._lock:
            return sorted(self._rows, key=lambda k: (str(k[0]), k[1]))
