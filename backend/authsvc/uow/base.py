"""
Abstract transaction scope contracts.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Generic, TypeVar

from authsvc.services._shared.errors import TransactionError

T = TypeVar("T")


class TransactionScope(ABC, Generic[T]):
    """
    Coordinates a serializable transactional boundary for one use-case call.

    Responsibilities:
    - Expose an opaque transaction ``context`` to stores bound to the scope.
    - Commit only when asked to; discard on every other exit path.
    - Refuse further work once the caller's deadline has passed.

    Usage::

        with scope_factory(deadline=deadline) as scope:
            store.lookup_secret(scope, ...)
            store.replace_secret(scope, ...)
            scope.commit()

    Leaving the ``with`` block without ``commit()`` rolls back. ``rollback()``
    after a successful ``commit()`` is a no-op.
    """

    def __init__(self, *, deadline: float | None = None) -> None:
        # Absolute deadline on the ``time.monotonic()`` clock.
        self.deadline = deadline
        self._committed = False
        self._closed = False

    # ----------------------------- Context Manager -----------------------------

    def __enter__(self) -> TransactionScope[T]:
        try:
            self.ensure_active()
        except TransactionError:
            # __exit__ does not run when __enter__ raises
            self.rollback()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.rollback()

    # ----------------------------- Public API ---------------------------------

    @property
    @abstractmethod
    def context(self) -> T:
        """Return the backend-specific transaction handle."""

    @property
    def committed(self) -> bool:
        return self._committed

    def remaining(self) -> float | None:
        """Seconds left before the deadline (``None`` when unbounded)."""
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    def ensure_active(self) -> None:
        """
        Fail when the scope is closed or its deadline has passed.

        :raises TransactionError: If no further work may run in this scope.
        """
        if self._closed:
            raise TransactionError(detail="transaction scope is closed")
        left = self.remaining()
        if left is not None and left <= 0:
            raise TransactionError(detail="transaction deadline exceeded")

    def commit(self) -> None:
        """
        Commit the pending work.

        :raises TransactionError: If the backend rejects the commit (e.g. a
            serialization conflict) or the deadline has passed.
        """
        self.ensure_active()
        self._do_commit()
        self._committed = True
        self._closed = True

    def rollback(self) -> None:
        """Discard the pending work. Safe to call any number of times."""
        if self._closed:
            return
        self._closed = True
        self._do_rollback()

    # ----------------------------- Backend hooks ------------------------------

    @abstractmethod
    def _do_commit(self) -> None: ...

    @abstractmethod
    def _do_rollback(self) -> None: ...


ScopeFactory = Callable[..., TransactionScope[T]]
"""Callable accepting ``deadline=`` and returning a fresh, unused scope."""


__all__ = ["ScopeFactory", "TransactionScope"]
