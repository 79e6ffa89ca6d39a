"""Transaction scope abstractions and concrete implementations.

This package re-exports the SQLAlchemy-backed scope used by the refresh flow,
alongside the abstract contract that service layers depend on.
"""

from .base import ScopeFactory, TransactionScope
from .sqlalchemy_uow import SQLAlchemyTransactionScope, sqlalchemy_scope_factory

__all__ = [
    "ScopeFactory",
    "TransactionScope",
    "SQLAlchemyTransactionScope",
    "sqlalchemy_scope_factory",
]
