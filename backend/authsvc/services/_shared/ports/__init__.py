"""
authsvc.services._shared.ports
==============================

Collection of *ports* (hexagonal interfaces) that define the contracts
between the rotation service and its infrastructure.

Modules
-------
- :mod:`token_codec`:
    Defines :class:`~.TokenCodec`: abstraction for signing and verifying tokens.

- :mod:`secret_store`:
    Defines :class:`~.SecretStore`: device secret persistence working inside
    a :class:`~authsvc.uow.base.TransactionScope`.

- :mod:`user_directory`:
    Defines :class:`~.UserDirectory`: the user existence oracle.

- :mod:`notifier`:
    Defines :class:`~.Notifier`: best-effort warnings to users.

Design Notes
------------
Concrete adapters (SQLAlchemy, JWT, SMTP) live under ``authsvc.infra`` and
``authsvc.repositories``; in-memory adapters live next to their ports and are
used by unit tests and local development.
"""

from __future__ import annotations

from .notifier import InMemoryNotifier, LoggingNotifier, Notifier, SentWarning
from .secret_store import InMemorySecretStore, InMemoryTransactionScope, SecretStore
from .token_codec import ACCESS_TOKEN_TYPE, REFRESH_TOKEN_TYPE, TokenCodec
from .user_directory import EmailDirectory, InMemoryUserDirectory, UserDirectory

__all__ = [
    "ACCESS_TOKEN_TYPE",
    "REFRESH_TOKEN_TYPE",
    "EmailDirectory",
    "InMemoryNotifier",
    "InMemorySecretStore",
    "InMemoryTransactionScope",
    "InMemoryUserDirectory",
    "LoggingNotifier",
    "Notifier",
    "SecretStore",
    "SentWarning",
    "TokenCodec",
    "UserDirectory",
]
