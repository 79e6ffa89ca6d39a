from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

log = logging.getLogger(__name__)


class Notifier(Protocol):
    """
    Port for telling a user about a security-relevant event.

    Implementations raise on delivery failure; callers treat delivery as
    best-effort.
    """

    def send_warning(self, user_id: UUID, message: str) -> None: ...


@dataclass(frozen=True, slots=True)
class SentWarning:
    user_id: UUID
    message: str


class InMemoryNotifier(Notifier):
    """Record warnings instead of delivering them."""

    def __init__(self) -> None:
        self.sent: list[SentWarning] = []
        self._lock = threading.Lock()

    def send_warning(self, user_id: UUID, message: str) -> None:
        with self._lock:
            self.sent.append(SentWarning(user_id=user_id, message=message))

    def for_user(self, user_id: UUID) -> list[SentWarning]:
        with self._lock:
            return [w for w in self.sent if w.user_id == user_id]


class LoggingNotifier(Notifier):
    """Development notifier writing warnings to the application log."""

    def send_warning(self, user_id: UUID, message: str) -> None:
        log.warning(
            "user warning: %s",
            message,
            extra={"user_id": str(user_id)},
        )
