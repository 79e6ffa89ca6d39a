"""Repository package exposing persistence-layer access for all domain models."""

from __future__ import annotations

from authsvc.repositories.base import BaseRepository
from authsvc.repositories.device_secret import SQLAlchemyDeviceSecretStore
from authsvc.repositories.user import UserRepository

__all__ = [
    "BaseRepository",
    "SQLAlchemyDeviceSecretStore",
    "UserRepository",
]
