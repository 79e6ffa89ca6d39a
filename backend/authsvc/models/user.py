"""User model definition for the token service."""

from __future__ import annotations

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates

from authsvc.core.extensions import db

from .base import ReprMixin, TimestampMixin, UUIDPKMixin


class User(UUIDPKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Identity known to the service.

    Login trusts the identifier given by the caller, so no password is
    stored. The email is only used to deliver security warnings.

    Fields
    ------
    id : uuid.UUID
        User identifier (``sub`` of access tokens).
    email : str
        Contact email. Stored normalized (lowercase, trimmed).
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(254), nullable=False)

    __table_args__ = (UniqueConstraint("email", name="uq_users_email"),)

    @validates("email")
    def _normalize_email(self, _key: str, value: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Email must be a non-empty string.")
        return value.strip().lower()
