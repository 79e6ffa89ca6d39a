"""Device secret model: one live refresh slot per user and device."""

from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, Index, Integer, LargeBinary, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from authsvc.core.extensions import db

from .base import ReprMixin, TimestampMixin

DEVICE_ID_LENGTH = 32


class DeviceSecret(ReprMixin, TimestampMixin, db.Model):
    """
    Salted hash of the fingerprint of the current access token for a device.

    Fields
    ------
    user_id : uuid.UUID
        Owner of the session.
    device_id : bytes
        32-byte device identifier derived from the client address.
    token_hash : bytes
        Salted one-way hash; never the token itself.
    created_at / updated_at : datetime
        Timestamps (from mixin). ``updated_at`` is the last rotation time.

    Rotation overwrites the row in place (or moves it to a new device id);
    a user never has two rows for the same device.
    """

    __tablename__ = "refresh_token"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    device_id: Mapped[bytes] = mapped_column(LargeBinary(DEVICE_ID_LENGTH), nullable=False)
    token_hash: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "device_id", name="uq_refresh_token_user_id_device_id"),
        Index("ix_refresh_token_updated_at", "updated_at"),
    )
