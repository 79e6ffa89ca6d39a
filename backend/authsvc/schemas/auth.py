"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import RAISE, Schema, fields, validate


class LoginQuerySchema(Schema):
    """Query string for first issuance: ``?GUID=<uuid>``."""

    class Meta:
        unknown = RAISE

    user_id = fields.UUID(required=True, data_key="GUID")


class TokenPairSchema(Schema):
    """Token pair as exchanged with clients (refresh input and all outputs)."""

    class Meta:
        unknown = RAISE

    access_token = fields.String(
        required=True, data_key="accessToken", validate=validate.Length(min=1, max=2048)
    )
    refresh_token = fields.String(
        required=True, data_key="refreshToken", validate=validate.Length(min=1, max=2048)
    )
