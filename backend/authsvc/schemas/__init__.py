"""Marshmallow schemas for request and response payloads."""

from .auth import LoginQuerySchema, TokenPairSchema

__all__ = ["LoginQuerySchema", "TokenPairSchema"]
