from __future__ import annotations

from typing import Any, Protocol

# Token type identifiers as written by the JWT library into the ``type`` claim
ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class TokenCodec(Protocol):
    """
    Port for minting and verifying signed tokens.

    Implementations hold the shared signing secret and accept exactly one
    symmetric algorithm when verifying.
    """

    def create_access_token(
        self,
        *,
        identity: str,
        additional_claims: dict[str, Any] | None = None,
        jti: str | None = None,
    ) -> str:
        """
        Sign an access token for ``identity``.

        :raises SigningError: On internal cryptographic failure.
        """
        ...

    def create_refresh_token(
        self,
        *,
        identity: str,
        additional_claims: dict[str, Any] | None = None,
    ) -> str:
        """
        Sign a refresh token for ``identity``.

        :raises SigningError: On internal cryptographic failure.
        """
        ...

    def decode(
        self,
        token: str,
        *,
        token_type: str,
        allow_expired: bool = False,
    ) -> dict[str, Any]:
        """
        Verify ``token`` and return its claims.

        :raises ValidationError: If the signature is absent or invalid, the
            algorithm is not the configured one, or the type does not match.
        """
        ...
