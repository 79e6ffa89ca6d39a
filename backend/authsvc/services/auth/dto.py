# authsvc/services/auth/dto.py
from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class IssueIn:
    """
    Input DTO for first issuance (login).

    :param user_id: Identity accepted as given by the caller.
    :type user_id: UUID
    :param client_address: Network address of the requesting client.
    :type client_address: str
    """

    user_id: UUID
    client_address: str


@dataclass(frozen=True, slots=True)
class RefreshIn:
    """
    Input DTO for token pair rotation.

    :param access_token: Signed access token of the current pair.
    :type access_token: str
    :param refresh_token: Transport-encoded refresh token of the current pair.
    :type refresh_token: str
    :param client_address: Network address of the requesting client.
    :type client_address: str
    :param deadline: Absolute ``time.monotonic()`` deadline, or ``None``.
    :type deadline: float | None
    """

    access_token: str
    refresh_token: str
    client_address: str
    deadline: float | None = None


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class TokenPairOut:
    """
    Output DTO with access and refresh tokens.

    :param access_token: Encoded access JWT.
    :type access_token: str
    :param refresh_token: base64url-wrapped refresh JWT.
    :type refresh_token: str
    :param secret_hash: Salted hash of the access token fingerprint. Only
        this value is persisted; it is never sent to clients.
    :type secret_hash: bytes
    """

    access_token: str
    refresh_token: str
    secret_hash: bytes = field(repr=False)
