"""Token issuance and rotation endpoints."""

from __future__ import annotations

from flask import Blueprint, request
from marshmallow import EXCLUDE

from authsvc.api.deps import (
    client_address,
    get_rotation_coordinator,
    json_response,
    refresh_deadline,
    timing,
)
from authsvc.schemas import LoginQuerySchema, TokenPairSchema
from authsvc.services.auth.dto import IssueIn, RefreshIn, TokenPairOut

bp = Blueprint("auth", __name__, url_prefix="/auth")

login_query_schema = LoginQuerySchema(unknown=EXCLUDE)
token_pair_schema = TokenPairSchema()


def _pair_body(pair: TokenPairOut) -> dict[str, str]:
    return token_pair_schema.dump(
        {"access_token": pair.access_token, "refresh_token": pair.refresh_token}
    )


@bp.post("/login")
@timing
def login():
    """Issue a token pair for the user named by ``?GUID=``."""

    query = login_query_schema.load(request.args)
    service = get_rotation_coordinator()
    pair = service.issue_tokens(IssueIn(user_id=query["user_id"], client_address=client_address()))
    return json_response(_pair_body(pair))


@bp.post("/refresh")
@timing
def refresh():
    """Rotate the presented token pair and return the next one."""

    data = token_pair_schema.load(request.get_json(silent=True))
    service = get_rotation_coordinator()
    pair = service.refresh(
        RefreshIn(
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
            client_address=client_address(),
            deadline=refresh_deadline(),
        )
    )
    return json_response(_pair_body(pair))
