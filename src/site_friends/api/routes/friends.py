"""REST endpoints of the friends protocol under ``/wp-json/friends/v1``.

These are the endpoints remote sites call:

    GET  hello                    - liveness/compatibility probe
    POST friend-request           - a site asks us for friendship
    POST friend-request-accepted  - a site we asked has accepted

Parameters are read from the query string and from a form or JSON body.
Anything else under ``/wp-json/`` answers ``rest_no_route``, which remote
sites take as "not a friends site".
"""

from typing import Any

import orjson
import structlog
from fastapi import APIRouter, BackgroundTasks, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from site_friends._version import PROTOCOL_VERSION
from site_friends.api.dependencies import ServicesDep
from site_friends.exceptions import (
    FriendsError,
    InvalidParametersError,
    InvalidSiteError,
    NoRouteError,
)
from site_friends.handshake.client import REST_NAMESPACE
from site_friends.handshake.models import AcceptancePayload, FriendRequestPayload
from site_friends.services import FriendsServices


logger = structlog.get_logger(__name__)

router = APIRouter(prefix=f"/wp-json/{REST_NAMESPACE}", tags=["friends"])

# Registered after every other /wp-json route
fallback_router = APIRouter(tags=["friends"])


async def request_params(request: Request) -> dict[str, Any]:
    """Merge query parameters with a form or JSON body."""
    params: dict[str, Any] = dict(request.query_params)
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        body = await request.body()
        if body:
            try:
                decoded = orjson.loads(body)
            except orjson.JSONDecodeError:
                decoded = None
            if isinstance(decoded, dict):
                params.update(decoded)
    elif content_type.startswith(
        ("application/x-www-form-urlencoded", "multipart/form-data")
    ):
        form = await request.form()
        params.update({key: value for key, value in form.items() if isinstance(value, str)})
    return params


@router.get("/hello")
async def hello(services: ServicesDep) -> JSONResponse:
    """Answer the protocol probe, advertising our API root in ``Link``."""
    site_url = services.settings.site.url
    return JSONResponse(
        {"version": PROTOCOL_VERSION},
        headers={"link": f'<{site_url}/wp-json/>; rel="https://api.w.org/"'},
    )


@router.post("/friend-request")
async def friend_request(request: Request, services: ServicesDep) -> dict[str, str]:
    """A remote site asks for friendship."""
    params = await request_params(request)
    try:
        payload = FriendRequestPayload.model_validate(params)
    except ValidationError as e:
        raise InvalidSiteError() from e

    grant = await services.handshake.receive_friend_request(
        payload.site_url,
        name=payload.name,
        email=payload.email,
        client_ip=request.client.host if request.client else None,
    )
    return grant.model_dump(exclude_none=True)


async def _sync_after_acceptance(services: FriendsServices, account_id: int) -> None:
    try:
        await services.sync_engine.sync_account(account_id)
    except FriendsError as e:
        logger.warning(
            "post_acceptance_sync_failed", account_id=account_id, error=e.message
        )


@router.post("/friend-request-accepted")
async def friend_request_accepted(
    request: Request, services: ServicesDep, background_tasks: BackgroundTasks
) -> dict[str, str]:
    """A site we sent a request to has accepted it."""
    params = await request_params(request)
    try:
        payload = AcceptancePayload.model_validate(params)
    except ValidationError as e:
        raise InvalidParametersError() from e

    grant = await services.handshake.confirm_acceptance(payload.token, payload.friend)

    account_id = await services.access.verify_token(grant.friend)
    if account_id is not None:
        background_tasks.add_task(_sync_after_acceptance, services, account_id)
    return grant.model_dump(exclude_none=True)


@fallback_router.api_route(
    "/wp-json/{path:path}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def no_route(path: str) -> None:
    raise NoRouteError()
