"""Request context middleware.

Every request gets an id: a well-formed ``X-Request-ID`` sent by the caller
(a reverse proxy, usually) is reused, anything else is replaced by a fresh
short uuid. The id is bound into structlog's context variables for the
duration of the request and echoed back on the response.
"""

import re

import shortuuid
import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from site_friends.core.request_context import RequestContext


REQUEST_ID_HEADER = "x-request-id"

_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def request_id_for(request: Request) -> str:
    incoming = request.headers.get(REQUEST_ID_HEADER, "")
    if _REQUEST_ID_PATTERN.match(incoming):
        return incoming
    return shortuuid.uuid()


def get_request_context(request: Request) -> RequestContext | None:
    return getattr(request.state, "context", None)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Attaches a ``RequestContext`` to ``request.state.context``."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        context = RequestContext(
            request_id=request_id_for(request),
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else "unknown",
        )
        request.state.context = context

        with structlog.contextvars.bound_contextvars(request_id=context.request_id):
            response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = context.request_id
        return response
