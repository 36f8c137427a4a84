"""Friend token authentication for every request.

``?friend=<token>`` marks the request as an authenticated feed request of a
friend. ``?friend_auth=<token>`` logs the friend in: a session cookie is set
and the browser is redirected to the same URL without the token.
"""

from urllib.parse import parse_qsl, urlencode

import structlog
from fastapi import Request, Response
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from site_friends.access.sessions import SESSION_COOKIE_NAME
from site_friends.api.middleware.context import get_request_context


logger = structlog.get_logger(__name__)


def strip_query_param(request: Request, name: str) -> str:
    """Path and query of a request with one parameter removed."""
    pairs = [
        (key, value)
        for key, value in parse_qsl(request.url.query, keep_blank_values=True)
        if key != name
    ]
    target = request.url.path
    if pairs:
        target += "?" + urlencode(pairs)
    return target


class FriendAuthMiddleware(BaseHTTPMiddleware):
    """Resolves friend tokens into the request's identity."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request.state.account_id = None
        request.state.feed_authenticated = False

        services = getattr(request.app.state, "services", None)
        if services is None:
            return await call_next(request)

        login_token = request.query_params.get("friend_auth")
        if login_token:
            account_id = await services.access.remote_login(login_token)
            if account_id is not None:
                security = services.settings.security
                response = RedirectResponse(
                    strip_query_param(request, "friend_auth"), status_code=302
                )
                response.set_cookie(
                    SESSION_COOKIE_NAME,
                    services.sessions.create(account_id),
                    max_age=security.session_ttl_seconds,
                    httponly=True,
                    secure=security.session_cookie_secure,
                    samesite="lax",
                )
                return response

        session_id = request.cookies.get(SESSION_COOKIE_NAME)
        session_account_id = await services.access.session_friend(
            services.sessions.get(session_id)
        )
        if session_account_id is None and session_id:
            # Unknown session, or the friendship ended after the login
            services.sessions.discard(session_id)
        auth = await services.access.authenticate(
            request.query_params.get("friend"), session_account_id
        )
        request.state.account_id = auth.account_id
        request.state.feed_authenticated = auth.feed_authenticated

        context = get_request_context(request)
        if context is not None:
            context.account_id = auth.account_id
            context.feed_authenticated = auth.feed_authenticated

        return await call_next(request)
