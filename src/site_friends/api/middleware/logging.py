"""Structured access log.

One ``request_complete`` event per answered request, one ``request_error``
when the application raised instead of answering. Friend tokens never reach
the log: ``friend`` and ``friend_auth`` query values are masked.
"""

import asyncio
import time
from urllib.parse import parse_qsl, urlencode

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from site_friends.api.middleware.context import get_request_context


logger = structlog.get_logger(__name__)

SECRET_QUERY_PARAMS = frozenset({"friend", "friend_auth"})


def redact_query(query: str) -> str:
    """Mask token-bearing query parameters."""
    if not query:
        return query
    pairs = parse_qsl(query, keep_blank_values=True)
    if not any(name in SECRET_QUERY_PARAMS for name, _ in pairs):
        return query
    return urlencode(
        [(name, "***" if name in SECRET_QUERY_PARAMS else value) for name, value in pairs]
    )


class AccessLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        started = time.perf_counter()
        fields = {
            "method": request.method,
            "path": request.url.path,
            "query": redact_query(request.url.query) or None,
        }

        try:
            response = await call_next(request)
        except (Exception, asyncio.CancelledError) as e:
            context = get_request_context(request)
            logger.error(
                "request_error",
                request_id=context.request_id if context else None,
                client_ip=context.client_ip if context else None,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                error_message=str(e) or type(e).__name__,
                **fields,
            )
            raise

        # Read after the call: authentication fills the context further in
        context = get_request_context(request)
        logger.info(
            "request_complete",
            request_id=context.request_id if context else "unknown",
            client_ip=context.client_ip if context else "unknown",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            account_id=context.account_id if context else None,
            feed_authenticated=context.feed_authenticated if context else False,
            **fields,
        )
        return response
