"""Error handlers rendering every failure in the REST wire format.

Errors are returned as ``{"code": ..., "message": ..., "data": {"status": ...}}``,
the shape remote sites expect from the friends endpoints.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException
from structlog import get_logger

from site_friends.exceptions import ErrorCode, FriendsError


logger = get_logger(__name__)

# Failures worth tying to a caller address in the log
_CALLER_STATUSES = frozenset({401, 403, 429})


def error_response(
    status_code: int, code: str, message: str, data: dict[str, Any] | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "code": code,
            "message": message,
            "data": {"status": status_code, **(data or {})},
        },
    )


def _request_fields(request: Request, status_code: int) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "status_code": status_code,
        "request_method": request.method,
        "request_url": request.url.path,
    }
    if status_code in _CALLER_STATUSES and request.client:
        fields["client_ip"] = request.client.host
    return fields


async def friends_error_handler(request: Request, exc: FriendsError) -> JSONResponse:
    """Render a domain error with its own code, message and data."""
    fields = _request_fields(request, exc.status_code)
    log = logger.error if exc.status_code >= 500 else logger.info
    log(type(exc).__name__, error_code=str(exc.code), error_message=exc.message, **fields)

    response = JSONResponse(status_code=exc.status_code, content=exc.to_payload())
    retry_after = exc.data.get("retry_after")
    if retry_after is not None:
        response.headers["retry-after"] = str(retry_after)
    return response


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    logger.info(
        "request_validation_failed",
        errors=len(errors),
        **_request_fields(request, status.HTTP_400_BAD_REQUEST),
    )
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        "rest_invalid_param",
        "Invalid parameter(s)",
        {"errors": [str(error.get("msg")) for error in errors]},
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    fields = _request_fields(request, exc.status_code)
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        logger.debug("http_not_found", **fields)
        return error_response(exc.status_code, "not_found", str(exc.detail))
    logger.warning("http_exception", error_message=exc.detail, **fields)
    return error_response(exc.status_code, "http_error", str(exc.detail))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        error_message=str(exc),
        exc_info=True,
        **_request_fields(request, status.HTTP_500_INTERNAL_SERVER_ERROR),
    )
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        str(ErrorCode.INTERNAL),
        "An internal server error occurred",
    )


def setup_error_handlers(app: FastAPI) -> None:
    """Register the handlers, most specific first."""
    app.add_exception_handler(FriendsError, friends_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)
