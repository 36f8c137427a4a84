"""Consolidated exception hierarchy for Site Friends.

All exceptions use proper exception chaining with the `from` keyword.
Error codes use StrEnum so they match the wire format exchanged with
remote sites (``{"code": ..., "message": ..., "data": ...}``).
"""

from enum import StrEnum
from typing import Any

from starlette import status


class ErrorCode(StrEnum):
    """Machine-readable error codes for API responses."""

    INVALID_URL = "invalid-url"
    INVALID_SITE = "friends_invalid_site"
    UNSUPPORTED_SITE = "friends_unsupported_site"
    INVALID_ROLE = "invalid_role"
    INVALID_PARAMETERS = "friends_invalid_parameters"
    OFFER_NO_LONGER_VALID = "friends_offer_no_longer_valid"
    FRIEND_REQUEST_FAILED = "friends_friend_request_failed"
    UNEXPECTED_REMOTE_RESPONSE = "unexpected-rest-response"
    NETWORK_UNAVAILABLE = "friends_network_unavailable"
    FEED_UNREACHABLE = "friends_feed_unreachable"
    RATE_LIMITED = "friends_rate_limited"
    ACCOUNT_NOT_FOUND = "friends_account_not_found"
    AUTHENTICATION = "friends_authentication_required"
    NO_ROUTE = "rest_no_route"
    INTERNAL = "internal_server_error"


# ============================================================================
# Base Exception
# ============================================================================


class FriendsError(Exception):
    """Base exception for all Site Friends errors.

    Carries the machine-readable code, the HTTP status used when the error
    reaches a REST caller, and an optional data payload.
    """

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | str = ErrorCode.INTERNAL,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        data: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.data = data or {}

    def to_payload(self) -> dict[str, Any]:
        """Render the error in the REST wire format."""
        return {
            "code": str(self.code),
            "message": self.message,
            "data": {"status": self.status_code, **self.data},
        }


# ============================================================================
# Input Validation Errors
# ============================================================================


class InvalidUrlError(FriendsError):
    """An invalid URL was provided by a local caller (400)."""

    def __init__(self, url: Any = None) -> None:
        super().__init__(
            "An invalid URL was provided",
            code=ErrorCode.INVALID_URL,
            status_code=status.HTTP_400_BAD_REQUEST,
            data={"url": url} if isinstance(url, str) else None,
        )


class InvalidRoleError(FriendsError):
    """Account creation was asked for a role outside the rank table."""

    def __init__(self, role: str) -> None:
        super().__init__(
            f"Invalid role for creation specified: {role}",
            code=ErrorCode.INVALID_ROLE,
            status_code=status.HTTP_400_BAD_REQUEST,
        )
        self.role = role


class AccountNotFoundError(FriendsError):
    """No account with the given id (404)."""

    def __init__(self, account_id: int) -> None:
        super().__init__(
            f"Account {account_id} not found",
            code=ErrorCode.ACCOUNT_NOT_FOUND,
            status_code=status.HTTP_404_NOT_FOUND,
        )
        self.account_id = account_id


class NoRouteError(FriendsError):
    """No REST route matches the URL and method (404)."""

    def __init__(self) -> None:
        super().__init__(
            "No route was found matching the URL and request method.",
            code=ErrorCode.NO_ROUTE,
            status_code=status.HTTP_404_NOT_FOUND,
        )


class AuthenticationRequiredError(FriendsError):
    """Admin route called without a valid bearer token (401)."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            message,
            code=ErrorCode.AUTHENTICATION,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


# ============================================================================
# Handshake Errors (returned to remote sites as 403)
# ============================================================================


class InvalidSiteError(FriendsError):
    """The requesting site URL is malformed or is our own URL."""

    def __init__(self) -> None:
        super().__init__(
            "An invalid site was given.",
            code=ErrorCode.INVALID_SITE,
            status_code=status.HTTP_403_FORBIDDEN,
        )


class UnsupportedSiteError(FriendsError):
    """The requesting site does not answer the hello probe."""

    def __init__(self) -> None:
        super().__init__(
            "An unsupported site was given.",
            code=ErrorCode.UNSUPPORTED_SITE,
            status_code=status.HTTP_403_FORBIDDEN,
        )


class InvalidParametersError(FriendsError):
    """The acceptance token is missing or resolves to nothing usable."""

    def __init__(self) -> None:
        super().__init__(
            "Not all necessary parameters were given.",
            code=ErrorCode.INVALID_PARAMETERS,
            status_code=status.HTTP_403_FORBIDDEN,
        )


class OfferNoLongerValidError(FriendsError):
    """The account's site URL no longer derives to its stored login."""

    def __init__(self) -> None:
        super().__init__(
            "The friendship offer is no longer valid.",
            code=ErrorCode.OFFER_NO_LONGER_VALID,
            status_code=status.HTTP_403_FORBIDDEN,
        )


class FriendRequestFailedError(FriendsError):
    """A friend request could not be placed or answered.

    When a remote site rejects our request, its error code, message and
    data are carried through unchanged.
    """

    def __init__(
        self,
        message: str = "Could not respond to the friend request.",
        *,
        code: ErrorCode | str = ErrorCode.FRIEND_REQUEST_FAILED,
        data: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            code=code,
            status_code=status.HTTP_403_FORBIDDEN,
            data=data,
        )


class RateLimitedError(FriendsError):
    """Too many inbound friend requests (429)."""

    def __init__(self, retry_after: int) -> None:
        super().__init__(
            "Too many friend requests, try again later.",
            code=ErrorCode.RATE_LIMITED,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            data={"retry_after": retry_after},
        )
        self.retry_after = retry_after


# ============================================================================
# Remote & Network Errors
# ============================================================================


class UnexpectedRemoteResponseError(FriendsError):
    """A remote site answered with something outside the protocol."""

    def __init__(
        self,
        message: str = "Unexpected server response",
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        data: dict[str, Any] = {}
        if status_code is not None:
            data["remote_status"] = status_code
        if body:
            data["remote_body"] = body[:500]
        super().__init__(
            message,
            code=ErrorCode.UNEXPECTED_REMOTE_RESPONSE,
            status_code=status.HTTP_502_BAD_GATEWAY,
            data=data,
        )


class NetworkUnavailableError(FriendsError):
    """An outbound call timed out or could not connect."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(
            f"Could not reach {url}: {reason}",
            code=ErrorCode.NETWORK_UNAVAILABLE,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            data={"url": url},
        )
        self.url = url


class FeedUnreachableError(FriendsError):
    """A feed could not be fetched or parsed."""

    def __init__(self, feed_url: str, reason: str) -> None:
        super().__init__(
            f"Feed {feed_url} is unreachable: {reason}",
            code=ErrorCode.FEED_UNREACHABLE,
            status_code=status.HTTP_502_BAD_GATEWAY,
            data={"feed_url": feed_url},
        )
        self.feed_url = feed_url
        self.reason = reason


# ============================================================================
# Configuration Errors
# ============================================================================


class ConfigurationError(FriendsError):
    """Raised when configuration loading or validation fails."""

    pass


__all__ = [
    "ErrorCode",
    "FriendsError",
    # Input validation
    "InvalidUrlError",
    "InvalidRoleError",
    "AccountNotFoundError",
    "AuthenticationRequiredError",
    "NoRouteError",
    # Handshake
    "InvalidSiteError",
    "UnsupportedSiteError",
    "InvalidParametersError",
    "OfferNoLongerValidError",
    "FriendRequestFailedError",
    "RateLimitedError",
    # Remote & network
    "UnexpectedRemoteResponseError",
    "NetworkUnavailableError",
    "FeedUnreachableError",
    # Configuration
    "ConfigurationError",
]
