"""Wire payloads and results of the friendship handshake."""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict

from site_friends.db.models import Account, Role


class FriendRequestPayload(BaseModel):
    """Body of ``POST friend-request``."""

    model_config = ConfigDict(extra="ignore")

    site_url: str | None = None
    name: str | None = None
    email: str | None = None


class AcceptancePayload(BaseModel):
    """Body of ``POST friend-request-accepted``.

    ``friend`` is the sender's in-token for us, so we can read its private
    feed without a second round trip.
    """

    model_config = ConfigDict(extra="ignore")

    token: str | None = None
    friend: str | None = None


class FriendshipGrant(BaseModel):
    """Successful answer of a remote site: pending or accepted."""

    model_config = ConfigDict(extra="ignore")

    friend: str | None = None
    friend_request_pending: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.friend and not self.friend_request_pending


class RemoteError(BaseModel):
    """Error body in the REST wire format."""

    model_config = ConfigDict(extra="ignore")

    code: str
    message: str
    data: dict[str, Any] | None = None


class FriendRequestOutcome(StrEnum):
    PENDING = "pending"
    FRIEND = "friend"
    SUBSCRIBED = "subscribed"
    ROLE_ASSIGNMENT_FAILED = "role_assignment_failed"


_OUTCOME_BY_ROLE = {
    Role.PENDING_FRIEND_REQUEST: FriendRequestOutcome.PENDING,
    Role.FRIEND: FriendRequestOutcome.FRIEND,
    Role.SUBSCRIPTION: FriendRequestOutcome.SUBSCRIBED,
}


@dataclass(frozen=True)
class FriendRequestResult:
    """Result of sending a friend request."""

    account: Account | None
    outcome: FriendRequestOutcome

    @classmethod
    def from_account(cls, account: Account | None) -> "FriendRequestResult":
        if account is None:
            return cls(None, FriendRequestOutcome.ROLE_ASSIGNMENT_FAILED)
        outcome = _OUTCOME_BY_ROLE.get(
            Role(account.role), FriendRequestOutcome.ROLE_ASSIGNMENT_FAILED
        )
        return cls(account, outcome)
