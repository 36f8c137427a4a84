"""Friend request negotiation between sites."""

from site_friends.handshake.client import (
    HelloResult,
    RemoteReply,
    RemoteSiteClient,
    canonical_url_from_link,
)
from site_friends.handshake.models import (
    AcceptancePayload,
    FriendRequestOutcome,
    FriendRequestPayload,
    FriendRequestResult,
    FriendshipGrant,
    RemoteError,
)
from site_friends.handshake.protocol import HandshakeProtocol
from site_friends.handshake.rate_limit import FriendRequestRateLimiter


__all__ = [
    "HelloResult",
    "RemoteReply",
    "RemoteSiteClient",
    "canonical_url_from_link",
    "AcceptancePayload",
    "FriendRequestOutcome",
    "FriendRequestPayload",
    "FriendRequestResult",
    "FriendshipGrant",
    "RemoteError",
    "HandshakeProtocol",
    "FriendRequestRateLimiter",
]
