"""Feed fetching, reconciliation and periodic refresh."""

from site_friends.sync.engine import (
    BatchSyncReport,
    FeedSyncEngine,
    SyncFailure,
    SyncResult,
    feed_url_for,
)
from site_friends.sync.feed_client import FeedClient, FeedItem, ParsedFeed, parse_feed
from site_friends.sync.scheduler import FeedRefreshScheduler


__all__ = [
    "BatchSyncReport",
    "FeedSyncEngine",
    "SyncFailure",
    "SyncResult",
    "feed_url_for",
    "FeedClient",
    "FeedItem",
    "ParsedFeed",
    "parse_feed",
    "FeedRefreshScheduler",
]
