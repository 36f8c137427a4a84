"""Fetching and parsing remote feeds.

Feeds are parsed with feedparser. Items may carry extension elements from the
friends feed namespace (``gravatar``, ``post-status``, ``post-id``) and from
the WordPress.com additions namespace, plus ``slash:comments``. feedparser
exposes such elements as ``<prefix>_<name>`` keys on each entry, using the
prefix the feed declared for the namespace.
"""

import calendar
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import feedparser
import httpx
from structlog import get_logger
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from site_friends.exceptions import FeedUnreachableError


logger = get_logger(__name__)

FRIENDS_NAMESPACE = "wordpress-plugin-friends:feed-additions:1"
WPCOM_NAMESPACE = "com-wordpress:feed-additions:1"
SLASH_NAMESPACE = "http://purl.org/rss/1.0/modules/slash/"

# Searched in order, the first namespace carrying a value wins
EXTENSION_NAMESPACES = (FRIENDS_NAMESPACE, WPCOM_NAMESPACE)
EXTENSION_KEYS = ("gravatar", "comments", "post-status", "post-id")


@dataclass
class FeedItem:
    """One feed entry with the protocol extension fields resolved."""

    permalink: str | None
    title: str = ""
    content: str = ""
    published_at: datetime | None = None
    modified_at: datetime | None = None
    author_name: str | None = None
    post_id: str | None = None
    post_status: str = "publish"
    gravatar: str | None = None
    comment_count: int = 0


@dataclass
class ParsedFeed:
    url: str | None
    title: str | None = None
    items: list[FeedItem] = field(default_factory=list)


def _to_datetime(value: time.struct_time | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromtimestamp(calendar.timegm(value), tz=UTC)


def _to_int(value: Any, default: int = 0) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def _entry_content(entry: Any) -> str:
    contents = entry.get("content") or []
    if contents:
        return contents[0].get("value", "") or ""
    return entry.get("summary", "") or ""


def _namespace_prefixes(parsed: Any, uri: str) -> list[str]:
    namespaces = parsed.get("namespaces") or {}
    return [prefix for prefix, ns in namespaces.items() if ns == uri and prefix]


def _extension_value(entry: Any, prefixes: list[str], key: str) -> str | None:
    for prefix in prefixes:
        value = entry.get(f"{prefix}_{key}")
        if value is not None and str(value).strip() != "":
            return str(value).strip()
    return None


def _build_item(entry: Any, extension_prefixes: list[str], slash_prefixes: list[str]) -> FeedItem:
    permalink = entry.get("link") or entry.get("id")
    extensions = {
        key: _extension_value(entry, extension_prefixes, key) for key in EXTENSION_KEYS
    }
    slash_comments = _extension_value(entry, slash_prefixes, "comments")

    return FeedItem(
        permalink=permalink,
        title=entry.get("title", "") or "",
        content=_entry_content(entry),
        published_at=_to_datetime(entry.get("published_parsed")),
        modified_at=_to_datetime(
            entry.get("updated_parsed") or entry.get("published_parsed")
        ),
        author_name=entry.get("author"),
        post_id=extensions["post-id"] or permalink,
        post_status=extensions["post-status"] or "publish",
        gravatar=extensions["gravatar"],
        comment_count=_to_int(extensions["comments"] or slash_comments),
    )


def parse_feed(content: bytes | str, url: str | None = None) -> ParsedFeed:
    """Parse a feed document into :class:`FeedItem` objects.

    Raises:
        FeedUnreachableError: If the document is not a feed at all
    """
    parsed = feedparser.parse(content)
    if parsed.get("bozo") and not parsed.get("version") and not parsed.entries:
        reason = str(parsed.get("bozo_exception") or "not a feed")
        raise FeedUnreachableError(url or "<document>", reason)

    extension_prefixes: list[str] = []
    for uri in EXTENSION_NAMESPACES:
        extension_prefixes.extend(_namespace_prefixes(parsed, uri))
    slash_prefixes = _namespace_prefixes(parsed, SLASH_NAMESPACE) or ["slash"]

    items = [
        _build_item(entry, extension_prefixes, slash_prefixes)
        for entry in parsed.entries
    ]
    return ParsedFeed(url=url, title=parsed.feed.get("title"), items=items)


def redact_feed_url(feed_url: str) -> str:
    """Hide the friend token of a feed URL for logging."""
    url = httpx.URL(feed_url)
    if "friend" not in url.params:
        return feed_url
    return str(url.copy_set_param("friend", "***"))


class FeedClient:
    """Fetches feeds over HTTP with retries on transport errors."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        timeout: float = 30.0,
        attempts: int = 2,
        retry_wait: float = 2.0,
    ) -> None:
        self.http_client = http_client
        self.timeout = timeout
        self.attempts = attempts
        self.retry_wait = retry_wait

    async def fetch(self, feed_url: str) -> ParsedFeed:
        """Fetch and parse a feed.

        Raises:
            FeedUnreachableError: On network failure, non-200 status or an
                unparsable document
        """
        safe_url = redact_feed_url(feed_url)

        def before_sleep_log(retry_state: Any) -> None:
            logger.warning(
                "feed_fetch_retry",
                feed_url=safe_url,
                attempt=retry_state.attempt_number,
                error=str(retry_state.outcome.exception())
                if retry_state.outcome
                else None,
            )

        try:
            async for attempt in AsyncRetrying(
                wait=wait_exponential(multiplier=self.retry_wait, max=30),
                stop=stop_after_attempt(self.attempts),
                retry=retry_if_exception_type(httpx.TransportError),
                before_sleep=before_sleep_log,
                reraise=True,
            ):
                with attempt:
                    response = await self.http_client.get(
                        feed_url, timeout=self.timeout, follow_redirects=True
                    )
        except httpx.RequestError as e:
            logger.warning("feed_fetch_failed", feed_url=safe_url, error=str(e))
            raise FeedUnreachableError(safe_url, str(e) or type(e).__name__) from e

        if response.status_code != 200:
            logger.warning(
                "feed_fetch_failed", feed_url=safe_url, status_code=response.status_code
            )
            raise FeedUnreachableError(safe_url, f"HTTP {response.status_code}")

        return parse_feed(response.content, safe_url)
