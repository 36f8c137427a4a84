"""RSS 2.0 rendering of our own posts.

Friends reading the feed with a valid token also get private posts and the
extension elements their sync engine reads back: ``friends:gravatar``,
``friends:post-status``, ``friends:post-id`` and ``slash:comments``.
"""

import xml.etree.ElementTree as ET
from collections.abc import Iterable
from datetime import UTC, datetime
from email.utils import format_datetime

from site_friends.config.site import SiteSettings
from site_friends.db.models import Post
from site_friends.sync.feed_client import FRIENDS_NAMESPACE, SLASH_NAMESPACE


CONTENT_NAMESPACE = "http://purl.org/rss/1.0/modules/content/"
DC_NAMESPACE = "http://purl.org/dc/elements/1.1/"

ET.register_namespace("friends", FRIENDS_NAMESPACE)
ET.register_namespace("slash", SLASH_NAMESPACE)
ET.register_namespace("content", CONTENT_NAMESPACE)
ET.register_namespace("dc", DC_NAMESPACE)


def _rfc822(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        # SQLite hands datetimes back without their zone; they are stored as UTC
        value = value.replace(tzinfo=UTC)
    return format_datetime(value.astimezone(UTC), usegmt=True)


def post_permalink(site: SiteSettings, post: Post) -> str:
    return post.permalink or f"{site.url}/?p={post.id}"


def _sub(parent: ET.Element, tag: str, text: str | None = None) -> ET.Element:
    element = ET.SubElement(parent, tag)
    if text is not None:
        element.text = text
    return element


def render_feed(posts: Iterable[Post], site: SiteSettings, authenticated: bool) -> bytes:
    """Render posts as an RSS 2.0 document."""
    rss = ET.Element("rss", {"version": "2.0"})
    channel = _sub(rss, "channel")
    _sub(channel, "title", site.title)
    _sub(channel, "link", f"{site.url}/")
    _sub(channel, "description", site.name or site.title)

    for post in posts:
        permalink = post_permalink(site, post)
        item = _sub(channel, "item")
        _sub(item, "title", post.title)
        _sub(item, "link", permalink)
        guid = _sub(item, "guid", permalink)
        guid.set("isPermaLink", "false" if post.permalink is None else "true")
        published = _rfc822(post.published_at or post.created_at)
        if published:
            _sub(item, "pubDate", published)
        if site.name:
            _sub(item, f"{{{DC_NAMESPACE}}}creator", site.name)
        _sub(item, "description", post.content)
        _sub(item, f"{{{CONTENT_NAMESPACE}}}encoded", post.content)

        if authenticated:
            _sub(item, f"{{{SLASH_NAMESPACE}}}comments", str(post.comment_count))
            if site.avatar_url:
                _sub(item, f"{{{FRIENDS_NAMESPACE}}}gravatar", site.avatar_url)
            _sub(item, f"{{{FRIENDS_NAMESPACE}}}post-status", post.status)
            _sub(item, f"{{{FRIENDS_NAMESPACE}}}post-id", str(post.id))

    return ET.tostring(rss, encoding="utf-8", xml_declaration=True)
