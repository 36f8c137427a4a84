"""Shared fixtures: a temporary database per test and a simulated remote site."""

from collections.abc import Callable
from typing import Any

import httpx
import pytest

from site_friends.config.settings import Settings
from site_friends.db.engine import create_database
from site_friends.services import build_services


REMOTE_HOST = "b.example"
REMOTE_URL = f"https://{REMOTE_HOST}"

FEED_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
    xmlns:content="http://purl.org/rss/1.0/modules/content/"
    xmlns:dc="http://purl.org/dc/elements/1.1/"
    xmlns:slash="http://purl.org/rss/1.0/modules/slash/"
    xmlns:friends="wordpress-plugin-friends:feed-additions:1">
<channel>
<title>Site B</title>
<link>https://b.example/</link>
<description>Site B</description>
{items}
</channel>
</rss>
"""

ITEM_TEMPLATE = """<item>
<title>{title}</title>
<link>{link}</link>
<pubDate>Mon, 05 Oct 2026 10:00:00 +0000</pubDate>
<dc:creator>Bea</dc:creator>
<description>{content}</description>
{extra}
</item>"""


def make_item(
    title: str,
    link: str,
    content: str = "Hello",
    post_id: str | None = None,
    status: str | None = None,
    comments: int | None = None,
    gravatar: str | None = None,
) -> str:
    extra = []
    if post_id is not None:
        extra.append(f"<friends:post-id>{post_id}</friends:post-id>")
    if status is not None:
        extra.append(f"<friends:post-status>{status}</friends:post-status>")
    if gravatar is not None:
        extra.append(f"<friends:gravatar>{gravatar}</friends:gravatar>")
    if comments is not None:
        extra.append(f"<slash:comments>{comments}</slash:comments>")
    return ITEM_TEMPLATE.format(
        title=title, link=link, content=content, extra="\n".join(extra)
    )


def make_feed(*items: str) -> bytes:
    return FEED_TEMPLATE.format(items="\n".join(items)).encode()


class FakeRemoteSite:
    """Answers the friends endpoints and the feed of one remote host.

    Attributes are the canned answers; tests change them before acting.
    Setting an answer to an exception instance makes the call raise it.
    """

    def __init__(self, host: str = REMOTE_HOST) -> None:
        self.host = host
        self.hello: Any = (200, {"version": "0.2"})
        self.friend_request: Any = (200, {"friend_request_pending": "b-pending-token"})
        self.accepted: Any = (200, {"friend": "b-in-token"})
        self.feed: Any = (
            200,
            make_feed(
                make_item("First", f"https://{host}/first/", post_id="1", comments=2)
            ),
        )
        self.requests: list[httpx.Request] = []

    def calls(self, suffix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(suffix)]

    def _answer(self, request: httpx.Request, answer: Any) -> httpx.Response:
        if isinstance(answer, Exception):
            raise answer
        status_code, body = answer
        headers = {"link": f'<https://{self.host}/wp-json/>; rel="https://api.w.org/"'}
        if isinstance(body, bytes):
            return httpx.Response(status_code, content=body, headers=headers)
        return httpx.Response(status_code, json=body, headers=headers)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host != self.host:
            raise httpx.ConnectError("unknown host", request=request)
        path = request.url.path
        if path.endswith("/friends/v1/hello"):
            return self._answer(request, self.hello)
        if path.endswith("/friends/v1/friend-request"):
            return self._answer(request, self.friend_request)
        if path.endswith("/friends/v1/friend-request-accepted"):
            return self._answer(request, self.accepted)
        if path.rstrip("/").endswith("/feed"):
            return self._answer(request, self.feed)
        return httpx.Response(
            404, json={"code": "rest_no_route", "message": "No route", "data": {}}
        )


@pytest.fixture
def feed_builder() -> tuple[Callable[..., str], Callable[..., bytes]]:
    """``(make_item, make_feed)`` for building RSS documents."""
    return make_item, make_feed


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        site={
            "url": "https://a.example",
            "name": "Site A",
            "email": "owner@a.example",
            "avatar_url": "https://a.example/avatar.png",
        },
        database={"path": tmp_path / "site.db"},
        scheduler={"enabled": False},
        federation={"feed_fetch_attempts": 1, "feed_retry_wait_seconds": 0},
    )


@pytest.fixture
async def session_factory(tmp_path):
    """Session factory over a fresh SQLite database."""
    engine, factory = await create_database(tmp_path / "site.db")
    yield factory
    await engine.dispose()


@pytest.fixture
def remote_site() -> FakeRemoteSite:
    return FakeRemoteSite()


@pytest.fixture
async def services(settings, session_factory, remote_site):
    """Services of site A talking to the simulated site B."""
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(remote_site.handler), follow_redirects=True
    )
    services = build_services(settings, session_factory, http_client)
    yield services
    await services.aclose()
