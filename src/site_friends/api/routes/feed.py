"""Our own posts as an RSS 2.0 feed."""

from fastapi import APIRouter, Request, Response

from site_friends.api.dependencies import ServicesDep
from site_friends.db.models import PostStatus
from site_friends.feed_writer import render_feed


router = APIRouter(tags=["feed"])

FEED_SIZE = 20
RSS_MEDIA_TYPE = "application/rss+xml; charset=UTF-8"


@router.get("/feed/")
@router.get("/feed", include_in_schema=False)
async def feed(request: Request, services: ServicesDep) -> Response:
    """Public posts for everyone, private posts too for authenticated friends."""
    authenticated = bool(getattr(request.state, "feed_authenticated", False))
    statuses = [PostStatus.PUBLISH]
    if authenticated:
        statuses.append(PostStatus.PRIVATE)

    posts = await services.posts.list_own(statuses, limit=FEED_SIZE)
    return Response(
        render_feed(posts, services.settings.site, authenticated),
        media_type=RSS_MEDIA_TYPE,
    )
