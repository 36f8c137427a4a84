"""FastAPI application factory for the Site Friends server."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from structlog import get_logger

from site_friends import __version__
from site_friends.api.lifecycle import (
    LifecycleComponent,
    execute_shutdown_sequence,
    execute_startup_sequence,
    initialize_database_startup,
    initialize_refresh_scheduler_startup,
    initialize_services_startup,
    log_server_start,
    shutdown_database,
    shutdown_refresh_scheduler,
    shutdown_services,
)
from site_friends.api.middleware.context import RequestContextMiddleware
from site_friends.api.middleware.errors import setup_error_handlers
from site_friends.api.middleware.friend_auth import FriendAuthMiddleware
from site_friends.api.middleware.logging import AccessLogMiddleware
from site_friends.api.routes.admin import router as admin_router
from site_friends.api.routes.feed import router as feed_router
from site_friends.api.routes.friends import fallback_router as wp_json_fallback_router
from site_friends.api.routes.friends import router as friends_router
from site_friends.api.routes.health import router as health_router
from site_friends.config.settings import Settings, get_settings
from site_friends.core.logging import setup_logging
from site_friends.services import FriendsServices


logger = get_logger(__name__)


LIFECYCLE_COMPONENTS: list[LifecycleComponent] = [
    {
        "name": "Database",
        "required": True,
        "startup": initialize_database_startup,
        "shutdown": shutdown_database,
    },
    {
        "name": "Friends Services",
        "required": True,
        "startup": initialize_services_startup,
        "shutdown": shutdown_services,
    },
    {
        "name": "Feed Refresh Scheduler",
        "startup": initialize_refresh_scheduler_startup,
        "shutdown": shutdown_refresh_scheduler,
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager using component-based approach."""
    settings: Settings = app.state.settings

    # Startup
    log_server_start(settings)
    await execute_startup_sequence(LIFECYCLE_COMPONENTS, app, settings)

    yield

    # Shutdown
    logger.debug("server_stop")
    await execute_shutdown_sequence(LIFECYCLE_COMPONENTS, app)


def create_app(
    settings: Settings | None = None, services: FriendsServices | None = None
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings override. If None, uses get_settings().
        services: Optional prebuilt services. When given, the application
            neither opens the process-wide database nor closes the services.

    Returns:
        Configured FastAPI application instance.

    """
    if settings is None:
        settings = services.settings if services is not None else get_settings()

    if not structlog.is_configured():
        setup_logging(
            json_logs=settings.server.json_logs,
            log_level_name=settings.server.log_level,
            log_file=settings.server.log_file,
        )

    app = FastAPI(
        title="Site Friends",
        description="Federated friendships between independent sites",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services

    setup_error_handlers(app)

    # Middleware runs in reverse order of registration
    app.add_middleware(FriendAuthMiddleware)
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(RequestContextMiddleware)

    app.include_router(health_router)
    app.include_router(feed_router)
    app.include_router(friends_router)
    app.include_router(admin_router)

    # Must stay last so it only catches unknown /wp-json/ routes
    app.include_router(wp_json_fallback_router)

    return app
