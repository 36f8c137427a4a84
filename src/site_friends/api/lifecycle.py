"""Startup and shutdown of the server's components.

Components start in declaration order and stop in reverse. A component
marked ``required`` aborts startup when it fails; the others only log.
"""

from collections.abc import Awaitable, Callable

from fastapi import FastAPI
from structlog import get_logger
from typing_extensions import NotRequired, TypedDict

from site_friends.config.settings import Settings
from site_friends.db.engine import close_db, init_db
from site_friends.services import build_services
from site_friends.sync.scheduler import FeedRefreshScheduler


logger = get_logger(__name__)


class LifecycleComponent(TypedDict):
    name: str
    startup: Callable[[FastAPI, Settings], Awaitable[None]] | None
    shutdown: Callable[[FastAPI], Awaitable[None]] | None
    required: NotRequired[bool]


def _event_name(component: LifecycleComponent) -> str:
    return component["name"].lower().replace(" ", "_")


async def execute_startup_sequence(
    components: list[LifecycleComponent],
    app: FastAPI,
    settings: Settings,
) -> None:
    """Start each component in order.

    Raises:
        OSError, RuntimeError, ValueError: If a required component fails
    """
    for component in components:
        startup = component["startup"]
        if startup is None:
            continue
        event = _event_name(component)
        logger.debug(f"starting_{event}")
        try:
            await startup(app, settings)
        except (OSError, RuntimeError, ValueError) as e:
            logger.error(f"{event}_startup_failed", error=str(e))
            if component.get("required", False):
                raise


async def execute_shutdown_sequence(
    components: list[LifecycleComponent], app: FastAPI
) -> None:
    """Stop components in reverse order; one failure does not stop the rest."""
    for component in reversed(components):
        shutdown = component["shutdown"]
        if shutdown is None:
            continue
        event = _event_name(component)
        logger.debug(f"stopping_{event}")
        try:
            await shutdown(app)
        except (OSError, RuntimeError) as e:
            logger.error(f"{event}_shutdown_failed", error=str(e))

# ----------------------------------------------------------------------------
# Components
# ----------------------------------------------------------------------------


async def initialize_database_startup(app: FastAPI, settings: Settings) -> None:
    """Open the process-wide database unless services were injected."""
    if getattr(app.state, "services", None) is not None:
        return
    await init_db(settings.database.path)
    app.state.owns_database = True
    logger.debug("database_initialized", path=str(settings.database.path))


async def shutdown_database(app: FastAPI) -> None:
    if getattr(app.state, "owns_database", False):
        await close_db()
        app.state.owns_database = False


async def initialize_services_startup(app: FastAPI, settings: Settings) -> None:
    """Build the service graph unless it was injected."""
    if getattr(app.state, "services", None) is not None:
        return
    app.state.services = build_services(settings)
    app.state.owns_services = True


async def shutdown_services(app: FastAPI) -> None:
    if getattr(app.state, "owns_services", False):
        await app.state.services.aclose()
        app.state.services = None
        app.state.owns_services = False


async def initialize_refresh_scheduler_startup(app: FastAPI, settings: Settings) -> None:
    """Start the hourly feed refresh when enabled."""
    services = getattr(app.state, "services", None)
    if not settings.scheduler.enabled or services is None:
        logger.debug("feed_refresh_scheduler_disabled")
        return
    scheduler = FeedRefreshScheduler(
        services.sync_engine,
        interval_hours=settings.scheduler.sync_interval_hours,
        shutdown_timeout=settings.scheduler.graceful_shutdown_timeout,
    )
    await scheduler.start()
    app.state.refresh_scheduler = scheduler


async def shutdown_refresh_scheduler(app: FastAPI) -> None:
    scheduler: FeedRefreshScheduler | None = getattr(
        app.state, "refresh_scheduler", None
    )
    if scheduler is not None:
        await scheduler.stop()
        app.state.refresh_scheduler = None


def log_server_start(settings: Settings) -> None:
    """Log server startup information."""
    logger.info(
        "server_start",
        host=settings.server.host,
        port=settings.server.port,
        site_url=settings.site.url,
    )
