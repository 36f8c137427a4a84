"""Database engine and session management."""

from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from pathlib import Path

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel


SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

# Global engine (initialized on startup)
_engine: AsyncEngine | None = None
_session_factory: SessionFactory | None = None


def get_db_url(path: Path) -> str:
    """Get SQLite database URL."""
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite+aiosqlite:///{path}"


def make_session_factory(engine: AsyncEngine) -> SessionFactory:
    """Build a session context factory that commits on success."""
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    @asynccontextmanager
    async def session_scope() -> AsyncGenerator[AsyncSession, None]:
        async with maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return session_scope


async def create_database(path: Path) -> tuple[AsyncEngine, SessionFactory]:
    """Create an engine for ``path``, create tables and return a session factory."""
    engine = create_async_engine(get_db_url(path), echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    return engine, make_session_factory(engine)


async def init_db(path: Path) -> None:
    """Initialize the process-wide database and create tables."""
    global _engine, _session_factory

    _engine, _session_factory = await create_database(path)


async def close_db() -> None:
    """Dispose the process-wide engine."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get an async database session from the process-wide engine."""
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    async with _session_factory() as session:
        yield session
