"""Database connection and session management (async SQLAlchemy)."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ..config.settings import get_settings
from ..models.database import Base


class Database:
    """Owns one async engine and hands out per-operation sessions.

    Repositories receive ``session_factory`` and open a short-lived session
    for each operation (``async with session_factory() as session``).
    """

    def __init__(self, url: str, *, echo: bool = False):
        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, echo=echo, future=True)
        self._sessionmaker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autocommit=False,
            autoflush=False,
        )

    def session_factory(self) -> AsyncSession:
        """Create a new AsyncSession (caller must close)."""
        return self._sessionmaker()

    async def init_db(self) -> None:
        """Create tables if they do not exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()


_database: Database | None = None


def get_database() -> Database:
    global _database
    if _database is None:
        _database = Database(get_settings().database_url)
    return _database


async def close_db() -> None:
    """Dispose the process-wide engine, if one was created."""
    global _database
    if _database is not None:
        await _database.close()
        _database = None
