"""
Transaction store: async engine, session factory and schema bootstrap.

The request path gets its session from ``get_session``; the audit sink opens
its own sessions from ``async_session`` so a failed audit write never
touches the request's unit of work.
"""

from collections.abc import AsyncGenerator
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from paylink.config import settings
from paylink.models.transaction import Base


def build_engine(database_url: str) -> AsyncEngine:
    # SQL echo follows the application log level
    return create_async_engine(database_url, echo=settings.log_level.upper() == "DEBUG")


engine = build_engine(settings.database_url)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(bind: Optional[AsyncEngine] = None) -> None:
    """Create the transactions and audit_logs tables if they are missing."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_db() -> None:
    await engine.dispose()


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        yield session
