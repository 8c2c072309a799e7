"""
Database Connection Module
Handles the async SQLAlchemy engine, session factory and table bootstrap.
"""

import logging
from typing import AsyncIterator

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from order_service.core.config import get_settings

logger = logging.getLogger(__name__)


# Base class for all our models
class Base(DeclarativeBase):
    pass


def build_engine(database_url: str) -> AsyncEngine:
    """Create the async engine; pool sizing only applies to server databases."""
    settings = get_settings()
    options = {"echo": settings.database_echo}
    if not database_url.startswith("sqlite"):
        options.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,
        )
    return create_async_engine(database_url, **options)


engine = build_engine(get_settings().database_url)

# Session factory - creates new database sessions
async_session_maker = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False  # Objects remain accessible after commit
)


async def get_db() -> AsyncIterator[AsyncSession]:
    """
    Dependency injection for FastAPI routes.
    Yields a database session and ensures cleanup.
    """
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db(bind: AsyncEngine = engine) -> None:
    """
    Create all tables and seed the order number counter.
    Called once at application startup.
    """
    # Register tables on the metadata
    from order_service.models import ORDER_SEQUENCE_NAME, OrderSequence

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        existing = await conn.execute(
            select(OrderSequence.name).where(OrderSequence.name == ORDER_SEQUENCE_NAME)
        )
        if existing.first() is None:
            await conn.execute(
                insert(OrderSequence).values(name=ORDER_SEQUENCE_NAME, value=0)
            )
    logger.info("Database tables created")
