"""
Database Connection and Session Management.

Global async engine and session factory built with the agent_core SQL helpers.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from turngate_ai.agent_core.repos.models import Base
from turngate_ai.agent_core.repos.sql import create_engine, create_sessionmaker
from turngate_ai.server.core.config import settings

engine = create_engine(settings.database_url)

async_session_maker = create_sessionmaker(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency generator for database sessions.

    Yields:
        AsyncSession: An asynchronous SQLAlchemy session.
    """
    async with async_session_maker() as session:
        yield session


async def init_db() -> None:
    """Create all tables of the agent_core ORM metadata if they do not exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
