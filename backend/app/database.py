"""
Database connection using SQLAlchemy + asyncpg.

Every analyzed claim is stored as one row: the claim text, the CombinedAnalysis
as JSON and the headline confidence numbers as plain columns so history
queries can filter on them without decoding the JSON.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from app.config import get_settings

settings = get_settings()

# Connection pool; SQL echo only when debugging
engine = create_async_engine(settings.database_url, echo=settings.log_level == "DEBUG")

# expire_on_commit=False keeps rows usable after commit (needed for async)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


async def get_db() -> AsyncSession:
    """Dependency that yields a database session."""
    async with async_session() as session:
        yield session
