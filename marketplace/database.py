"""
Engine, session factory and declarative base for the catalog database.

Transaction contract: ``get_db`` owns the unit of work for one request.
Service functions only ``flush()`` (to surface constraint violations and
obtain ids) and never commit; the request commits when the handler
returns and rolls back when anything raises, so a failed write never
leaves a half-applied change behind.
"""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from marketplace.config import settings
from marketplace.middleware import install_query_counter

# Tests swap this engine for an in-memory SQLite one via dependency override.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)
install_query_counter(engine)

# Committed rows stay readable without a refresh round-trip.
catalog_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base shared by every catalog model and by Alembic."""


async def get_db():
    """FastAPI dependency yielding one session per request."""
    async with catalog_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
