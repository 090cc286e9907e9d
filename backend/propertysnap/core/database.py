"""Async SQLAlchemy engine and session factory for the key-value backend."""

from functools import lru_cache
from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from propertysnap.core.config import get_settings


class Base(DeclarativeBase):
    """Declarative base for engine tables."""


def build_engine(database_url: Optional[str] = None, **kwargs) -> AsyncEngine:
    url = database_url or get_settings().database_url
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_async_engine(url, future=True, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@lru_cache
def get_engine() -> AsyncEngine:
    """Process-wide engine built from settings."""
    return build_engine()


async def init_models(engine: Optional[AsyncEngine] = None) -> None:
    """Create engine tables if they do not exist."""
    # Registers kv_entries on Base.metadata
    from propertysnap.models import kv_entry  # noqa: F401

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
