# entity_audit/infrastructure/database/session.py

from functools import lru_cache
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from entity_audit.config.settings import get_settings
from entity_audit.governance.exceptions import ConfigurationError


@lru_cache
def get_audit_engine(database_url: Optional[str] = None) -> Engine:
    """Engine of a dedicated audit store (write side)."""
    url = database_url or get_settings().database_url
    if url is None:
        raise ConfigurationError("No audit store configured: set ENTITY_AUDIT_DATABASE_URL")
    return create_engine(url, pool_pre_ping=True)


@lru_cache
def get_async_session_factory(async_database_url: Optional[str] = None) -> async_sessionmaker[AsyncSession]:
    """Session factory of the audit store (read side)."""
    url = async_database_url or get_settings().async_database_url
    if url is None:
        raise ConfigurationError("No read-side store configured: set ENTITY_AUDIT_ASYNC_DATABASE_URL")
    engine = create_async_engine(url, echo=False, pool_pre_ping=True)
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False,
        autoflush=False,
        class_=AsyncSession,
    )
