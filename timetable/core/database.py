"""Async SQLAlchemy engine and session factory for the slot store."""

from __future__ import annotations

from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from timetable.config import get_database_settings

_ASYNC_DRIVER_PREFIX = "postgresql+asyncpg://"


class Base(DeclarativeBase):
  pass


def _database_url() -> str | None:
  """Return the configured DSN pointed at the asyncpg driver."""
  dsn = get_database_settings().pg_dsn
  if dsn is None:
    return None
  for prefix in ("postgresql://", "postgres://"):
    if dsn.startswith(prefix):
      return _ASYNC_DRIVER_PREFIX + dsn[len(prefix) :]
  return dsn


@lru_cache(maxsize=1)
def get_db_engine() -> AsyncEngine | None:
  """Create the process-wide engine, or None when no DSN is configured."""
  url = _database_url()
  if url is None:
    return None
  settings = get_database_settings()
  return create_async_engine(url, echo=settings.debug, connect_args={"timeout": settings.pg_connect_timeout})


@lru_cache(maxsize=1)
def get_session_factory() -> async_sessionmaker[AsyncSession] | None:
  engine = get_db_engine()
  if engine is None:
    return None
  return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
