"""
Database engine and session management.

DATABASE_URL comes from Settings and is parsed with SQLAlchemy's make_url so
the same code runs against PostgreSQL (psycopg2) in production and SQLite in
local development and tests.
"""

import logging
from functools import lru_cache
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from eventcatalog.configs.settings import get_settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(database_url: str) -> Engine:
    """Create an engine with backend-appropriate connection arguments."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        return create_engine(url, connect_args={"check_same_thread": False})

    return create_engine(
        url,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_pre_ping=True,
    )


@lru_cache
def get_engine() -> Engine:
    """Return the process-wide engine built from settings."""
    return build_engine(get_settings().DATABASE_URL)


@lru_cache
def get_session_factory() -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def get_db() -> Generator[Session, None, None]:
    """
    Yield a session and close it after the request lifecycle.

    Used as a FastAPI dependency.
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


def init_db(engine: Engine | None = None) -> None:
    """Create all tables that do not exist yet."""
    from eventcatalog.db import models  # noqa: F401

    engine = engine or get_engine()
    Base.metadata.create_all(bind=engine)
    logger.info(f"Database initialized ({engine.url.get_backend_name()})")
