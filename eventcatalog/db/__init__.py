"""Persistence layer: SQLAlchemy engine, sessions and ORM models."""

from eventcatalog.db.models import (
    Enrichment,
    Event,
    TicketCacheEntry,
    Venue,
)
from eventcatalog.db.session import Base, get_db, get_engine, init_db

__all__ = [
    "Base",
    "Enrichment",
    "Event",
    "TicketCacheEntry",
    "Venue",
    "get_db",
    "get_engine",
    "init_db",
]
