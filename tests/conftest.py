"""
Shared pytest fixtures for the event catalog test suite.

Provides an in-memory SQLite session plus factories for venues, normalized
records, canonical events and ticket-cache rows.
"""

from datetime import datetime, timezone
from typing import Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from eventcatalog.db import models  # noqa: F401
from eventcatalog.db.models import Event, TicketCacheEntry, Venue
from eventcatalog.db.session import Base
from eventcatalog.schemas.event import (
    EventCategory,
    EventSource,
    EventStatus,
    NormalizedRecord,
)

# Fixed clock for anything that filters on "upcoming"
NOW = datetime(2025, 12, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    """In-memory SQLite engine shared across connections."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    """Fresh session bound to the in-memory engine."""
    session = sessionmaker(bind=engine, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def create_venue(db_session):
    """
    Return a function that inserts a Venue.

    Example:
        venue = create_venue(slug="stubbs", name="Stubb's")
    """

    def _create_venue(
        slug: str = "stubbs",
        name: str = "Stubb's",
        tz: Optional[str] = "America/Chicago",
    ) -> Venue:
        venue = Venue(slug=slug, name=name, city="Austin", timezone=tz)
        db_session.add(venue)
        db_session.commit()
        return venue

    return _create_venue


@pytest.fixture
def create_record():
    """
    Return a function that builds NormalizedRecords with sensible defaults.

    All defaults can be overridden via keyword arguments.
    """

    def _create_record(
        title: str = "Test Event",
        venue_slug: str = "stubbs",
        start_datetime: Optional[datetime] = None,
        **kwargs,
    ) -> NormalizedRecord:
        if start_datetime is None:
            start_datetime = datetime(2025, 12, 14, 20, 0)
        return NormalizedRecord(
            title=title,
            venue_slug=venue_slug,
            start_datetime=start_datetime,
            **kwargs,
        )

    return _create_record


@pytest.fixture
def create_event(db_session):
    """Return a function that inserts a canonical Event for a venue."""

    def _create_event(
        venue: Venue,
        title: str = "Test Event",
        start_datetime: Optional[datetime] = None,
        category: EventCategory = EventCategory.OTHER,
        **kwargs,
    ) -> Event:
        if start_datetime is None:
            # 8 PM Central on 2025-12-14
            start_datetime = datetime(2025, 12, 15, 2, 0, tzinfo=timezone.utc)
        event = Event(
            venue_id=venue.id,
            title=title,
            start_datetime=start_datetime,
            category=category,
            status=EventStatus.SCHEDULED,
            source=kwargs.pop("source", EventSource.VENUE_WEBSITE),
            **kwargs,
        )
        db_session.add(event)
        db_session.commit()
        return event

    return _create_event


@pytest.fixture
def create_cache_entry(db_session):
    """Return a function that inserts a TicketCacheEntry."""

    def _create_cache_entry(
        entry_id: str,
        name: str,
        venue_slug: str = "stubbs",
        local_date: str = "2025-12-14",
        start_datetime: Optional[datetime] = None,
        **kwargs,
    ) -> TicketCacheEntry:
        entry = TicketCacheEntry(
            id=entry_id,
            venue_slug=venue_slug,
            ticket_venue_id="KovZ917AxzU",
            name=name,
            local_date=local_date,
            start_datetime=start_datetime
            or datetime(2025, 12, 15, 2, 0, tzinfo=timezone.utc),
            **kwargs,
        )
        db_session.add(entry)
        db_session.commit()
        return entry

    return _create_cache_entry
