"""
Unit tests for the ticket-platform cache refresh.

The platform client is an AsyncMock, or a real client over httpx.MockTransport
for outage handling; venue mappings are passed explicitly.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from sqlalchemy import func, select

from eventcatalog.configs.config import VenueMapping
from eventcatalog.db.models import TicketCacheEntry
from eventcatalog.errors import ExternalServiceUnavailableError
from eventcatalog.ticketing.cache import add_months, build_cache_entry, refresh_ticket_cache
from eventcatalog.ticketing.client import TicketmasterClient

# =============================================================================
# TEST DATA
# =============================================================================

NOW = datetime(2025, 12, 1, 12, 0, tzinfo=timezone.utc)

STUBBS = VenueMapping(venue_slug="stubbs", ticket_venue_id="KovZ917AxzU")
MOODY = VenueMapping(venue_slug="moody-center", ticket_venue_id="KovZ917ANwG")


def platform_event(event_id: str, name: str, **overrides) -> dict:
    event = {
        "id": event_id,
        "name": name,
        "url": f"https://tickets.example.com/{event_id}",
        "dates": {
            "start": {"localDate": "2025-12-14", "dateTime": "2025-12-15T02:00:00Z"},
            "timezone": "America/Chicago",
            "status": {"code": "onsale"},
        },
        "sales": {
            "public": {"startDateTime": "2025-10-01T15:00:00Z"},
            "presales": [{"name": "Fan Club"}],
        },
        "promoter": {"id": "494", "name": "PROMOTED BY VENUE"},
        "accessibility": {"ticketLimit": 8},
        "_embedded": {
            "attractions": [
                {"id": "K8v1", "name": "Bob Dylan"},
                {"id": "K8v2", "name": "Opener"},
            ]
        },
    }
    event.update(overrides)
    return event


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def client():
    mock = MagicMock()
    mock.search_venue_events = AsyncMock(return_value=[])
    return mock


def refresh(session, client, mappings):
    return asyncio.run(
        refresh_ticket_cache(
            session, client=client, months_ahead=6, mappings=mappings, now=NOW, venue_delay=0
        )
    )


def cache_count(session) -> int:
    return session.scalar(select(func.count()).select_from(TicketCacheEntry))


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestAddMonths:
    """Calendar-month window arithmetic."""

    def test_simple(self):
        assert add_months(NOW, 6) == datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)

    def test_clamps_to_month_end(self):
        assert add_months(datetime(2025, 8, 31), 6) == datetime(2026, 2, 28)


class TestBuildCacheEntry:
    """Platform event -> cache row."""

    def test_full_bundle(self):
        entry = build_cache_entry(platform_event("tm-1", "Bob Dylan"), STUBBS)

        assert entry.id == "tm-1"
        assert entry.venue_slug == "stubbs"
        assert entry.local_date == "2025-12-14"
        assert entry.start_datetime == datetime(2025, 12, 15, 2, 0, tzinfo=timezone.utc)
        assert entry.onsale_start == datetime(2025, 10, 1, 15, 0, tzinfo=timezone.utc)
        assert entry.presales == [{"name": "Fan Club"}]
        assert entry.attraction_name == "Bob Dylan"
        assert entry.supporting_acts == ["Opener"]
        assert entry.promoter_name == "PROMOTED BY VENUE"
        assert entry.status == "onsale"
        assert entry.ticket_limit == 8

    def test_missing_local_date_dropped(self):
        event = platform_event("tm-1", "TBA", dates={"start": {}})
        assert build_cache_entry(event, STUBBS) is None

    def test_date_only_falls_back_to_local_midnight(self):
        """Without dateTime the start is local midnight of the local date."""
        event = platform_event(
            "tm-1",
            "TBD Show",
            dates={"start": {"localDate": "2025-12-14"}, "timezone": "America/Chicago"},
        )
        entry = build_cache_entry(event, STUBBS)
        assert entry.start_datetime == datetime(2025, 12, 14, 6, 0, tzinfo=timezone.utc)


class TestRefreshTicketCache:
    """Full replace of the cache table."""

    def test_replaces_existing_rows(self, db_session, client, create_cache_entry):
        """Stale rows disappear; fetched rows are inserted."""
        create_cache_entry("stale", "Gone Show")
        client.search_venue_events = AsyncMock(
            return_value=[platform_event("tm-1", "Bob Dylan"), platform_event("tm-2", "Opener")]
        )

        summary = refresh(db_session, client, {"stubbs": STUBBS})

        ids = set(db_session.scalars(select(TicketCacheEntry.id)))
        assert ids == {"tm-1", "tm-2"}
        assert summary["venues_processed"] == 1
        assert summary["events_found"] == 2
        assert summary["events_inserted"] == 2
        assert summary["venues"] == [{"venue": "stubbs", "events": 2, "error": None}]

    def test_window_uses_months_ahead(self, db_session, client):
        """The query window runs from now to now + months."""
        refresh(db_session, client, {"stubbs": STUBBS})

        client.search_venue_events.assert_awaited_once_with(
            "KovZ917AxzU", NOW, datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)
        )

    def test_duplicate_ids_inserted_once(self, db_session, client):
        """The same platform id seen under two venues is stored once."""
        client.search_venue_events = AsyncMock(return_value=[platform_event("tm-1", "Shared")])

        summary = refresh(db_session, client, {"stubbs": STUBBS, "moody-center": MOODY})

        assert summary["events_found"] == 2
        assert summary["events_inserted"] == 1
        assert cache_count(db_session) == 1

    def test_venue_failure_is_isolated(self, db_session, client):
        """One failing venue is reported while the others are cached."""
        client.search_venue_events = AsyncMock(
            side_effect=[
                ExternalServiceUnavailableError("ticketmaster", "timeout"),
                [platform_event("tm-1", "Bob Dylan")],
            ]
        )

        summary = refresh(db_session, client, {"stubbs": STUBBS, "moody-center": MOODY})

        assert summary["venues"][0] == {
            "venue": "stubbs",
            "events": 0,
            "error": "ticketmaster unavailable: timeout",
        }
        assert summary["events_inserted"] == 1
        assert summary["replaced"] is True
        assert db_session.scalar(select(TicketCacheEntry.venue_slug)) == "moody-center"

    def test_failed_replace_keeps_old_rows(self, db_session, client, create_cache_entry):
        """A failing commit rolls back and re-raises; the old snapshot survives."""
        create_cache_entry("old", "Old Show")
        client.search_venue_events = AsyncMock(return_value=[platform_event("tm-1", "New")])
        original_commit = db_session.commit
        db_session.commit = MagicMock(side_effect=RuntimeError("disk full"))

        with pytest.raises(RuntimeError):
            refresh(db_session, client, {"stubbs": STUBBS})

        db_session.commit = original_commit
        assert set(db_session.scalars(select(TicketCacheEntry.id))) == {"old"}

    def test_all_venues_failing_keeps_old_rows(self, db_session, create_cache_entry):
        """A platform outage records each venue's error and leaves the cache alone."""
        create_cache_entry("old", "Old Show")
        platform = TicketmasterClient(
            api_key="test-key",
            min_interval=0,
            client=httpx.AsyncClient(
                transport=httpx.MockTransport(lambda request: httpx.Response(503))
            ),
        )

        summary = refresh(db_session, platform, {"stubbs": STUBBS, "moody-center": MOODY})

        assert summary["replaced"] is False
        assert summary["events_inserted"] == 0
        assert [v["venue"] for v in summary["venues"]] == ["stubbs", "moody-center"]
        assert all("503" in v["error"] for v in summary["venues"])
        assert set(db_session.scalars(select(TicketCacheEntry.id))) == {"old"}

    def test_no_mappings_still_clears(self, db_session, client, create_cache_entry):
        """With nothing mapped there are no failures, so the empty snapshot is written."""
        create_cache_entry("old", "Old Show")

        summary = refresh(db_session, client, {})

        assert summary["replaced"] is True
        assert cache_count(db_session) == 0
