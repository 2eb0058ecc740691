"""
Unit tests for the identity-resolving upsert.

Covers idempotence, identity stability on source ids, the normalized
title + local day fallback, per-item error isolation and field overwrite.
"""

from datetime import datetime, timezone
from unittest.mock import patch

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from eventcatalog.db.models import Event
from eventcatalog.ingestion.upsert import EventUpserter, run_upsert
from eventcatalog.schemas.event import EventCategory, EventSource, EventStatus

# =============================================================================
# HELPERS
# =============================================================================


def count_events(session) -> int:
    return session.scalar(select(func.count()).select_from(Event))


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestIdempotence:
    """Running the same batch twice creates nothing new."""

    def test_gospel_brunch_twice(self, db_session, create_venue, create_record):
        """A record without a source id is created once, then updated."""
        create_venue(slug="stubbs")
        record = create_record(
            title="Gospel Brunch",
            venue_slug="stubbs",
            source_event_id=None,
            start_datetime=datetime(2025, 12, 14, 13, 0),
        )

        first = run_upsert(db_session, [record])
        second = run_upsert(db_session, [record])

        assert (first.created, first.updated, first.errors) == (1, 0, [])
        assert (second.created, second.updated, second.errors) == (0, 1, [])
        assert count_events(db_session) == 1

    def test_batch_with_source_ids_twice(self, db_session, create_venue, create_record):
        """Every record of a repeated batch becomes an update."""
        create_venue()
        records = [
            create_record(title=f"Show {i}", source_event_id=f"src-{i}")
            for i in range(3)
        ]

        run_upsert(db_session, records)
        summary = run_upsert(db_session, records)

        assert summary.created == 0
        assert summary.updated == 3
        assert count_events(db_session) == 3


class TestIdentityStability:
    """(source, source_event_id) pins a record to its row."""

    def test_changed_title_updates_in_place(self, db_session, create_venue, create_record):
        """Same source id with a new title and time updates the same row."""
        create_venue()
        run_upsert(db_session, [create_record(title="Old Title", source_event_id="abc")])
        original_id = db_session.scalar(select(Event.id))

        summary = run_upsert(
            db_session,
            [
                create_record(
                    title="Completely New Title",
                    source_event_id="abc",
                    start_datetime=datetime(2025, 12, 20, 19, 0),
                )
            ],
        )

        event = db_session.scalar(select(Event))
        assert summary.updated == 1
        assert count_events(db_session) == 1
        assert event.id == original_id
        assert event.title == "Completely New Title"
        assert event.source_event_id == "abc"

    def test_same_id_different_source_is_new_event(
        self, db_session, create_venue, create_record
    ):
        """The source id is only unique within its source."""
        create_venue()
        run_upsert(
            db_session,
            [
                create_record(title="A", source_event_id="1", source=EventSource.VENUE_WEBSITE),
                create_record(
                    title="B",
                    source_event_id="1",
                    source=EventSource.TICKETMASTER,
                    start_datetime=datetime(2025, 12, 21, 20, 0),
                ),
            ],
        )
        assert count_events(db_session) == 2


class TestFallbackMatching:
    """Normalized title + venue + source + local day."""

    def test_titles_equal_after_normalization(self, db_session, create_venue, create_record):
        """'Bob Dylan!!' and 'bob dylan' on the same day resolve to one event."""
        create_venue()
        summary = run_upsert(
            db_session,
            [
                create_record(title="Bob Dylan!!", start_datetime=datetime(2025, 12, 14, 20, 0)),
                create_record(title="bob dylan", start_datetime=datetime(2025, 12, 14, 21, 30)),
            ],
        )

        assert summary.created == 1
        assert summary.updated == 1
        event = db_session.scalar(select(Event))
        assert event.title == "bob dylan"

    def test_day_bucket_uses_local_time(self, db_session, create_venue, create_record):
        """11:30 PM Central is 05:30 UTC next day but still the same local day."""
        create_venue(tz="America/Chicago")
        run_upsert(
            db_session,
            [
                create_record(title="Late Show", start_datetime=datetime(2025, 12, 14, 13, 0)),
                create_record(
                    title="Late Show",
                    start_datetime=datetime(2025, 12, 15, 5, 30, tzinfo=timezone.utc),
                ),
            ],
        )
        assert count_events(db_session) == 1

    def test_different_day_creates_new_event(self, db_session, create_venue, create_record):
        """A recurring title on another day is a different event."""
        create_venue()
        summary = run_upsert(
            db_session,
            [
                create_record(title="Gospel Brunch", start_datetime=datetime(2025, 12, 14, 13, 0)),
                create_record(title="Gospel Brunch", start_datetime=datetime(2025, 12, 21, 13, 0)),
            ],
        )
        assert summary.created == 2

    def test_edited_title_is_not_fuzzy_matched(self, db_session, create_venue, create_record):
        """Only exact normalized equality counts; a title edit inserts a new row."""
        create_venue()
        summary = run_upsert(
            db_session,
            [
                create_record(title="Bob Dylan"),
                create_record(title="Bob Dylan & His Band"),
            ],
        )
        assert summary.created == 2

    def test_different_source_not_matched(self, db_session, create_venue, create_record):
        """The fallback never crosses sources."""
        create_venue()
        summary = run_upsert(
            db_session,
            [
                create_record(title="Bob Dylan", source=EventSource.VENUE_WEBSITE),
                create_record(title="Bob Dylan", source=EventSource.MANUAL),
            ],
        )
        assert summary.created == 2


class TestFieldOverwrite:
    """Matches overwrite the full mutable field set."""

    def test_optional_fields_are_cleared(self, db_session, create_venue, create_record):
        """Stale description/url from an earlier scrape do not survive."""
        create_venue()
        run_upsert(
            db_session,
            [
                create_record(
                    title="Show",
                    source_event_id="x",
                    description="Old blurb",
                    url="https://example.com/old",
                )
            ],
        )
        run_upsert(db_session, [create_record(title="Show", source_event_id="x")])

        event = db_session.scalar(select(Event))
        assert event.description is None
        assert event.url is None
        assert event.status == EventStatus.SCHEDULED

    def test_new_event_defaults(self, db_session, create_venue, create_record):
        """New rows start SCHEDULED with category OTHER."""
        create_venue()
        run_upsert(db_session, [create_record(title="Mystery Night")])

        event = db_session.scalar(select(Event))
        assert event.status == EventStatus.SCHEDULED
        assert event.category == EventCategory.OTHER

    def test_category_hint_is_applied(self, db_session, create_venue, create_record):
        """A scraper category hint is stored."""
        create_venue()
        run_upsert(db_session, [create_record(title="Comic", category=EventCategory.COMEDY)])
        assert db_session.scalar(select(Event)).category == EventCategory.COMEDY

    def test_missing_hint_resets_category(
        self, db_session, create_venue, create_record
    ):
        """Every mutable field is overwritten; no hint means OTHER."""
        create_venue()
        run_upsert(
            db_session,
            [create_record(title="Gospel Brunch", category=EventCategory.CONCERT)],
        )
        summary = run_upsert(db_session, [create_record(title="Gospel Brunch")])

        assert summary.updated == 1
        assert db_session.scalar(select(Event)).category == EventCategory.OTHER

    def test_naive_start_is_read_as_venue_local(
        self, db_session, create_venue, create_record
    ):
        """1 PM naive at a Central venue is stored as 19:00 UTC."""
        create_venue(tz="America/Chicago")
        run_upsert(
            db_session,
            [create_record(title="Brunch", start_datetime=datetime(2025, 12, 14, 13, 0))],
        )
        event = db_session.scalar(select(Event))
        assert event.start_datetime == datetime(2025, 12, 14, 19, 0, tzinfo=timezone.utc)


class TestErrorIsolation:
    """One bad record never aborts the batch."""

    def test_missing_venue_is_reported(self, db_session, create_venue, create_record):
        """Unknown venue slug is recorded; the rest of the batch continues."""
        create_venue(slug="stubbs")
        summary = run_upsert(
            db_session,
            [
                create_record(title="Lost Show", venue_slug="nowhere"),
                create_record(title="Real Show", venue_slug="stubbs"),
            ],
        )

        assert summary.created == 1
        assert summary.errors == ["Venue not found: nowhere (event: Lost Show)"]

    def test_integrity_error_is_recorded(self, db_session, create_venue, create_record):
        """A uniqueness conflict is rolled back and reported as an item error."""
        create_venue()
        conflict = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

        with patch.object(db_session, "commit", side_effect=conflict):
            summary = run_upsert(db_session, [create_record(title="Racy", source_event_id="r")])

        assert summary.created == 0
        assert len(summary.errors) == 1
        assert "Conflict persisting 'Racy'" in summary.errors[0]


class TestEventUpserter:
    """Direct lookups on EventUpserter."""

    def test_find_by_source_id_without_id(self, db_session, create_record):
        """Records without a source id skip the primary lookup."""
        upserter = EventUpserter(db_session)
        assert upserter.find_by_source_id(create_record(source_event_id=None)) is None
