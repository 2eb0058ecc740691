"""
Identity resolution for scraped events.

Each NormalizedRecord is resolved to an existing canonical Event or inserted
as a new one. Resolution order:

1. (source, source_event_id) when the record carries a source-native id
2. same venue + source + local calendar day + exactly equal normalized title

A match overwrites every mutable field so stale data from an earlier scrape
never survives. Identity columns (source, source_event_id, venue) are written
once, on insert.
"""

import logging
import time
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from eventcatalog.db.models import Event, Venue
from eventcatalog.errors import PersistenceConflictError, ReferenceMissingError
from eventcatalog.ingestion.normalization import (
    local_day_bounds,
    localize,
    normalize_title,
)
from eventcatalog.schemas.event import (
    EventCategory,
    EventStatus,
    NormalizedRecord,
    UpsertSummary,
)

logger = logging.getLogger(__name__)


class EventUpserter:
    """
    Resolves NormalizedRecords onto canonical Event rows.

    Venue lookups are memoized for the lifetime of one upserter, which is
    one batch.
    """

    def __init__(self, session: Session):
        self.session = session
        self._venues: dict[str, Venue | None] = {}

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def _get_venue(self, slug: str) -> Venue | None:
        if slug not in self._venues:
            self._venues[slug] = self.session.scalar(
                select(Venue).where(Venue.slug == slug)
            )
        return self._venues[slug]

    def find_by_source_id(self, record: NormalizedRecord) -> Event | None:
        if not record.source_event_id:
            return None
        return self.session.scalar(
            select(Event).where(
                Event.source == record.source,
                Event.source_event_id == record.source_event_id,
            )
        )

    def find_by_title_and_day(
        self, record: NormalizedRecord, venue: Venue
    ) -> Event | None:
        """Same venue, same source, same local day, identical normalized title."""
        day_start, day_end = local_day_bounds(record.start_datetime, venue.timezone)
        candidates = self.session.scalars(
            select(Event).where(
                Event.venue_id == venue.id,
                Event.source == record.source,
                Event.start_datetime >= day_start,
                Event.start_datetime < day_end,
            )
        ).all()

        wanted = normalize_title(record.title)
        for candidate in candidates:
            if normalize_title(candidate.title) == wanted:
                return candidate
        return None

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @staticmethod
    def _apply_fields(event: Event, record: NormalizedRecord, venue: Venue) -> None:
        """Full overwrite of the mutable field set."""
        event.title = record.title
        event.description = record.description
        event.start_datetime = localize(record.start_datetime, venue.timezone)
        event.end_datetime = (
            localize(record.end_datetime, venue.timezone)
            if record.end_datetime
            else None
        )
        event.url = record.url
        event.image_url = record.image_url
        event.status = EventStatus.SCHEDULED
        event.category = record.category or EventCategory.OTHER

    def upsert_one(self, record: NormalizedRecord) -> bool:
        """
        Resolve and persist one record.

        Returns:
            True if a new Event was created, False if an existing one was updated.

        Raises:
            ReferenceMissingError: the venue slug is unknown
            PersistenceConflictError: a concurrent insert won the unique key
        """
        venue = self._get_venue(record.venue_slug)
        if venue is None:
            raise ReferenceMissingError("Venue", record.venue_slug, f"event: {record.title}")

        existing = self.find_by_source_id(record) or self.find_by_title_and_day(
            record, venue
        )

        try:
            if existing is not None:
                self._apply_fields(existing, record, venue)
                self.session.commit()
                return False

            event = Event(
                venue_id=venue.id,
                source=record.source,
                source_event_id=record.source_event_id,
            )
            self._apply_fields(event, record, venue)
            self.session.add(event)
            self.session.commit()
            return True
        except IntegrityError as e:
            self.session.rollback()
            raise PersistenceConflictError(
                f"Conflict persisting '{record.title}' ({record.source.value}/"
                f"{record.source_event_id}): {e.orig}"
            ) from e


def run_upsert(session: Session, records: Iterable[NormalizedRecord]) -> UpsertSummary:
    """
    Upsert a batch of records, one commit per record.

    A failing record is logged and appended to summary.errors; the batch
    always runs to the end.
    """
    start = time.monotonic()
    upserter = EventUpserter(session)
    summary = UpsertSummary()

    for record in records:
        try:
            if upserter.upsert_one(record):
                summary.created += 1
            else:
                summary.updated += 1
        except (ReferenceMissingError, PersistenceConflictError) as e:
            logger.warning(f"Upsert skipped: {e}")
            summary.errors.append(str(e))
        except Exception as e:
            session.rollback()
            logger.error(f"Upsert failed for '{record.title}': {e}", exc_info=True)
            summary.errors.append(f"Error upserting {record.title}: {e}")

    logger.info(
        f"Upsert finished in {time.monotonic() - start:.2f}s: "
        f"created={summary.created} updated={summary.updated} "
        f"errors={len(summary.errors)}"
    )
    return summary
