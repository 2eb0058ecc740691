"""
Daily ticket-platform cache refresh.

Fetches every mapped venue's upcoming events and replaces the ticket_cache
table wholesale. The matcher reads only from this table, so a partial refresh
degrades to fewer candidates rather than wrong ones. When every venue fails
the previous snapshot is kept.
"""

import asyncio
import calendar
import logging
import time
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete
from sqlalchemy.orm import Session

from eventcatalog.configs.config import VenueMapping, load_venue_mappings
from eventcatalog.configs.settings import get_settings
from eventcatalog.db.models import TicketCacheEntry
from eventcatalog.errors import CatalogError
from eventcatalog.ingestion.normalization import localize
from eventcatalog.ticketing.client import (
    TicketmasterClient,
    best_image_url,
    external_links,
    primary_classification,
    supporting_acts,
)

logger = logging.getLogger(__name__)

DELAY_BETWEEN_VENUES = 0.3


def add_months(dt: datetime, months: int) -> datetime:
    """Calendar-month addition, clamping the day to the target month's length."""
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def build_cache_entry(event: dict, mapping: VenueMapping) -> TicketCacheEntry | None:
    """
    Convert one platform event into a cache row.

    Events without a local date are dropped. When only a local date is
    known the start falls back to local midnight of that date.
    """
    dates = event.get("dates") or {}
    start = dates.get("start") or {}
    local_date = start.get("localDate")
    if not local_date:
        return None

    tz_name = dates.get("timezone")
    start_dt = _parse_datetime(start.get("dateTime"))
    if start_dt is None:
        try:
            start_dt = localize(datetime.fromisoformat(local_date), tz_name)
        except ValueError:
            return None

    sales = event.get("sales") or {}
    public_sale = sales.get("public") or {}
    attractions = (event.get("_embedded") or {}).get("attractions") or []
    headliner = attractions[0] if attractions else {}
    promoter = event.get("promoter") or {}
    classification = primary_classification(event)
    links = external_links(event)

    return TicketCacheEntry(
        id=event["id"],
        venue_slug=mapping.venue_slug,
        ticket_venue_id=mapping.ticket_venue_id,
        name=event.get("name") or "",
        url=event.get("url"),
        local_date=local_date,
        start_datetime=start_dt,
        end_datetime=_parse_datetime((dates.get("end") or {}).get("dateTime")),
        timezone=tz_name,
        onsale_start=_parse_datetime(public_sale.get("startDateTime")),
        onsale_end=_parse_datetime(public_sale.get("endDateTime")),
        presales=sales.get("presales"),
        image_url=best_image_url(event),
        seatmap_url=(event.get("seatmap") or {}).get("staticUrl"),
        attraction_id=headliner.get("id"),
        attraction_name=headliner.get("name"),
        supporting_acts=supporting_acts(event),
        external_links=links or None,
        genre=classification["genre"],
        subgenre=classification["subgenre"],
        segment=classification["segment"],
        promoter_id=promoter.get("id"),
        promoter_name=promoter.get("name"),
        status=(dates.get("status") or {}).get("code"),
        info=event.get("info"),
        please_note=event.get("pleaseNote"),
        ticket_limit=(event.get("accessibility") or {}).get("ticketLimit"),
    )


async def refresh_ticket_cache(
    session: Session,
    client: TicketmasterClient | None = None,
    months_ahead: int | None = None,
    mappings: dict[str, VenueMapping] | None = None,
    now: datetime | None = None,
    venue_delay: float = DELAY_BETWEEN_VENUES,
) -> dict[str, Any]:
    """
    Replace the ticket cache with a fresh snapshot.

    Returns:
        {venues_processed, events_found, events_inserted, replaced,
         venues: [{venue, events, error}]}
    """
    started = time.monotonic()
    client = client or TicketmasterClient()
    months_ahead = months_ahead or get_settings().TICKET_CACHE_MONTHS_AHEAD
    mappings = mappings if mappings is not None else load_venue_mappings()
    now = now or datetime.now(timezone.utc)
    window_end = add_months(now, months_ahead)

    logger.info(
        f"Refreshing ticket cache for {len(mappings)} venues, {months_ahead} months ahead"
    )

    fetched: list[tuple[VenueMapping, dict]] = []
    venue_results: list[dict[str, Any]] = []

    for slug, mapping in mappings.items():
        try:
            events = await client.search_venue_events(
                mapping.ticket_venue_id, now, window_end
            )
            fetched.extend((mapping, event) for event in events)
            venue_results.append({"venue": slug, "events": len(events), "error": None})
        except CatalogError as e:
            logger.warning(f"Ticket cache fetch failed for {slug}: {e}")
            venue_results.append({"venue": slug, "events": 0, "error": str(e)})
        if venue_delay:
            await asyncio.sleep(venue_delay)

    failed = sum(1 for result in venue_results if result["error"])
    if mappings and failed == len(mappings):
        logger.error(
            f"Ticket cache fetch failed for all {failed} venues; keeping the previous snapshot"
        )
        return {
            "venues_processed": len(mappings),
            "events_found": 0,
            "events_inserted": 0,
            "replaced": False,
            "venues": venue_results,
        }

    entries: dict[str, TicketCacheEntry] = {}
    for mapping, event in fetched:
        if not event.get("id") or event["id"] in entries:
            continue
        entry = build_cache_entry(event, mapping)
        if entry is not None:
            entries[entry.id] = entry

    try:
        session.execute(delete(TicketCacheEntry))
        session.add_all(entries.values())
        session.commit()
    except Exception:
        session.rollback()
        logger.error("Ticket cache replace failed", exc_info=True)
        raise

    summary = {
        "venues_processed": len(mappings),
        "events_found": len(fetched),
        "events_inserted": len(entries),
        "replaced": True,
        "venues": venue_results,
    }
    logger.info(
        f"Ticket cache refreshed in {time.monotonic() - started:.2f}s: "
        f"found={summary['events_found']} inserted={summary['events_inserted']}"
    )
    return summary
