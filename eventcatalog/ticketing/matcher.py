"""
Cross-source matcher: canonical events vs. the ticket-platform cache.

For each upcoming event the candidates are the cache rows at the same venue
on the same local date. Decision ladder, first hit wins:

1. sticky reuse   - the previously matched listing is still present under a
                    byte-identical name; the decision is kept as is
                    (skipped when the matcher runs fresh)
2. auto-match     - best similarity >= AUTO_MATCH_THRESHOLD
3. arbitration    - the LLM picks a candidate number or none (fail-closed)
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from eventcatalog.agents.enrichment.match_arbiter import (
    ArbitrationCandidate,
    TicketMatchArbiter,
)
from eventcatalog.configs.settings import get_settings
from eventcatalog.db.models import Enrichment, Event, TicketCacheEntry, Venue
from eventcatalog.ingestion.normalization import (
    calculate_similarity,
    format_local_time,
    local_date_str,
    normalize_title,
)
from eventcatalog.schemas.event import EnrichmentStatus, MatchSummary

logger = logging.getLogger(__name__)

AUTO_MATCH_THRESHOLD = 0.85
TIE_MARGIN = 0.05
SUPERSET_LENGTH_RATIO = 1.5

# Cache columns copied onto the enrichment row as ticket_* on every match
_BUNDLE_FIELDS = {
    "url": "ticket_url",
    "image_url": "ticket_image_url",
    "onsale_start": "ticket_onsale_start",
    "onsale_end": "ticket_onsale_end",
    "presales": "ticket_presales",
    "seatmap_url": "ticket_seatmap_url",
    "attraction_id": "ticket_attraction_id",
    "attraction_name": "ticket_attraction_name",
    "supporting_acts": "ticket_supporting_acts",
    "external_links": "ticket_external_links",
    "genre": "ticket_genre",
    "subgenre": "ticket_subgenre",
    "segment": "ticket_segment",
    "promoter_id": "ticket_promoter_id",
    "promoter_name": "ticket_promoter_name",
    "status": "ticket_status",
    "info": "ticket_info",
    "please_note": "ticket_please_note",
    "ticket_limit": "ticket_limit",
}


@dataclass
class RankedCandidate:
    entry: TicketCacheEntry
    similarity: float


def rank_candidates(
    title: str, entries: list[TicketCacheEntry]
) -> list[RankedCandidate]:
    """
    Order candidates by similarity to title, best first.

    Among candidates scoring within TIE_MARGIN of the best, one whose title
    contains the best candidate's title and is materially longer (adds tour
    or opponent detail) is promoted to the front.
    """
    ranked = sorted(
        (RankedCandidate(e, calculate_similarity(title, e.name)) for e in entries),
        key=lambda r: r.similarity,
        reverse=True,
    )
    if len(ranked) < 2:
        return ranked

    top = ranked[0]
    top_name = normalize_title(top.entry.name)
    for candidate in ranked[1:]:
        if top.similarity - candidate.similarity > TIE_MARGIN:
            break
        name = normalize_title(candidate.entry.name)
        if top_name and top_name in name and len(name) > len(top_name) * SUPERSET_LENGTH_RATIO:
            ranked.remove(candidate)
            ranked.insert(0, candidate)
            break
    return ranked


def prefers_external_title(event_title: str, external_title: str) -> bool:
    return len(external_title) > len(event_title) * SUPERSET_LENGTH_RATIO


class TicketMatcher:
    """Runs the decision ladder for one event at a time."""

    def __init__(
        self,
        session: Session,
        arbiter: TicketMatchArbiter | None = None,
        now: datetime | None = None,
        fresh: bool = False,
    ):
        self.session = session
        self._arbiter = arbiter
        self.now = now or datetime.now(timezone.utc)
        self.fresh = fresh

    @property
    def arbiter(self) -> TicketMatchArbiter:
        if self._arbiter is None:
            self._arbiter = TicketMatchArbiter()
        return self._arbiter

    def candidates_for(self, event: Event) -> list[TicketCacheEntry]:
        local_date = local_date_str(event.start_datetime, event.venue.timezone)
        return list(
            self.session.scalars(
                select(TicketCacheEntry).where(
                    TicketCacheEntry.venue_slug == event.venue.slug,
                    TicketCacheEntry.local_date == local_date,
                )
            )
        )

    @staticmethod
    def ensure_enrichment(event: Event) -> Enrichment:
        if event.enrichment is None:
            event.enrichment = Enrichment(status=EnrichmentStatus.PENDING)
        return event.enrichment

    def _copy_bundle(self, enrichment: Enrichment, entry: TicketCacheEntry) -> None:
        for source, target in _BUNDLE_FIELDS.items():
            setattr(enrichment, target, getattr(entry, source))
        enrichment.ticket_last_checked = self.now

    def _accept(
        self,
        enrichment: Enrichment,
        entry: TicketCacheEntry,
        confidence: float,
        prefer_title: bool,
    ) -> None:
        enrichment.ticket_event_id = entry.id
        enrichment.ticket_event_name = entry.name
        enrichment.ticket_match_confidence = confidence
        enrichment.ticket_prefer_title = prefer_title
        self._copy_bundle(enrichment, entry)

    async def match_event(self, event: Event) -> str:
        """
        Match one event and persist the outcome.

        Returns:
            "sticky", "auto", "arbitrated" or "no_match"
        """
        enrichment = self.ensure_enrichment(event)
        entries = self.candidates_for(event)

        if not entries:
            enrichment.ticket_last_checked = self.now
            self.session.commit()
            return "no_match"

        if enrichment.ticket_event_id and not self.fresh:
            previous = next((e for e in entries if e.id == enrichment.ticket_event_id), None)
            if previous is not None and previous.name == enrichment.ticket_event_name:
                self._copy_bundle(enrichment, previous)
                self.session.commit()
                return "sticky"

        ranked = rank_candidates(event.title, entries)
        best = ranked[0]

        if best.similarity >= AUTO_MATCH_THRESHOLD:
            self._accept(
                enrichment,
                best.entry,
                best.similarity,
                prefers_external_title(event.title, best.entry.name),
            )
            self.session.commit()
            return "auto"

        tz_name = event.venue.timezone
        decision = await self.arbiter.choose(
            event.title,
            event.venue.name,
            [
                ArbitrationCandidate(
                    name=r.entry.name,
                    time=format_local_time(r.entry.start_datetime, r.entry.timezone or tz_name),
                )
                for r in ranked
            ],
        )

        if decision.match_index is not None:
            chosen = ranked[decision.match_index]
            self._accept(enrichment, chosen.entry, chosen.similarity, decision.prefer_title)
            self.session.commit()
            return "arbitrated"

        enrichment.ticket_last_checked = self.now
        self.session.commit()
        return "no_match"


async def run_match_batch(
    session: Session,
    limit: int | None = None,
    arbiter: TicketMatchArbiter | None = None,
    now: datetime | None = None,
    fresh: bool = False,
    venue_slug: str | None = None,
    title_contains: str | None = None,
) -> MatchSummary:
    """
    Match the next `limit` upcoming events, soonest first.

    Args:
        fresh: ignore previous matches and run every event through the
            ladder again
        venue_slug: only events at this venue
        title_contains: only events whose title contains this text, case
            insensitive

    An empty cache means there is nothing to compare against: no events are
    touched and cache_size is reported as 0.
    """
    started = time.monotonic()
    limit = limit or get_settings().MATCH_BATCH_SIZE
    cache_size = session.scalar(select(func.count()).select_from(TicketCacheEntry)) or 0
    summary = MatchSummary(cache_size=cache_size)

    if cache_size == 0:
        logger.warning("Ticket cache is empty; run the cache refresh first")
        return summary

    matcher = TicketMatcher(session, arbiter=arbiter, now=now, fresh=fresh)
    stmt = (
        select(Event)
        .options(joinedload(Event.venue), joinedload(Event.enrichment))
        .where(Event.start_datetime >= matcher.now)
    )
    if venue_slug:
        stmt = stmt.where(Event.venue.has(Venue.slug == venue_slug))
    if title_contains:
        stmt = stmt.where(Event.title.ilike(f"%{title_contains}%"))
    events = session.scalars(
        stmt.order_by(Event.start_datetime.asc()).limit(limit)
    ).unique().all()

    for event in events:
        summary.processed += 1
        try:
            outcome = await matcher.match_event(event)
        except Exception as e:
            session.rollback()
            summary.errors += 1
            logger.warning(f"Match failed for '{event.title}': {e}")
            continue

        if outcome == "no_match":
            summary.no_match += 1
        else:
            summary.matched += 1
            if outcome in ("sticky", "auto"):
                summary.skipped_arbitration += 1

    logger.info(
        f"Match batch finished in {time.monotonic() - started:.2f}s: "
        f"processed={summary.processed} matched={summary.matched} "
        f"no_match={summary.no_match} skipped_arbitration={summary.skipped_arbitration} "
        f"errors={summary.errors} cache_size={summary.cache_size}"
    )
    return summary
