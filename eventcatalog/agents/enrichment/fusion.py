"""
Enrichment fusion engine.

Classification-first: one LLM call decides the category and performer, and
that category gates which secondary source (if any) is queried:

    CONCERT                      -> Spotify (performer, else title keyword)
    COMEDY / THEATER / MOVIE     -> Knowledge Graph (performer only)
    SPORTS / FESTIVAL / OTHER    -> nothing

When the classifier cannot be used the legacy path runs instead: Knowledge
Graph on the title keyword, Spotify only when the entity looks musical, and
the category is inferred from that evidence.

Each source writes its own column group (llm_*, kg_*, spotify_*) on the
enrichment row. The canonical category is only overwritten under the
override policy in category_inference.should_update_category.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session, joinedload

from eventcatalog.agents.enrichment.category_inference import (
    has_high_confidence_kg_type,
    infer_category,
    should_update_category,
)
from eventcatalog.agents.enrichment.classifier import (
    Classification,
    ClassificationRequest,
    EventClassifier,
)
from eventcatalog.agents.enrichment.knowledge_graph import (
    KnowledgeGraphClient,
    KnowledgeGraphResult,
    is_music_related,
)
from eventcatalog.agents.enrichment.spotify import (
    SpotifyArtist,
    SpotifyClient,
    is_confident_match,
)
from eventcatalog.agents.enrichment.state import RetryState
from eventcatalog.configs.settings import get_settings
from eventcatalog.db.models import Enrichment, Event
from eventcatalog.errors import (
    ExternalServiceUnavailableError,
    MalformedExternalResponseError,
)
from eventcatalog.ingestion.normalization import (
    format_local_date,
    is_generic_query,
    primary_keyword,
)
from eventcatalog.schemas.event import (
    ConfidenceTier,
    EnrichmentStatus,
    EnrichmentSummary,
    EventCategory,
)

logger = logging.getLogger(__name__)

KG_GATED_CATEGORIES = {EventCategory.COMEDY, EventCategory.THEATER, EventCategory.MOVIE}

# Free-text hints that justify a Spotify lookup on the legacy path
_SPOTIFY_DESCRIPTION_HINTS = ("band", "musician", "singer", "rapper", "dj", "music")
_SPOTIFY_BIO_HINTS = ("band", "musician", "recording artist", "singer", "songwriter")


def should_try_spotify(kg: KnowledgeGraphResult | None) -> bool:
    """Legacy path: only search the catalog when the KG entity looks musical."""
    if kg is None:
        return False
    if is_music_related(kg.types):
        return True
    desc = (kg.description or "").lower()
    bio = (kg.bio or "").lower()
    return any(h in desc for h in _SPOTIFY_DESCRIPTION_HINTS) or any(
        h in bio for h in _SPOTIFY_BIO_HINTS
    )


def derive_status(primary_ok: bool, secondary_ok: bool) -> EnrichmentStatus:
    if primary_ok and secondary_ok:
        return EnrichmentStatus.COMPLETED
    if primary_ok or secondary_ok:
        return EnrichmentStatus.PARTIAL
    return EnrichmentStatus.FAILED


def classification_tags(enrichment: Enrichment | None) -> list[str]:
    """Ticket-platform classification as prompt lines, when a match exists."""
    if enrichment is None or not (enrichment.ticket_segment or enrichment.ticket_genre):
        return []
    tags = []
    if enrichment.ticket_segment:
        tags.append(f"Segment: {enrichment.ticket_segment}")
    if enrichment.ticket_genre:
        tags.append(f"Genre: {enrichment.ticket_genre}")
    if enrichment.ticket_subgenre:
        tags.append(f"Sub-genre: {enrichment.ticket_subgenre}")
    return tags


@dataclass
class EnrichmentOutcome:
    status: EnrichmentStatus
    classification: Classification | None = None
    kg: KnowledgeGraphResult | None = None
    spotify: SpotifyArtist | None = None
    inferred_category: EventCategory | None = None
    category_updated: bool = False
    search_query: str | None = None
    error: str | None = None


class EnrichmentEngine:
    """Enriches events one at a time and persists every outcome."""

    def __init__(
        self,
        session: Session,
        classifier: EventClassifier | None = None,
        kg_client: KnowledgeGraphClient | None = None,
        spotify_client: SpotifyClient | None = None,
        request_delay: float | None = None,
        max_retries: int | None = None,
    ):
        settings = get_settings()
        self.session = session
        self.classifier = classifier or EventClassifier()
        self.kg_client = kg_client or KnowledgeGraphClient()
        self.spotify_client = spotify_client or SpotifyClient()
        self._owns_kg_client = kg_client is None
        self._owns_spotify_client = spotify_client is None
        self.request_delay = (
            settings.DELAY_BETWEEN_REQUESTS if request_delay is None else request_delay
        )
        self.max_retries = max_retries or settings.ENRICH_MAX_RETRIES

    async def close(self) -> None:
        """Close the lookup clients this engine created."""
        if self._owns_kg_client:
            await self.kg_client.close()
        if self._owns_spotify_client:
            self.spotify_client.close()

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    def select_events(self, limit: int) -> list[Event]:
        """No record, pending, or failed with retries left; soonest first."""
        stmt = (
            select(Event)
            .outerjoin(Enrichment, Enrichment.event_id == Event.id)
            .options(joinedload(Event.venue), joinedload(Event.enrichment))
            .where(
                or_(
                    Enrichment.id.is_(None),
                    Enrichment.status.in_(
                        [EnrichmentStatus.PENDING, EnrichmentStatus.FAILED]
                    ),
                )
            )
            .order_by(Event.start_datetime.asc())
        )
        selected = []
        for event in self.session.scalars(stmt).unique():
            if RetryState.from_record(event.enrichment).needs_enrichment(self.max_retries):
                selected.append(event)
                if len(selected) >= limit:
                    break
        return selected

    def reset_all(self) -> int:
        """
        Put every enrichment back to pending with the retry count cleared.

        Match decisions (ticket_* columns) are left untouched.
        """
        result = self.session.execute(
            update(Enrichment).values(
                status=EnrichmentStatus.PENDING, retry_count=0, error_message=None
            )
        )
        self.session.commit()
        return result.rowcount or 0

    # -------------------------------------------------------------------------
    # Secondary lookups
    # -------------------------------------------------------------------------

    async def _pause(self) -> None:
        if self.request_delay:
            await asyncio.sleep(self.request_delay)

    async def _search_spotify(self, query: str) -> SpotifyArtist | None:
        await self._pause()
        artist = await self.spotify_client.search_artist(query)
        if artist and not is_confident_match(query, artist.name, artist.popularity):
            logger.info(f"Rejected Spotify match '{artist.name}' for query '{query}'")
            return None
        return artist

    async def _search_kg(self, query: str) -> KnowledgeGraphResult | None:
        await self._pause()
        return await self.kg_client.search(query)

    async def _classified_path(
        self, event: Event, classification: Classification, keyword: str | None
    ) -> EnrichmentOutcome:
        outcome = EnrichmentOutcome(
            status=EnrichmentStatus.PARTIAL, classification=classification
        )
        category = classification.category

        if category == EventCategory.CONCERT:
            query = classification.performer or keyword
            if query and not is_generic_query(query):
                outcome.search_query = query
                outcome.spotify = await self._search_spotify(query)
        elif category in KG_GATED_CATEGORIES and classification.performer:
            outcome.search_query = classification.performer
            outcome.kg = await self._search_kg(classification.performer)

        # An OTHER classification carries no information to apply
        if category != EventCategory.OTHER:
            outcome.inferred_category = category
        confident = classification.confidence != ConfidenceTier.LOW
        outcome.category_updated = should_update_category(
            event.category, outcome.inferred_category, confident
        )
        outcome.status = derive_status(True, bool(outcome.kg or outcome.spotify))
        return outcome

    async def _legacy_path(self, event: Event, keyword: str) -> EnrichmentOutcome:
        outcome = EnrichmentOutcome(status=EnrichmentStatus.FAILED, search_query=keyword)
        outcome.kg = await self._search_kg(keyword)
        if should_try_spotify(outcome.kg) and not is_generic_query(keyword):
            outcome.spotify = await self._search_spotify(keyword)

        outcome.inferred_category = infer_category(outcome.kg, outcome.spotify)
        outcome.category_updated = should_update_category(
            event.category,
            outcome.inferred_category,
            has_high_confidence_kg_type(outcome.kg),
        )
        outcome.status = derive_status(False, bool(outcome.kg or outcome.spotify))
        return outcome

    # -------------------------------------------------------------------------
    # Per-event
    # -------------------------------------------------------------------------

    def _ensure_record(self, event: Event) -> Enrichment:
        if event.enrichment is None:
            event.enrichment = Enrichment(status=EnrichmentStatus.PENDING)
        return event.enrichment

    async def enrich_event(self, event: Event) -> EnrichmentOutcome:
        record = self._ensure_record(event)
        tz_name = event.venue.timezone
        keyword = primary_keyword(event.title, event.venue.name)

        if not self.classifier.is_available and not keyword:
            outcome = EnrichmentOutcome(
                status=EnrichmentStatus.SKIPPED, search_query=event.title
            )
            self._persist(event, record, outcome)
            return outcome

        record.status = EnrichmentStatus.PROCESSING
        record.search_query = keyword
        self.session.commit()

        classification: Classification | None = None
        primary_error: str | None = None
        try:
            classification = await self.classifier.classify(
                ClassificationRequest(
                    title=event.title,
                    venue_name=event.venue.name,
                    date=format_local_date(event.start_datetime, tz_name),
                    description=event.description,
                    url=event.url,
                    current_category=event.category,
                    classification_tags=classification_tags(record),
                )
            )
        except (ExternalServiceUnavailableError, MalformedExternalResponseError) as e:
            primary_error = str(e)
            logger.info(f"Classification unavailable for '{event.title}': {e}")

        if classification is not None:
            outcome = await self._classified_path(event, classification, keyword)
        elif keyword:
            outcome = await self._legacy_path(event, keyword)
        else:
            outcome = EnrichmentOutcome(status=EnrichmentStatus.FAILED)

        if outcome.status == EnrichmentStatus.FAILED:
            outcome.error = primary_error or "No enrichment data found"

        self._persist(event, record, outcome)
        return outcome

    def _persist(self, event: Event, record: Enrichment, outcome: EnrichmentOutcome) -> None:
        now = datetime.now(timezone.utc)

        if outcome.classification is not None:
            c = outcome.classification
            record.llm_category = c.category
            record.llm_performer = c.performer
            record.llm_description = c.description or None
            record.llm_confidence = c.confidence.value
            record.llm_enriched_at = now
        else:
            record.llm_category = None
            record.llm_performer = None
            record.llm_description = None
            record.llm_confidence = None
            record.llm_enriched_at = None

        kg = outcome.kg
        record.kg_entity_id = kg.entity_id if kg else None
        record.kg_name = kg.name if kg else None
        record.kg_description = kg.description if kg else None
        record.kg_bio = kg.bio if kg else None
        record.kg_image_url = kg.image_url if kg else None
        record.kg_wiki_url = kg.wiki_url if kg else None
        record.kg_types = kg.types if kg else []
        record.kg_score = kg.score if kg else None
        record.kg_enriched_at = now if kg else None

        sp = outcome.spotify
        record.spotify_id = sp.id if sp else None
        record.spotify_name = sp.name if sp else None
        record.spotify_url = sp.url if sp else None
        record.spotify_genres = sp.genres if sp else []
        record.spotify_popularity = sp.popularity if sp else None
        record.spotify_image_url = sp.image_url if sp else None
        record.spotify_enriched_at = now if sp else None

        record.inferred_category = outcome.inferred_category
        record.category_updated = outcome.category_updated
        if outcome.search_query:
            record.search_query = outcome.search_query

        state = RetryState.from_record(record)
        if outcome.status == EnrichmentStatus.FAILED:
            state = state.record_failure(outcome.error or "Unknown error")
        else:
            state = state.record_outcome(outcome.status)
        record.status = state.status
        record.retry_count = state.attempts
        record.error_message = state.last_error

        if outcome.category_updated and outcome.inferred_category is not None:
            logger.info(
                f"Category for '{event.title}': {event.category.value} -> "
                f"{outcome.inferred_category.value}"
            )
            event.category = outcome.inferred_category

        self.session.commit()

    def mark_failed(self, event: Event, error: str) -> None:
        """Record an unexpected per-event failure after a rollback."""
        record = self._ensure_record(event)
        state = RetryState.from_record(record).record_failure(error)
        record.status = state.status
        record.retry_count = state.attempts
        record.error_message = state.last_error
        self.session.commit()


async def run_enrichment_batch(
    session: Session,
    limit: int | None = None,
    classifier: EventClassifier | None = None,
    kg_client: KnowledgeGraphClient | None = None,
    spotify_client: SpotifyClient | None = None,
    force: bool = False,
    event_delay: float | None = None,
    request_delay: float | None = None,
) -> EnrichmentSummary:
    """
    Enrich the next `limit` eligible events, soonest first.

    force=True first resets every enrichment to pending so the whole
    catalog becomes eligible again.
    """
    started = time.monotonic()
    settings = get_settings()
    limit = limit or settings.ENRICH_BATCH_SIZE
    event_delay = settings.DELAY_BETWEEN_EVENTS if event_delay is None else event_delay

    engine = EnrichmentEngine(
        session,
        classifier=classifier,
        kg_client=kg_client,
        spotify_client=spotify_client,
        request_delay=request_delay,
    )
    try:
        summary = await _run_batch(engine, session, limit, force, event_delay)
    finally:
        await engine.close()

    logger.info(
        f"Enrichment batch finished in {time.monotonic() - started:.2f}s: "
        f"processed={summary.processed} completed={summary.completed} "
        f"partial={summary.partial} failed={summary.failed} "
        f"skipped={summary.skipped} categories_updated={summary.categories_updated}"
    )
    return summary


async def _run_batch(
    engine: EnrichmentEngine,
    session: Session,
    limit: int,
    force: bool,
    event_delay: float,
) -> EnrichmentSummary:
    if force:
        reset = engine.reset_all()
        logger.info(f"Reset {reset} enrichment records to pending")

    summary = EnrichmentSummary()
    events = engine.select_events(limit)
    logger.info(f"Found {len(events)} events to enrich")

    for index, event in enumerate(events):
        summary.processed += 1
        try:
            outcome = await engine.enrich_event(event)
            status = outcome.status
            if outcome.category_updated:
                summary.categories_updated += 1
        except Exception as e:
            session.rollback()
            logger.warning(f"Enrichment failed for '{event.title}': {e}", exc_info=True)
            status = EnrichmentStatus.FAILED
            try:
                engine.mark_failed(event, str(e))
            except Exception:
                session.rollback()
                logger.error(f"Could not record failure for '{event.title}'", exc_info=True)

        if status == EnrichmentStatus.COMPLETED:
            summary.completed += 1
        elif status == EnrichmentStatus.PARTIAL:
            summary.partial += 1
        elif status == EnrichmentStatus.SKIPPED:
            summary.skipped += 1
        else:
            summary.failed += 1

        if event_delay and index < len(events) - 1:
            await asyncio.sleep(event_delay)

    return summary
