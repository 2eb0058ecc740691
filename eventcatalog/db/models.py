"""
ORM models for the canonical catalog.

Tables:
    venues        - reference data; events point at a venue
    events        - canonical, deduplicated events
    enrichments   - one row per event; llm_*, kg_*, spotify_* and ticket_*
                    column groups keep each source's contribution separate
    ticket_cache  - bulk-replaced snapshot of the ticket platform, keyed by
                    venue slug and local date
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from eventcatalog.db.session import Base
from eventcatalog.schemas.event import (
    EnrichmentStatus,
    EventCategory,
    EventSource,
    EventStatus,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime stored as naive UTC.

    Values are converted to UTC on write and come back tz-aware on read,
    which keeps comparisons consistent across PostgreSQL and SQLite.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def _enum(enum_cls):
    return Enum(enum_cls, native_enum=False, length=32)


class Venue(Base):
    __tablename__ = "venues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slug = Column(String(128), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    city = Column(String(128), default="Austin")
    # IANA zone; None means Settings.LOCAL_TIMEZONE
    timezone = Column(String(64), nullable=True)

    events = relationship("Event", back_populates="venue")


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        UniqueConstraint("source", "source_event_id", name="uq_events_source_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    venue_id = Column(Integer, ForeignKey("venues.id"), nullable=False, index=True)

    title = Column(String(512), nullable=False)
    description = Column(Text, nullable=True)
    start_datetime = Column(UTCDateTime, nullable=False, index=True)
    end_datetime = Column(UTCDateTime, nullable=True)
    url = Column(String(1024), nullable=True)
    image_url = Column(String(1024), nullable=True)

    category = Column(_enum(EventCategory), default=EventCategory.OTHER, nullable=False)
    status = Column(_enum(EventStatus), default=EventStatus.SCHEDULED, nullable=False)

    # Provenance; part of the identity key and never rewritten after insert
    source = Column(_enum(EventSource), default=EventSource.VENUE_WEBSITE, nullable=False)
    source_event_id = Column(String(255), nullable=True)

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    venue = relationship("Venue", back_populates="events")
    enrichment = relationship(
        "Enrichment",
        back_populates="event",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Event id={self.id} title={self.title!r}>"


class Enrichment(Base):
    __tablename__ = "enrichments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(
        Integer,
        ForeignKey("events.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    # -------------------------------------------------------------------------
    # Primary classification
    # -------------------------------------------------------------------------
    llm_category = Column(_enum(EventCategory), nullable=True)
    llm_performer = Column(String(255), nullable=True)
    llm_description = Column(Text, nullable=True)
    llm_confidence = Column(String(16), nullable=True)
    llm_enriched_at = Column(UTCDateTime, nullable=True)

    # -------------------------------------------------------------------------
    # Knowledge graph
    # -------------------------------------------------------------------------
    kg_entity_id = Column(String(255), nullable=True)
    kg_name = Column(String(255), nullable=True)
    kg_description = Column(String(512), nullable=True)
    kg_bio = Column(Text, nullable=True)
    kg_image_url = Column(String(1024), nullable=True)
    kg_wiki_url = Column(String(1024), nullable=True)
    kg_types = Column(JSON, nullable=True)
    kg_score = Column(Float, nullable=True)
    kg_enriched_at = Column(UTCDateTime, nullable=True)

    # -------------------------------------------------------------------------
    # Music catalog
    # -------------------------------------------------------------------------
    spotify_id = Column(String(64), nullable=True)
    spotify_name = Column(String(255), nullable=True)
    spotify_url = Column(String(1024), nullable=True)
    spotify_genres = Column(JSON, nullable=True)
    spotify_popularity = Column(Integer, nullable=True)
    spotify_image_url = Column(String(1024), nullable=True)
    spotify_enriched_at = Column(UTCDateTime, nullable=True)

    # -------------------------------------------------------------------------
    # Ticket-platform match decision + copied metadata
    # -------------------------------------------------------------------------
    ticket_event_id = Column(String(64), nullable=True)
    ticket_event_name = Column(String(512), nullable=True)
    ticket_match_confidence = Column(Float, nullable=True)
    ticket_prefer_title = Column(Boolean, default=False, nullable=False)
    ticket_last_checked = Column(UTCDateTime, nullable=True)

    ticket_url = Column(String(1024), nullable=True)
    ticket_image_url = Column(String(1024), nullable=True)
    ticket_onsale_start = Column(UTCDateTime, nullable=True)
    ticket_onsale_end = Column(UTCDateTime, nullable=True)
    ticket_presales = Column(JSON, nullable=True)
    ticket_seatmap_url = Column(String(1024), nullable=True)
    ticket_attraction_id = Column(String(64), nullable=True)
    ticket_attraction_name = Column(String(255), nullable=True)
    ticket_supporting_acts = Column(JSON, nullable=True)
    ticket_external_links = Column(JSON, nullable=True)
    ticket_genre = Column(String(128), nullable=True)
    ticket_subgenre = Column(String(128), nullable=True)
    ticket_segment = Column(String(128), nullable=True)
    ticket_promoter_id = Column(String(64), nullable=True)
    ticket_promoter_name = Column(String(255), nullable=True)
    ticket_status = Column(String(32), nullable=True)
    ticket_info = Column(Text, nullable=True)
    ticket_please_note = Column(Text, nullable=True)
    ticket_limit = Column(Integer, nullable=True)

    # -------------------------------------------------------------------------
    # Fusion outcome + retry state
    # -------------------------------------------------------------------------
    inferred_category = Column(_enum(EventCategory), nullable=True)
    category_updated = Column(Boolean, default=False, nullable=False)
    search_query = Column(String(255), nullable=True)

    status = Column(
        _enum(EnrichmentStatus), default=EnrichmentStatus.PENDING, nullable=False
    )
    retry_count = Column(Integer, default=0, nullable=False)
    error_message = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    event = relationship("Event", back_populates="enrichment")


class TicketCacheEntry(Base):
    __tablename__ = "ticket_cache"

    # Ticket-platform event id
    id = Column(String(64), primary_key=True)
    venue_slug = Column(String(128), index=True, nullable=False)
    ticket_venue_id = Column(String(64), nullable=False)

    name = Column(String(512), nullable=False)
    url = Column(String(1024), nullable=True)
    local_date = Column(String(10), index=True, nullable=False)  # YYYY-MM-DD
    start_datetime = Column(UTCDateTime, nullable=True)
    end_datetime = Column(UTCDateTime, nullable=True)
    timezone = Column(String(64), nullable=True)

    onsale_start = Column(UTCDateTime, nullable=True)
    onsale_end = Column(UTCDateTime, nullable=True)
    presales = Column(JSON, nullable=True)

    image_url = Column(String(1024), nullable=True)
    seatmap_url = Column(String(1024), nullable=True)

    attraction_id = Column(String(64), nullable=True)
    attraction_name = Column(String(255), nullable=True)
    supporting_acts = Column(JSON, nullable=True)
    external_links = Column(JSON, nullable=True)

    genre = Column(String(128), nullable=True)
    subgenre = Column(String(128), nullable=True)
    segment = Column(String(128), nullable=True)

    promoter_id = Column(String(64), nullable=True)
    promoter_name = Column(String(255), nullable=True)

    status = Column(String(32), nullable=True)
    info = Column(Text, nullable=True)
    please_note = Column(Text, nullable=True)
    ticket_limit = Column(Integer, nullable=True)

    fetched_at = Column(UTCDateTime, default=utcnow, nullable=False)
