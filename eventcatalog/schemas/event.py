# eventcatalog/schemas/event.py
"""
Event schemas for the catalog pipeline.

NormalizedRecord is the contract every source adapter must emit; the batch
summaries are what the three entry points hand back to the trigger layer.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ============================================================================
# ENUMS
# ============================================================================


class EventSource(str, Enum):
    """Where a canonical event was first observed."""

    VENUE_WEBSITE = "VENUE_WEBSITE"
    TICKETMASTER = "TICKETMASTER"
    MANUAL = "MANUAL"
    OTHER = "OTHER"


class EventCategory(str, Enum):
    """Coarse event category used across the catalog."""

    CONCERT = "CONCERT"
    COMEDY = "COMEDY"
    THEATER = "THEATER"
    MOVIE = "MOVIE"
    SPORTS = "SPORTS"
    FESTIVAL = "FESTIVAL"
    OTHER = "OTHER"

    @classmethod
    def coerce(cls, value: object) -> "EventCategory":
        """
        Map arbitrary input onto a category, defaulting to OTHER.

        Example:
            >>> EventCategory.coerce("concert")
            <EventCategory.CONCERT: 'CONCERT'>
            >>> EventCategory.coerce("PODCAST")
            <EventCategory.OTHER: 'OTHER'>
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        return cls.OTHER


class EventStatus(str, Enum):
    """Lifecycle status of a canonical event."""

    SCHEDULED = "SCHEDULED"
    CANCELLED = "CANCELLED"
    POSTPONED = "POSTPONED"
    SOLD_OUT = "SOLD_OUT"


class EnrichmentStatus(str, Enum):
    """Persisted state of an event's enrichment record."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class ConfidenceTier(str, Enum):
    """Coarse classification-quality signal."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# ============================================================================
# NORMALIZED RECORD
# ============================================================================


class NormalizedRecord(BaseModel):
    """
    Uniform event shape produced by every source adapter.

    Timestamps without tzinfo are interpreted in the venue's local timezone
    when the record is upserted.
    """

    model_config = ConfigDict(use_enum_values=False, str_strip_whitespace=True)

    venue_slug: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    start_datetime: datetime
    end_datetime: Optional[datetime] = None
    url: Optional[str] = None
    image_url: Optional[str] = None
    description: Optional[str] = None
    category: Optional[EventCategory] = None
    source: EventSource = EventSource.VENUE_WEBSITE
    source_event_id: Optional[str] = None

    @field_validator("source_event_id", "url", "image_url", "description")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat empty strings from scrapers as missing."""
        if v is None:
            return None
        return v or None


# ============================================================================
# BATCH SUMMARIES
# ============================================================================


class UpsertSummary(BaseModel):
    """Outcome of one identity-resolution pass."""

    created: int = 0
    updated: int = 0
    errors: List[str] = Field(default_factory=list)


class MatchSummary(BaseModel):
    """Outcome of one cross-source matching pass."""

    processed: int = 0
    matched: int = 0
    no_match: int = 0
    skipped_arbitration: int = 0
    errors: int = 0
    cache_size: int = 0


class EnrichmentSummary(BaseModel):
    """Outcome of one enrichment pass."""

    processed: int = 0
    completed: int = 0
    partial: int = 0
    failed: int = 0
    skipped: int = 0
    categories_updated: int = 0
