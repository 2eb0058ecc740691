"""Shared normalization helpers: titles, similarity, local dates, keywords."""

from eventcatalog.ingestion.normalization.dates import (
    format_local_date,
    format_local_time,
    local_date_str,
    local_day_bounds,
    localize,
    resolve_timezone,
)
from eventcatalog.ingestion.normalization.keywords import (
    extract_keywords,
    is_generic_query,
    primary_keyword,
)
from eventcatalog.ingestion.normalization.text import (
    calculate_similarity,
    normalize_title,
)

__all__ = [
    "calculate_similarity",
    "extract_keywords",
    "format_local_date",
    "format_local_time",
    "is_generic_query",
    "local_date_str",
    "local_day_bounds",
    "localize",
    "normalize_title",
    "primary_keyword",
    "resolve_timezone",
]
