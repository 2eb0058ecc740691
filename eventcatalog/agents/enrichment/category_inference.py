"""Category inference from secondary-source evidence and the override policy."""

from eventcatalog.agents.enrichment.knowledge_graph import (
    KnowledgeGraphResult,
    has_music_hints,
    is_comedy_related,
    is_movie_related,
    is_music_related,
    is_sports_related,
    is_theater_related,
)
from eventcatalog.agents.enrichment.spotify import SpotifyArtist
from eventcatalog.schemas.event import EventCategory


def _category_from_types(types: list[str]) -> EventCategory | None:
    if is_music_related(types):
        return EventCategory.CONCERT
    if is_comedy_related(types, None):
        return EventCategory.COMEDY
    if is_sports_related(types):
        return EventCategory.SPORTS
    if is_theater_related(types, None):
        return EventCategory.THEATER
    if is_movie_related(types, None):
        return EventCategory.MOVIE
    return None


def has_high_confidence_kg_type(kg: KnowledgeGraphResult | None) -> bool:
    """True when the entity's types alone (not its description) decide the category."""
    if kg is None:
        return False
    return _category_from_types(kg.types) is not None


def infer_category(
    kg: KnowledgeGraphResult | None,
    spotify: SpotifyArtist | None,
) -> EventCategory | None:
    """Best guess from KG types, then KG text, then catalog evidence."""
    if kg is not None:
        from_types = _category_from_types(kg.types)
        if from_types is not None:
            return from_types

        if is_movie_related([], kg.description):
            return EventCategory.MOVIE
        if is_comedy_related([], kg.description):
            return EventCategory.COMEDY
        if has_music_hints(kg):
            return EventCategory.CONCERT

    if spotify is not None and spotify.popularity >= 25 and spotify.genres:
        return EventCategory.CONCERT

    return None


def should_update_category(
    current: EventCategory,
    inferred: EventCategory | None,
    confident: bool = False,
) -> bool:
    """
    Override policy for the canonical category.

    OTHER is always replaceable by a non-null inference; any other value
    changes only when the new inference is confident.
    """
    if inferred is None or inferred == current:
        return False
    if current == EventCategory.OTHER:
        return True
    return confident
