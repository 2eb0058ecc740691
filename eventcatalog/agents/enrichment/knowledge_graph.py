"""
Google Knowledge Graph Search client and entity-type helpers.

Lookups never raise: transport errors and bad responses are logged and
returned as None so enrichment can continue on a degraded path.
"""

import logging
from dataclasses import dataclass, field

import httpx

from eventcatalog.configs.settings import get_settings

logger = logging.getLogger(__name__)

KG_API_URL = "https://kgsearch.googleapis.com/v1/entities:search"

MUSIC_TYPES = {"MusicGroup", "MusicRecording", "MusicAlbum", "Musician", "MusicArtist", "Band"}
SPORTS_TYPES = {"SportsTeam", "SportsEvent", "SportsOrganization", "Athlete"}
THEATER_TYPES = {"TheaterEvent", "TheaterGroup", "Play", "Musical"}
MOVIE_TYPES = {"Movie", "Film", "TVSeries", "TVEpisode"}

DESCRIPTION_MUSIC_HINTS = ("band", "musician", "singer", "rapper", "dj", "producer")
BIO_MUSIC_HINTS = ("band", "musician", "recording artist", "singer", "songwriter")


@dataclass
class KnowledgeGraphResult:
    entity_id: str
    name: str
    description: str | None = None
    bio: str | None = None
    image_url: str | None = None
    wiki_url: str | None = None
    types: list[str] = field(default_factory=list)
    score: float = 0.0


class KnowledgeGraphClient:
    """Single-entity search against the Knowledge Graph API."""

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        settings = get_settings()
        self._api_key: str | None = api_key or (
            settings.GOOGLE_API_KEY.get_secret_value() if settings.GOOGLE_API_KEY else None
        )
        self.timeout = timeout
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def search(self, query: str) -> KnowledgeGraphResult | None:
        if not self._api_key:
            logger.debug("GOOGLE_API_KEY not set, skipping Knowledge Graph")
            return None

        params = {"query": query, "key": self._api_key, "limit": 1, "indent": "false"}
        try:
            response = await self._get_client().get(KG_API_URL, params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Knowledge Graph lookup failed for '{query}': {e}")
            return None

        items = data.get("itemListElement") or []
        if not items:
            return None

        item = items[0]
        result = item.get("result") or {}
        detailed = result.get("detailedDescription") or {}
        return KnowledgeGraphResult(
            entity_id=result.get("@id") or "",
            name=result.get("name") or query,
            description=result.get("description"),
            bio=detailed.get("articleBody"),
            image_url=(result.get("image") or {}).get("contentUrl"),
            wiki_url=detailed.get("url") or result.get("url"),
            types=list(result.get("@type") or []),
            score=float(item.get("resultScore") or 0),
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None


# =============================================================================
# Type helpers
# =============================================================================


def is_music_related(types: list[str]) -> bool:
    return any(t in MUSIC_TYPES for t in types)


def is_comedy_related(types: list[str], description: str | None) -> bool:
    desc = (description or "").lower()
    return "Comedian" in types or "comedian" in desc or "stand-up" in desc


def is_sports_related(types: list[str]) -> bool:
    return any(t in SPORTS_TYPES for t in types)


def is_theater_related(types: list[str], description: str | None) -> bool:
    desc = (description or "").lower()
    return any(t in THEATER_TYPES for t in types) or "broadway" in desc or "musical" in desc


def is_movie_related(types: list[str], description: str | None) -> bool:
    desc = (description or "").lower()
    return any(t in MOVIE_TYPES for t in types) or "film" in desc or "movie" in desc


def has_music_hints(result: KnowledgeGraphResult) -> bool:
    """Music signal from free-text description or bio."""
    desc = (result.description or "").lower()
    bio = (result.bio or "").lower()
    return any(h in desc for h in DESCRIPTION_MUSIC_HINTS) or any(h in bio for h in BIO_MUSIC_HINTS)
