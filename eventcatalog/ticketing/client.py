"""
Ticket-platform (Ticketmaster Discovery v2) client.

HTTP errors, bad status codes and network problems are logged and raised as
ExternalServiceUnavailableError so callers can tell an outage from a venue
with no events. An empty page is still [].
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any

import httpx

from eventcatalog.configs.settings import get_settings
from eventcatalog.errors import ExternalServiceUnavailableError, MalformedExternalResponseError

logger = logging.getLogger(__name__)

TM_API_BASE = "https://app.ticketmaster.com/discovery/v2"
MIN_REQUEST_INTERVAL = 0.25  # platform allows 5 req/s
SERVICE = "ticketmaster"

_LINK_KINDS = ("spotify", "youtube", "instagram", "facebook", "twitter", "homepage", "wiki")


def _format_api_datetime(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class TicketmasterClient:
    """
    Async Discovery API client with a minimum interval between requests.

    Pass `client` to inject a preconfigured httpx.AsyncClient (tests use
    httpx.MockTransport).
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = TM_API_BASE,
        min_interval: float = MIN_REQUEST_INTERVAL,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        settings = get_settings()
        self._api_key: str | None = api_key or (
            settings.TICKETMASTER_API_KEY.get_secret_value()
            if settings.TICKETMASTER_API_KEY
            else None
        )
        self.base_url = base_url.rstrip("/")
        self.min_interval = min_interval
        self.timeout = timeout
        self._client = client
        self._last_request: float = 0.0

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"Accept": "application/json"}, timeout=self.timeout
            )
        return self._client

    async def _rate_limit(self) -> None:
        elapsed = time.monotonic() - self._last_request
        if elapsed < self.min_interval:
            await asyncio.sleep(self.min_interval - elapsed)
        self._last_request = time.monotonic()

    async def _get(self, endpoint: str, params: dict[str, Any] | None = None) -> dict:
        """
        Raises:
            ExternalServiceUnavailableError: no API key, transport failure or error status
            MalformedExternalResponseError: the body is not a JSON object
        """
        if not self._api_key:
            logger.error("TICKETMASTER_API_KEY is not set")
            raise ExternalServiceUnavailableError(SERVICE, "TICKETMASTER_API_KEY not set")

        await self._rate_limit()

        query = {"apikey": self._api_key}
        for key, value in (params or {}).items():
            if value is not None and value != "":
                query[key] = str(value)

        try:
            response = await self._get_client().get(f"{self.base_url}{endpoint}", params=query)
        except httpx.HTTPError as e:
            logger.error(f"Ticket platform request failed: {e}")
            raise ExternalServiceUnavailableError(SERVICE, str(e)) from e

        if response.status_code == 401:
            logger.error("Ticket platform: invalid API key")
            raise ExternalServiceUnavailableError(SERVICE, "invalid API key")
        if response.status_code == 429:
            logger.error("Ticket platform: rate limit exceeded")
            raise ExternalServiceUnavailableError(SERVICE, "rate limit exceeded")
        if response.is_error:
            logger.error(f"Ticket platform error: {response.status_code} {response.reason_phrase}")
            raise ExternalServiceUnavailableError(
                SERVICE, f"{response.status_code} {response.reason_phrase}"
            )

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Ticket platform returned invalid JSON: {e}")
            raise MalformedExternalResponseError(SERVICE, "invalid JSON") from e
        if not isinstance(data, dict):
            raise MalformedExternalResponseError(SERVICE, "expected a JSON object")
        return data

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    async def search_events(self, **params) -> list[dict]:
        data = await self._get("/events.json", params)
        return (data.get("_embedded") or {}).get("events") or []

    async def search_venue_events(
        self, venue_id: str, start: datetime, end: datetime, size: int = 200
    ) -> list[dict]:
        """All events at one venue between start and end, soonest first."""
        return await self.search_events(
            venueId=venue_id,
            startDateTime=_format_api_datetime(start),
            endDateTime=_format_api_datetime(end),
            size=size,
            sort="date,asc",
            includeTBA="yes",
            includeTBD="yes",
        )

    async def get_event(self, event_id: str) -> dict:
        return await self._get(f"/events/{event_id}.json")

    # -------------------------------------------------------------------------
    # Venues
    # -------------------------------------------------------------------------

    async def search_venues(
        self, keyword: str | None = None, city: str = "Austin", state_code: str = "TX"
    ) -> list[dict]:
        """Venue lookup used when adding entries to venues.yaml."""
        data = await self._get(
            "/venues.json",
            {
                "keyword": keyword,
                "city": city,
                "stateCode": state_code,
                "countryCode": "US",
                "size": 50,
                "sort": "relevance,desc",
            },
        )
        return (data.get("_embedded") or {}).get("venues") or []

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None


# =============================================================================
# Response helpers
# =============================================================================


def best_image_url(event: dict) -> str | None:
    """Prefer a 16:9 image, then the largest one."""
    images = event.get("images") or []
    if not images:
        return None
    ranked = sorted(
        images,
        key=lambda img: (
            img.get("ratio") != "16_9",
            -((img.get("width") or 0) * (img.get("height") or 0)),
        ),
    )
    return ranked[0].get("url")


def primary_classification(event: dict) -> dict[str, str | None]:
    """Segment / genre / sub-genre of the primary classification."""
    classifications = event.get("classifications") or []
    primary = next((c for c in classifications if c.get("primary")), None)
    if primary is None and classifications:
        primary = classifications[0]
    primary = primary or {}
    return {
        "segment": (primary.get("segment") or {}).get("name"),
        "genre": (primary.get("genre") or {}).get("name"),
        "subgenre": (primary.get("subGenre") or {}).get("name"),
    }


def supporting_acts(event: dict) -> list[str]:
    """Every attraction after the headliner."""
    attractions = (event.get("_embedded") or {}).get("attractions") or []
    return [a.get("name") for a in attractions[1:] if a.get("name")]


def external_links(event: dict) -> dict[str, str]:
    """First URL for each known link kind."""
    links: dict[str, str] = {}
    raw = event.get("externalLinks") or {}
    for kind in _LINK_KINDS:
        entries = raw.get(kind) or []
        if entries and entries[0].get("url"):
            links[kind] = entries[0]["url"]
    return links
