"""
Spotify artist search (client-credentials flow).

The access token lives in a TokenCache owned by the client instance and is
refreshed lazily TOKEN_REFRESH_MARGIN seconds before it expires. HTTP runs
on requests in a worker thread, one lookup at a time.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable

import requests

from eventcatalog.configs.settings import get_settings

logger = logging.getLogger(__name__)

SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
SPOTIFY_API_URL = "https://api.spotify.com/v1"
TOKEN_REFRESH_MARGIN = 60.0
MIN_POPULARITY = 10


@dataclass
class SpotifyArtist:
    id: str
    name: str
    url: str | None
    genres: list[str] = field(default_factory=list)
    popularity: int = 0
    image_url: str | None = None


@dataclass
class TokenCache:
    """Bearer token plus its absolute expiry (epoch seconds)."""

    access_token: str | None = None
    expires_at: float = 0.0

    def is_valid(self, now: float) -> bool:
        return bool(self.access_token) and now < self.expires_at - TOKEN_REFRESH_MARGIN

    def store(self, access_token: str, expires_in: float, now: float) -> None:
        self.access_token = access_token
        self.expires_at = now + expires_in

    def clear(self) -> None:
        self.access_token = None
        self.expires_at = 0.0


class SpotifyClient:
    """Artist lookup with an instance-owned token cache."""

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        session: requests.Session | None = None,
        clock: Callable[[], float] = time.time,
        timeout: float = 5.0,
    ):
        settings = get_settings()
        self.client_id = client_id or settings.SPOTIFY_CLIENT_ID
        self.client_secret = client_secret or (
            settings.SPOTIFY_CLIENT_SECRET.get_secret_value()
            if settings.SPOTIFY_CLIENT_SECRET
            else None
        )
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.clock = clock
        self.timeout = timeout
        self.token_cache = TokenCache()

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _get_access_token(self) -> str | None:
        now = self.clock()
        if self.token_cache.is_valid(now):
            return self.token_cache.access_token

        try:
            resp = self.session.post(
                SPOTIFY_TOKEN_URL,
                data={"grant_type": "client_credentials"},
                auth=(self.client_id, self.client_secret),
                timeout=self.timeout,
            )
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Spotify token request failed: {e}")
            self.token_cache.clear()
            return None

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            logger.warning("Spotify token response has no access_token")
            self.token_cache.clear()
            return None

        try:
            expires_in = float(payload.get("expires_in") or 3600)
        except (TypeError, ValueError):
            expires_in = 3600.0
        self.token_cache.store(access_token, expires_in, now)
        return self.token_cache.access_token

    def _search_artist_sync(self, query: str) -> SpotifyArtist | None:
        """Synchronous lookup; run via asyncio.to_thread."""
        token = self._get_access_token()
        if not token:
            return None

        try:
            resp = self.session.get(
                f"{SPOTIFY_API_URL}/search",
                params={"q": query, "type": "artist", "limit": 1},
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Spotify search failed for '{query}': {e}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Spotify search for '{query}' returned {type(data).__name__}")
            return None
        items = (data.get("artists") or {}).get("items") or []
        if not items:
            return None

        artist = items[0]
        if not isinstance(artist, dict) or not artist.get("id"):
            logger.warning(f"Spotify search for '{query}' returned an artist without an id")
            return None
        popularity = int(artist.get("popularity") or 0)
        if popularity < MIN_POPULARITY:
            logger.debug(f"Spotify result '{artist.get('name')}' below popularity floor")
            return None

        images = artist.get("images") or []
        return SpotifyArtist(
            id=artist["id"],
            name=artist.get("name") or "",
            url=(artist.get("external_urls") or {}).get("spotify"),
            genres=list(artist.get("genres") or []),
            popularity=popularity,
            image_url=images[0].get("url") if images else None,
        )

    async def search_artist(self, query: str) -> SpotifyArtist | None:
        if not self.is_configured:
            logger.debug("Spotify credentials not set, skipping Spotify")
            return None
        return await asyncio.to_thread(self._search_artist_sync, query)

    def close(self) -> None:
        """Close the HTTP session when this client created it."""
        if self._owns_session:
            self.session.close()


def is_confident_match(query: str, artist_name: str, popularity: int) -> bool:
    """
    Accept a catalog hit only when the names actually resemble each other.

    exact name: popularity >= 15; containment: >= 20;
    shared significant word: >= 30; anything else is rejected.
    """
    q = query.lower().strip()
    name = artist_name.lower().strip()

    if name == q:
        return popularity >= 15
    if name in q or q in name:
        return popularity >= 20

    query_words = [w for w in q.split() if len(w) > 2]
    name_words = [w for w in name.split() if len(w) > 2]
    word_match = any(
        nw == qw or qw in nw or nw in qw for qw in query_words for nw in name_words
    )
    return word_match and popularity >= 30
