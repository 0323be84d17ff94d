"""
Spotify Web API client for catalog metadata lookups.

Used to enrich confident matches with artist, album art and preview links.
Enrichment is optional: every failure degrades to "no metadata".
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from sonic.models import CatalogEntry
from sonic.transport import TransportError, request_json

log = logging.getLogger(__name__)


class SpotifyClient:
    """
    Spotify Web API search client.

    Sends ``Authorization: Bearer <credential>`` when a credential is
    configured. Without one the search is still attempted, and the expected
    401 degrades to ``None`` like any other failure.
    """

    BASE_URL = "https://api.spotify.com/v1"

    def __init__(
        self,
        client_credential: str | None = None,
        base_url: str = BASE_URL,
        timeout_s: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize Spotify client.

        Args:
            client_credential: Bearer token for the Web API (optional)
            base_url: API root
            timeout_s: Request timeout when no client is supplied
            client: Optional preconfigured AsyncClient
        """
        self.client_credential = client_credential
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    def _headers(self) -> dict[str, str]:
        if self.client_credential:
            return {"Authorization": f"Bearer {self.client_credential}"}
        return {}

    async def enrich(self, song_title: str) -> CatalogEntry | None:
        """
        Search the catalog for ``song_title`` and map the top track.

        Returns:
            CatalogEntry for the first hit, or None when there is no hit or
            the request failed for any reason
        """
        params = {"q": song_title, "type": "track", "limit": "1"}

        try:
            data = await request_json(
                self._client,
                "GET",
                f"{self.base_url}/search",
                params=params,
                headers=self._headers(),
            )
            items = (data.get("tracks") or {}).get("items") or []
            if not items:
                log.debug("No catalog hit for %r", song_title)
                return None
            return CatalogEntry.from_track(items[0])
        except (TransportError, ValueError, TypeError, AttributeError, KeyError) as e:
            log.warning("Catalog search for %r failed: %s", song_title, e)
            return None

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> SpotifyClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


## Tests


def test_spotify_headers_without_credential():
    client = SpotifyClient()
    assert client._headers() == {}


def test_spotify_headers_with_credential():
    client = SpotifyClient(client_credential="tok")
    assert client._headers() == {"Authorization": "Bearer tok"}


def test_catalog_entry_from_track():
    track = {
        "id": "abc123",
        "name": "Yesterday",
        "artists": [{"name": "The Beatles"}, {"name": "George Martin"}],
        "album": {"name": "Help!", "images": [{"url": "https://i.scdn.co/a.jpg"}]},
        "preview_url": None,
        "external_urls": {"spotify": "https://open.spotify.com/track/abc123"},
    }
    entry = CatalogEntry.from_track(track)
    assert entry.artist == "The Beatles, George Martin"
    assert entry.album == "Help!"
    assert entry.album_art == "https://i.scdn.co/a.jpg"
    assert entry.preview_url is None
    assert entry.spotify_url == "https://open.spotify.com/track/abc123"
