"""
Client for the primary fingerprint-matching service.

Covers song registration and recognition (each with a standard and a
custom-algorithm endpoint) plus the inventory and health endpoints.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar
from urllib.parse import quote

import httpx

from sonic.models import AudioAsset, MatchResult, RegistrationResult
from sonic.transport import InvalidResponseError, request_json

log = logging.getLogger(__name__)

T = TypeVar("T")


class PrimaryClient:
    """
    Async client for the primary matching service.

    Every call except :meth:`check_health` raises
    :class:`~sonic.transport.TransportError` on failure.
    """

    DEFAULT_BASE_URL = "http://localhost:8080"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize primary service client.

        Args:
            base_url: Root URL of the primary service
            timeout_s: Request timeout when no client is supplied
            client: Optional preconfigured AsyncClient (tests pass a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def _post_object(self, path: str, **kwargs: Any) -> dict[str, Any]:
        data = await request_json(self._client, "POST", self._url(path), **kwargs)
        if not isinstance(data, dict):
            raise InvalidResponseError()
        return data

    @staticmethod
    def _parse(parser: Callable[[dict[str, Any]], T], data: dict[str, Any]) -> T:
        try:
            return parser(data)
        except (ValueError, TypeError) as e:
            log.debug("Malformed primary response %r: %s", data, e)
            raise InvalidResponseError() from e

    @staticmethod
    def _upload(asset: AudioAsset) -> dict[str, Any]:
        return {"file": (asset.filename, asset.content, "application/octet-stream")}

    async def register(
        self,
        asset: AudioAsset,
        name: str,
        use_custom_algorithm: bool = False,
    ) -> RegistrationResult:
        """Upload ``asset`` and store its fingerprint under ``name``."""
        endpoint = "/fingerprint/custom" if use_custom_algorithm else "/fingerprint"
        data = await self._post_object(endpoint, files=self._upload(asset), data={"name": name})
        result = self._parse(RegistrationResult.from_response, data)
        log.info(
            "Registered %r with %d hashes (%s)",
            result.song_name,
            result.hash_count,
            result.algorithm_label,
        )
        return result

    async def recognize(
        self,
        asset: AudioAsset,
        use_custom_algorithm: bool = False,
    ) -> MatchResult:
        """
        Upload ``asset`` for matching.

        Returns the service's match with ``metadata`` unset; enrichment is
        left to :class:`~sonic.recognizer.Recognizer`.
        """
        endpoint = "/recognize/custom" if use_custom_algorithm else "/recognize"
        data = await self._post_object(endpoint, files=self._upload(asset))
        result = self._parse(MatchResult.from_response, data)
        log.debug("Primary match for %s: %r (%s)", asset.filename, result.song_name, result.confidence)
        return result

    async def list_songs(self) -> list[str]:
        """Fetch the names of all registered songs."""
        data = await request_json(self._client, "GET", self._url("/songs"))
        songs = data.get("songs") if isinstance(data, dict) else None
        if not isinstance(songs, list):
            return []
        return [name for name in songs if isinstance(name, str)]

    async def delete_song(self, name: str) -> None:
        """Delete a registered song by name."""
        # Pre-encoded once; httpx leaves existing %-escapes alone.
        path = f"/fingerprint/{quote(name, safe='')}"
        await request_json(self._client, "DELETE", self._url(path))
        log.info("Deleted %r", name)

    async def check_health(self) -> bool:
        """Liveness check. Never raises."""
        try:
            response = await self._client.get(self._url("/health"))
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            log.debug("Health check failed: %s", e)
            return False
        return response.is_success

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> PrimaryClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
