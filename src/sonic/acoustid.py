"""
AcoustID API client for fingerprint-based music identification.

Lookups are best-effort: every failure degrades to an empty candidate list
so a broken or unreachable AcoustID never blocks the caller.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from sonic.models import LookupCandidate
from sonic.safe_logging import redact_value
from sonic.transport import TransportError, request_json

log = logging.getLogger(__name__)


class AcoustIDClient:
    """
    AcoustID API client for fingerprint lookups.

    ``lookup`` never raises; see the module docstring.
    """

    BASE_URL = "https://api.acoustid.org/v2"
    META = "recordings+releasegroups+compress"

    def __init__(
        self,
        api_key: str,
        base_url: str = BASE_URL,
        timeout_s: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize AcoustID client.

        Args:
            api_key: AcoustID application API key
            base_url: API root (override for tests or mirrors)
            timeout_s: Request timeout when no client is supplied
            client: Optional preconfigured AsyncClient
        """
        if not api_key:
            raise ValueError("AcoustID API key required (set ACOUSTID_API_KEY env var)")

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    async def lookup(self, fingerprint: str, duration_sec: float) -> list[LookupCandidate]:
        """
        Look up recordings by audio fingerprint and duration.

        Args:
            fingerprint: Chromaprint fingerprint string
            duration_sec: Track duration in seconds

        Returns:
            Candidates in the order AcoustID returned them, or [] on any failure
        """
        params = {
            "client": self.api_key,
            "fingerprint": fingerprint,
            "duration": str(int(duration_sec)),
            "meta": self.META,
        }

        try:
            data = await request_json(self._client, "GET", f"{self.base_url}/lookup", params=params)
            return self._parse_response(data)
        except (TransportError, ValueError, TypeError, AttributeError) as e:
            log.warning("AcoustID lookup failed (client=%s): %s", redact_value(self.api_key), e)
            return []

    def _parse_response(self, data: Any) -> list[LookupCandidate]:
        """
        Parse an AcoustID lookup body.

        A body whose status is not "ok", or that has no results list,
        yields no candidates.
        """
        if not isinstance(data, dict) or data.get("status") != "ok":
            error = data.get("error") if isinstance(data, dict) else None
            log.info("AcoustID returned non-ok status: %s", error)
            return []

        results = data.get("results")
        if not isinstance(results, list):
            return []

        return [LookupCandidate.from_response(r) for r in results if isinstance(r, dict)]

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> AcoustIDClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


## Tests


def test_acoustid_requires_api_key():
    import pytest

    with pytest.raises(ValueError):
        AcoustIDClient(api_key="")


def test_acoustid_parse_response():
    """Test parsing AcoustID API response."""
    client = AcoustIDClient(api_key="test_key")

    response_data = {
        "status": "ok",
        "results": [
            {
                "id": "r1",
                "score": 0.95,
                "recordings": [
                    {
                        "id": "rec1",
                        "title": "Yesterday",
                        "artists": [{"name": "The Beatles"}],
                    }
                ],
            },
            {"id": "r2", "score": 0.4},
        ],
    }

    results = client._parse_response(response_data)

    assert [r.id for r in results] == ["r1", "r2"]
    assert results[0].recordings[0].title == "Yesterday"
    assert results[0].recordings[0].artists[0].name == "The Beatles"
    assert results[1].recordings == []


def test_acoustid_parse_error_status():
    client = AcoustIDClient(api_key="test_key")
    data = {"status": "error", "error": {"code": 4, "message": "invalid API key"}}
    assert client._parse_response(data) == []
    assert client._parse_response({"status": "ok"}) == []
