"""Tests for the recognition pipeline."""

from __future__ import annotations

import httpx
import pytest
from stubs import PRIMARY_URL, SPOTIFY_URL, json_response, mock_client, raising

from sonic.fingerprint import FingerprintResult
from sonic.models import (
    CatalogEntry,
    LookupArtist,
    LookupCandidate,
    LookupRecording,
    MatchResult,
    MatchSource,
)
from sonic.primary import PrimaryClient
from sonic.recognizer import Recognizer
from sonic.spotify import SpotifyClient
from sonic.transport import TransportError

ENTRY = CatalogEntry(
    id="1",
    name="X",
    artist="Y",
    album="Z",
    album_art="",
    preview_url=None,
    spotify_url="",
)


class FakePrimary:
    def __init__(self, result: MatchResult | None = None, error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls: list[bool] = []

    async def recognize(self, asset, use_custom_algorithm=False):
        self.calls.append(use_custom_algorithm)
        if self.error:
            raise self.error
        return self.result


class FakeCatalog:
    def __init__(self, entry: CatalogEntry | None = ENTRY):
        self.entry = entry
        self.titles: list[str] = []

    async def enrich(self, song_title):
        self.titles.append(song_title)
        return self.entry


class FakeLookup:
    def __init__(self, candidates: list[LookupCandidate]):
        self.candidates = candidates
        self.calls: list[tuple[str, float]] = []

    async def lookup(self, fingerprint, duration_sec):
        self.calls.append((fingerprint, duration_sec))
        return self.candidates


FINGERPRINT = FingerprintResult(fingerprint="AQADtEmUaEkS", duration_sec=181)


class TestRecognizeAndEnrich:
    @pytest.mark.asyncio
    async def test_confident_match_is_enriched(self, asset):
        primary = FakePrimary(MatchResult(song_name="X", confidence=0.9))
        catalog = FakeCatalog()

        result = await Recognizer(primary, catalog).recognize_and_enrich(asset)

        assert result == MatchResult(song_name="X", confidence=0.9, metadata=ENTRY)
        assert catalog.titles == ["X"]

    @pytest.mark.asyncio
    async def test_no_match_skips_enrichment(self, asset):
        primary = FakePrimary(MatchResult(song_name="", confidence=None))
        catalog = FakeCatalog()

        result = await Recognizer(primary, catalog).recognize_and_enrich(asset)

        assert result.metadata is None
        assert "metadata" not in result.to_dict()
        assert len(catalog.titles) == 0

    @pytest.mark.parametrize("confidence", [None, 0.0, 0.25, 0.49, 0.5])
    @pytest.mark.asyncio
    async def test_low_confidence_never_enriches(self, asset, confidence):
        primary = FakePrimary(MatchResult(song_name="X", confidence=confidence))
        catalog = FakeCatalog()

        result = await Recognizer(primary, catalog).recognize_and_enrich(asset)

        assert result.metadata is None
        assert catalog.titles == []

    @pytest.mark.parametrize("confidence", [0.500001, 0.51, 0.75, 1.0])
    @pytest.mark.asyncio
    async def test_high_confidence_enriches_once(self, asset, confidence):
        primary = FakePrimary(MatchResult(song_name="X", confidence=confidence))
        catalog = FakeCatalog()

        await Recognizer(primary, catalog).recognize_and_enrich(asset)

        assert catalog.titles == ["X"]

    @pytest.mark.asyncio
    async def test_enrichment_miss_leaves_metadata_unset(self, asset):
        match = MatchResult(song_name="X", confidence=0.9)
        catalog = FakeCatalog(entry=None)

        result = await Recognizer(FakePrimary(match), catalog).recognize_and_enrich(asset)

        assert result == match
        assert catalog.titles == ["X"]

    @pytest.mark.asyncio
    async def test_custom_algorithm_flag_is_forwarded(self, asset):
        primary = FakePrimary(MatchResult(song_name=""))

        await Recognizer(primary, FakeCatalog()).recognize_and_enrich(asset, True)

        assert primary.calls == [True]

    @pytest.mark.asyncio
    async def test_primary_failure_propagates(self, asset):
        primary = FakePrimary(error=TransportError("file is required", 400))
        catalog = FakeCatalog()

        with pytest.raises(TransportError, match="file is required"):
            await Recognizer(primary, catalog).recognize_and_enrich(asset)
        assert catalog.titles == []

    @pytest.mark.asyncio
    async def test_custom_threshold(self, asset):
        primary = FakePrimary(MatchResult(song_name="X", confidence=0.6))
        catalog = FakeCatalog()

        result = await Recognizer(primary, catalog, enrichment_threshold=0.8).recognize_and_enrich(
            asset
        )

        assert result.metadata is None
        assert catalog.titles == []


class TestRecognizeAndEnrichOverHttp:
    """The pipeline wired to real clients over stubbed transports."""

    @pytest.mark.asyncio
    async def test_catalog_transport_error_keeps_match(self, primary_service, asset):
        primary_service.next_match = {"song_name": "Track A", "confidence": 0.9}
        primary = PrimaryClient(PRIMARY_URL, client=mock_client(primary_service))
        catalog = SpotifyClient(
            "token",
            base_url=SPOTIFY_URL,
            client=mock_client(raising(httpx.ConnectError("connection refused"))),
        )

        result = await Recognizer(primary, catalog).recognize_and_enrich(asset)

        assert result.song_name == "Track A"
        assert result.confidence == 0.9
        assert result.metadata is None

    @pytest.mark.asyncio
    async def test_catalog_hit_attached(self, primary_service, asset, spotify_track):
        primary_service.next_match = {"song_name": "Yesterday", "confidence": 0.77}
        primary = PrimaryClient(PRIMARY_URL, client=mock_client(primary_service))
        catalog = SpotifyClient(
            "token",
            base_url=SPOTIFY_URL,
            client=mock_client(json_response({"tracks": {"items": [spotify_track]}})),
        )

        result = await Recognizer(primary, catalog).recognize_and_enrich(asset)

        assert result.metadata is not None
        assert result.metadata.artist == "The Beatles"
        assert result.to_dict()["metadata"]["album"] == "Help!"

    @pytest.mark.asyncio
    async def test_catalog_not_called_for_no_match(self, primary_service, asset):
        calls: list[httpx.Request] = []

        def catalog_handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={})

        primary = PrimaryClient(PRIMARY_URL, client=mock_client(primary_service))
        catalog = SpotifyClient(base_url=SPOTIFY_URL, client=mock_client(catalog_handler))

        result = await Recognizer(primary, catalog).recognize_and_enrich(asset)

        assert result.song_name == ""
        assert result.confidence == 0.0
        assert calls == []


class TestIdentify:
    CANDIDATE = LookupCandidate(
        id="9ff43b6a",
        score=0.93,
        recordings=[
            LookupRecording(id="cd2e7c47", title="X", artists=[LookupArtist(name="Y")]),
        ],
    )

    @pytest.mark.asyncio
    async def test_confident_primary_skips_lookup(self, asset):
        lookup = FakeLookup([self.CANDIDATE])
        primary = FakePrimary(MatchResult(song_name="X", confidence=0.9))

        result = await Recognizer(primary, FakeCatalog(), lookup).identify(asset, FINGERPRINT)

        assert result.source is MatchSource.LOCAL
        assert lookup.calls == []

    @pytest.mark.asyncio
    async def test_weak_primary_falls_back_to_lookup(self, asset):
        lookup = FakeLookup([LookupCandidate(id="empty", score=0.99), self.CANDIDATE])
        primary = FakePrimary(MatchResult(song_name="Other", confidence=0.2))
        catalog = FakeCatalog()

        result = await Recognizer(primary, catalog, lookup).identify(asset, FINGERPRINT)

        assert lookup.calls == [("AQADtEmUaEkS", 181)]
        assert result.source is MatchSource.EXTERNAL_LOOKUP
        assert result.song_name == "X"
        assert result.confidence == 0.93
        assert result.message == "by Y"
        assert result.metadata == ENTRY
        assert catalog.titles == ["X"]

    @pytest.mark.asyncio
    async def test_empty_lookup_returns_primary(self, asset):
        weak = MatchResult(song_name="", confidence=0.0, message="no match found")
        result = await Recognizer(FakePrimary(weak), FakeCatalog(), FakeLookup([])).identify(
            asset, FINGERPRINT
        )

        assert result == weak

    @pytest.mark.asyncio
    async def test_without_fingerprint_returns_primary(self, asset):
        weak = MatchResult(song_name="", confidence=0.0)
        lookup = FakeLookup([self.CANDIDATE])

        result = await Recognizer(FakePrimary(weak), FakeCatalog(), lookup).identify(asset)

        assert result == weak
        assert lookup.calls == []

    @pytest.mark.asyncio
    async def test_recognize_and_enrich_never_uses_lookup(self, asset):
        lookup = FakeLookup([self.CANDIDATE])
        weak = MatchResult(song_name="", confidence=0.0)

        await Recognizer(FakePrimary(weak), FakeCatalog(), lookup).recognize_and_enrich(asset)

        assert lookup.calls == []
