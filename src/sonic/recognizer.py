"""
Recognition orchestration.

Runs the primary match, then decides which optional stage to call next:
catalog enrichment for a confident match, and (only through ``identify``)
an AcoustID lookup for a weak or missing one.
"""

from __future__ import annotations

import logging
from typing import Protocol

from sonic.fingerprint import FingerprintResult
from sonic.models import AudioAsset, CatalogEntry, LookupCandidate, MatchResult

log = logging.getLogger(__name__)

ENRICHMENT_THRESHOLD = 0.5


class Matcher(Protocol):
    async def recognize(self, asset: AudioAsset, use_custom_algorithm: bool = False) -> MatchResult: ...


class Enricher(Protocol):
    async def enrich(self, song_title: str) -> CatalogEntry | None: ...


class FingerprintLookup(Protocol):
    async def lookup(self, fingerprint: str, duration_sec: float) -> list[LookupCandidate]: ...


class Recognizer:
    """
    Recognition pipeline over the primary, catalog and lookup clients.

    Only the primary stage can fail the request. The enrichment and lookup
    stages return None / [] instead of raising, so their outcome can only
    ever add to a result.
    """

    def __init__(
        self,
        primary: Matcher,
        catalog: Enricher,
        lookup: FingerprintLookup | None = None,
        enrichment_threshold: float = ENRICHMENT_THRESHOLD,
    ):
        self.primary = primary
        self.catalog = catalog
        self.lookup = lookup
        self.enrichment_threshold = enrichment_threshold

    async def _enrich(self, result: MatchResult) -> MatchResult:
        if not result.is_confident(self.enrichment_threshold):
            return result

        entry = await self.catalog.enrich(result.song_name)
        if entry is None:
            return result
        return result.with_metadata(entry)

    async def recognize_and_enrich(
        self,
        asset: AudioAsset,
        use_custom_algorithm: bool = False,
    ) -> MatchResult:
        """
        Recognize ``asset`` and attach catalog metadata to a confident match.

        Raises:
            TransportError: if the primary service call fails
        """
        result = await self.primary.recognize(asset, use_custom_algorithm)
        return await self._enrich(result)

    async def identify(
        self,
        asset: AudioAsset,
        fingerprint: FingerprintResult | None = None,
        use_custom_algorithm: bool = False,
    ) -> MatchResult:
        """
        Like :meth:`recognize_and_enrich`, falling back to AcoustID.

        The fallback runs only when the primary match is not confident and
        both a lookup client and a fingerprint are available. The top
        candidate with at least one recording replaces the primary result.
        """
        result = await self.recognize_and_enrich(asset, use_custom_algorithm)
        if result.is_confident(self.enrichment_threshold):
            return result
        if self.lookup is None or fingerprint is None:
            return result

        candidates = await self.lookup.lookup(fingerprint.fingerprint, fingerprint.duration_sec)
        best = next((c for c in candidates if c.recordings), None)
        if best is None:
            log.info("No AcoustID candidate for %s", asset.filename)
            return result

        log.info("Using AcoustID candidate %s (score %.2f)", best.id, best.score)
        return await self._enrich(MatchResult.from_lookup_candidate(best))
