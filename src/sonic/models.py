"""
Result records shared by the primary, lookup and catalog clients.

Every third-party JSON body is mapped into one of these dataclasses at the
client boundary, so callers only ever see typed fields with resolved defaults.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from enum import StrEnum
from pathlib import Path
from typing import Any


class MatchSource(StrEnum):
    """Where a match came from."""

    LOCAL = "local"
    EXTERNAL_LOOKUP = "external-lookup"


@dataclass(frozen=True)
class AudioAsset:
    """Audio payload plus the filename sent with the multipart upload."""

    content: bytes
    filename: str

    @classmethod
    def from_path(cls, path: Path) -> AudioAsset:
        return cls(content=path.read_bytes(), filename=path.name)


@dataclass(frozen=True)
class CatalogEntry:
    """Catalog metadata attached to a confident match."""

    id: str
    name: str
    artist: str
    album: str
    album_art: str
    preview_url: str | None
    spotify_url: str

    @classmethod
    def from_track(cls, track: dict[str, Any]) -> CatalogEntry:
        """
        Map a raw catalog track object to a CatalogEntry.

        Artists are joined with ", " and fall back to "Unknown"; album name
        falls back to "Unknown"; album art is the first image URL or "";
        preview_url is passed through as-is (including null).
        """
        artist_names = [
            a.get("name") or "" for a in track.get("artists") or [] if isinstance(a, dict)
        ]
        artist = ", ".join(name for name in artist_names if name) or "Unknown"

        album = track.get("album") or {}
        images = album.get("images") or []
        album_art = images[0].get("url", "") if images else ""

        external_urls = track.get("external_urls") or {}

        return cls(
            id=track.get("id") or "",
            name=track.get("name") or "",
            artist=artist,
            album=album.get("name") or "Unknown",
            album_art=album_art or "",
            preview_url=track.get("preview_url"),
            spotify_url=external_urls.get("spotify") or "",
        )


@dataclass(frozen=True)
class LookupArtist:
    name: str


@dataclass(frozen=True)
class LookupRecording:
    id: str
    title: str
    artists: list[LookupArtist] = field(default_factory=list)

    @property
    def artist_names(self) -> str:
        return ", ".join(a.name for a in self.artists if a.name)


@dataclass(frozen=True)
class LookupCandidate:
    """One result from the acoustic-fingerprint lookup service."""

    id: str
    score: float
    recordings: list[LookupRecording] = field(default_factory=list)

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> LookupCandidate:
        recordings = []
        for rec in data.get("recordings") or []:
            artists = [
                LookupArtist(name=a.get("name", ""))
                for a in rec.get("artists") or []
                if isinstance(a, dict)
            ]
            recordings.append(
                LookupRecording(
                    id=rec.get("id", ""),
                    title=rec.get("title", ""),
                    artists=artists,
                )
            )

        return cls(
            id=data.get("id", ""),
            score=float(data.get("score", 0.0)),
            recordings=recordings,
        )


@dataclass(frozen=True)
class RegistrationResult:
    """Outcome of registering a song with the primary service."""

    song_name: str
    hash_count: int
    algorithm_label: str
    algorithm_details: str | None = None

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> RegistrationResult:
        return cls(
            song_name=data.get("song_name", ""),
            hash_count=max(int(data.get("hashes") or 0), 0),
            algorithm_label=data.get("fft_impl", ""),
            algorithm_details=data.get("fft_details"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MatchResult:
    """
    Outcome of a recognition request.

    ``confidence`` is None when the service did not report one. ``metadata``
    is only ever set through :meth:`with_metadata`.
    """

    song_name: str
    confidence: float | None = None
    message: str | None = None
    algorithm_label: str | None = None
    source: MatchSource = MatchSource.LOCAL
    metadata: CatalogEntry | None = None

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> MatchResult:
        confidence = data.get("confidence")
        return cls(
            song_name=data.get("song_name") or "",
            confidence=float(confidence) if confidence is not None else None,
            message=data.get("message"),
            algorithm_label=data.get("fft_impl"),
        )

    @classmethod
    def from_lookup_candidate(cls, candidate: LookupCandidate) -> MatchResult:
        """Build a result from the first recording of a lookup candidate."""
        if not candidate.recordings:
            return cls(
                song_name="",
                confidence=candidate.score,
                message="no recordings for candidate",
                source=MatchSource.EXTERNAL_LOOKUP,
            )

        recording = candidate.recordings[0]
        artists = recording.artist_names
        return cls(
            song_name=recording.title,
            confidence=candidate.score,
            message=f"by {artists}" if artists else None,
            source=MatchSource.EXTERNAL_LOOKUP,
        )

    def is_confident(self, threshold: float) -> bool:
        """True when there is a named match scored strictly above ``threshold``."""
        return bool(self.song_name) and self.confidence is not None and self.confidence > threshold

    def with_metadata(self, entry: CatalogEntry) -> MatchResult:
        return replace(self, metadata=entry)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["source"] = self.source.value
        if self.metadata is None:
            del data["metadata"]
        return data


## Tests


def test_match_result_from_response_no_match():
    result = MatchResult.from_response({"song_name": "", "message": "no match found"})
    assert result.song_name == ""
    assert result.confidence is None
    assert result.source is MatchSource.LOCAL
    assert not result.is_confident(0.5)


def test_match_result_threshold_is_strict():
    assert not MatchResult(song_name="X", confidence=0.5).is_confident(0.5)
    assert MatchResult(song_name="X", confidence=0.51).is_confident(0.5)
    assert not MatchResult(song_name="", confidence=0.9).is_confident(0.5)


def test_match_result_to_dict_omits_unset_metadata():
    data = MatchResult(song_name="X", confidence=0.9).to_dict()
    assert "metadata" not in data
    assert data["source"] == "local"


def test_registration_result_from_response():
    result = RegistrationResult.from_response(
        {"song_name": "Track A", "hashes": 412, "fft_impl": "gofft", "fft_details": "radix-2"}
    )
    assert result.hash_count == 412
    assert result.algorithm_label == "gofft"
    assert result.algorithm_details == "radix-2"


def test_catalog_entry_fallbacks():
    entry = CatalogEntry.from_track({"id": "1", "name": "X", "preview_url": None})
    assert entry.artist == "Unknown"
    assert entry.album == "Unknown"
    assert entry.album_art == ""
    assert entry.preview_url is None
    assert entry.spotify_url == ""


def test_lookup_candidate_tolerates_missing_fields():
    candidate = LookupCandidate.from_response({"id": "abc", "score": 0.8})
    assert candidate.recordings == []
    result = MatchResult.from_lookup_candidate(candidate)
    assert result.song_name == ""
    assert result.source is MatchSource.EXTERNAL_LOOKUP


def test_catalog_entry_null_names():
    entry = CatalogEntry.from_track(
        {"id": None, "name": None, "artists": [{"name": None}, {"name": "Paul"}]}
    )
    assert entry.id == ""
    assert entry.name == ""
    assert entry.artist == "Paul"
    assert CatalogEntry.from_track({"artists": [{"name": None}]}).artist == "Unknown"
