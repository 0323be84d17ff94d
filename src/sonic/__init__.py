__all__ = (
    "Config",
    "PrimaryClient",
    "AcoustIDClient",
    "SpotifyClient",
    "Recognizer",
    # Models
    "AudioAsset",
    "CatalogEntry",
    "LookupArtist",
    "LookupCandidate",
    "LookupRecording",
    "MatchResult",
    "MatchSource",
    "RegistrationResult",
    # Errors
    "TransportError",
    "InvalidResponseError",
    "FingerprintError",
    "FingerprintResult",
    "calculate_fingerprint",
)

from sonic.acoustid import AcoustIDClient
from sonic.config import Config
from sonic.fingerprint import FingerprintError, FingerprintResult, calculate_fingerprint
from sonic.models import (
    AudioAsset,
    CatalogEntry,
    LookupArtist,
    LookupCandidate,
    LookupRecording,
    MatchResult,
    MatchSource,
    RegistrationResult,
)
from sonic.primary import PrimaryClient
from sonic.recognizer import Recognizer
from sonic.spotify import SpotifyClient
from sonic.transport import InvalidResponseError, TransportError
