"""Pytest configuration and shared fixtures for sonic tests."""

from __future__ import annotations

import pytest
from stubs import PRIMARY_URL, StubPrimaryService, mock_client

from sonic.models import AudioAsset
from sonic.primary import PrimaryClient


@pytest.fixture
def primary_service() -> StubPrimaryService:
    return StubPrimaryService()


@pytest.fixture
def primary_client(primary_service) -> PrimaryClient:
    return PrimaryClient(PRIMARY_URL, client=mock_client(primary_service))


@pytest.fixture
def asset() -> AudioAsset:
    return AudioAsset(content=b"RIFF\x00\x00\x00\x00WAVEfmt ", filename="clip.wav")


@pytest.fixture
def spotify_track() -> dict[str, object]:
    return {
        "id": "3BQHpFgAp4l80e1XslIjNI",
        "name": "Yesterday",
        "artists": [{"name": "The Beatles"}],
        "album": {
            "name": "Help!",
            "images": [{"url": "https://i.scdn.co/image/help.jpg"}],
        },
        "preview_url": "https://p.scdn.co/mp3-preview/yesterday",
        "external_urls": {"spotify": "https://open.spotify.com/track/3BQHpFgAp4l80e1XslIjNI"},
    }
