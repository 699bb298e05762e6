"""Shared fixtures: temporary database, fake Spotify identities and catalog."""

from __future__ import annotations

import copy
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from liner.config import get_settings
from liner.db import close_db, init_db
from liner_core.errors import NotFound, Unauthenticated


# Bearer token → Spotify /me profile.
PROFILES = {
    "owner-token": {"id": "u1", "display_name": "Olivia", "email": "olivia@example.com"},
    "friend-token": {"id": "u2", "display_name": "Frank", "email": None},
}

CATALOG = {
    "pl_abc": {
        "id": "pl_abc",
        "name": "Road Trip",
        "owner": {"id": "u1", "display_name": "Olivia"},
        "tracks": {
            "items": [
                {"track": {"id": "trk_1", "name": "Song One"}},
                {"track": {"id": "trk_2", "name": "Song Two"}},
            ],
            "total": 2,
        },
    },
}


async def fake_profile(token: str) -> dict:
    if token not in PROFILES:
        raise Unauthenticated("Invalid or expired token")
    return dict(PROFILES[token])


async def fake_full_playlist(token: str, playlist_id: str) -> dict:
    if playlist_id not in CATALOG:
        raise NotFound("Playlist not found on Spotify")
    return copy.deepcopy(CATALOG[playlist_id])


@pytest.fixture(autouse=True)
def _use_tmp_db(monkeypatch, tmp_path):
    """Use a temp database for every test."""
    monkeypatch.setenv("DB_PATH", str(tmp_path / "test.db"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
async def db():
    """Initialised database for service-level tests."""
    conn = await init_db()
    yield conn
    await close_db()


@pytest.fixture
def client():
    """TestClient with Spotify identity and catalog calls faked out."""
    from liner.main import app

    with patch("liner.identity.get_current_profile", new=AsyncMock(side_effect=fake_profile)), \
         patch("liner.routes_playlists.get_full_playlist", new=AsyncMock(side_effect=fake_full_playlist)), \
         patch("liner.routes_shared.get_full_playlist", new=AsyncMock(side_effect=fake_full_playlist)):
        with TestClient(app) as c:
            yield c
