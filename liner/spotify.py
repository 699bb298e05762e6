"""Spotify Web API helpers — read-only catalog and identity calls.

Functions:
- get_current_profile  → {id, display_name, email} for a bearer token
- get_my_playlists     → every playlist item of the token holder (paged)
- get_playlist         → raw playlist metadata
- get_full_playlist    → metadata with ``tracks.items`` holding all pages

Catalog calls retry 429 and 5xx responses with ``Retry-After`` / exponential
backoff.  The identity check is a single call with no retry.  Everything
else is mapped onto the error taxonomy.
"""

from __future__ import annotations

import asyncio
import logging
import random

import httpx

from liner.config import get_settings
from liner_core.errors import Forbidden, NotFound, Unauthenticated, UpstreamFailure

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

_MAX_RETRIES = 3
_TIMEOUT = httpx.Timeout(30.0, connect=10.0)
_BACKOFF_BASE = 0.5  # seconds
_BACKOFF_CAP = 8.0  # seconds
_JITTER_MAX = 0.5  # seconds


# ---------------------------------------------------------------------------
# Request helper
# ---------------------------------------------------------------------------

async def _get_json(
    client: httpx.AsyncClient,
    url: str,
    token: str,
    *,
    params: dict | None = None,
    not_found: str = "Not found on Spotify",
    attempts: int = _MAX_RETRIES,
) -> dict:
    """GET *url* and return the JSON body.

    429/5xx/network errors are retried up to *attempts* times in total;
    ``attempts=1`` makes a single call.  No sleep follows the last attempt.
    """
    headers = {"Authorization": f"Bearer {token}"}
    status = 0

    for attempt in range(attempts):
        last = attempt == attempts - 1
        try:
            resp = await client.get(url, headers=headers, params=params, timeout=_TIMEOUT)
        except httpx.RequestError as exc:
            logger.warning("Spotify request error on attempt %d for %s: %s", attempt + 1, url, exc)
            if not last:
                await _backoff_sleep(attempt)
            continue

        status = resp.status_code

        # ── Success ─────────────────────────────────────────────
        if status < 400:
            return resp.json()

        # ── Caller problems → fail immediately ──────────────────
        if status == 401:
            raise Unauthenticated("Invalid or expired token")
        if status == 403:
            raise Forbidden("Spotify denied access to this resource")
        if status == 404:
            raise NotFound(not_found)

        # ── 429 → Retry-After ───────────────────────────────────
        if status == 429:
            logger.warning("429 from Spotify on %s (attempt %d)", url, attempt + 1)
            if not last:
                retry_after = _parse_retry_after(resp.headers.get("Retry-After"))
                if retry_after is None:
                    await _backoff_sleep(attempt)
                else:
                    wait = min(retry_after + random.uniform(0, _JITTER_MAX), _BACKOFF_CAP)
                    logger.debug("Honouring Retry-After: waiting %.1fs", wait)
                    await asyncio.sleep(wait)
            continue

        # ── 5xx → exponential backoff ───────────────────────────
        if status >= 500:
            logger.warning("Spotify server error %d on %s (attempt %d)", status, url, attempt + 1)
            if not last:
                await _backoff_sleep(attempt)
            continue

        raise UpstreamFailure(f"Spotify request failed ({status})", status_code=status)

    raise UpstreamFailure(
        f"Spotify unavailable after {attempts} attempt(s)", status_code=status
    )


def _parse_retry_after(value: str | None) -> float | None:
    """Seconds from a delta-seconds ``Retry-After``; ``None`` for dates or junk."""
    if value is None:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


async def _backoff_sleep(attempt: int) -> None:
    """Exponential backoff with jitter, capped at ``_BACKOFF_CAP``."""
    delay = min(_BACKOFF_BASE * (2 ** attempt) + random.uniform(0, _JITTER_MAX), _BACKOFF_CAP)
    logger.debug("Backoff sleep %.2fs (attempt %d)", delay, attempt + 1)
    await asyncio.sleep(delay)


async def _collect_pages(client: httpx.AsyncClient, url: str, token: str, *, not_found: str) -> list[dict]:
    """Follow ``next`` links until the last page, returning all ``items``."""
    items: list[dict] = []
    next_url: str | None = url
    params: dict | None = {"limit": get_settings().catalog_page_size}

    while next_url:
        data = await _get_json(client, next_url, token, params=params, not_found=not_found)
        items.extend(data.get("items", []))
        next_url = data.get("next")  # None when last page
        params = None  # the next link already carries limit/offset

    return items


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

async def get_current_profile(token: str) -> dict:
    """Return ``{"id", "display_name", "email"}`` for the token holder."""
    base = get_settings().spotify_api_base
    async with httpx.AsyncClient() as client:
        data = await _get_json(
            client, f"{base}/me", token,
            not_found="Spotify profile not found", attempts=1,
        )

    return {
        "id": data["id"],
        "display_name": data.get("display_name") or data["id"],
        "email": data.get("email"),
    }


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

async def get_my_playlists(token: str) -> list[dict]:
    """Return all playlists owned/followed by the token holder (raw items)."""
    base = get_settings().spotify_api_base
    async with httpx.AsyncClient() as client:
        return await _collect_pages(client, f"{base}/me/playlists", token, not_found="No playlists found")


async def get_playlist(token: str, playlist_id: str) -> dict:
    """Return raw metadata for a single playlist."""
    base = get_settings().spotify_api_base
    async with httpx.AsyncClient() as client:
        return await _get_json(
            client, f"{base}/playlists/{playlist_id}", token,
            not_found="Playlist not found on Spotify",
        )


async def get_full_playlist(token: str, playlist_id: str) -> dict:
    """Playlist metadata whose ``tracks.items`` holds every page of tracks."""
    base = get_settings().spotify_api_base
    not_found = "Playlist not found on Spotify"

    async with httpx.AsyncClient() as client:
        data = await _get_json(client, f"{base}/playlists/{playlist_id}", token, not_found=not_found)
        items = await _collect_pages(
            client, f"{base}/playlists/{playlist_id}/tracks", token, not_found=not_found,
        )

    logger.debug("Fetched %d tracks for playlist %s", len(items), playlist_id)
    data["tracks"] = {**data.get("tracks", {}), "items": items, "total": len(items)}
    return data
