"""Local playlist records — annotation anchors for Spotify playlists.

Records are created lazily by whichever flow first touches a playlist
(detail fetch, owner comment, explicit registration).  The record also
carries a denormalized snapshot of the active share (``share_token``,
``is_public``, ``share_settings``) that ``liner.shares`` re-syncs on every
share mutation; the ``shares`` table stays the source of truth.
"""

from __future__ import annotations

import json
import logging

import aiosqlite

from liner.db import from_db_time, get_db, row_to_dict, to_db_time, transaction
from liner.users import get_watermarks
from liner_core.comments import count_new_comments, validate_external_id
from liner_core.errors import NotFound
from liner_core.models import Collaborator, CommentBadge, Playlist, Share, ShareSettings
from liner_core.sharing import utcnow

logger = logging.getLogger(__name__)

NOT_OWNED = "Playlist not found or access denied"


def playlist_from_row(row, collaborators: list[Collaborator] | None = None) -> Playlist:
    data = row_to_dict(row)
    snapshot = data.pop("share_settings")
    return Playlist(
        **data,
        share_settings=ShareSettings.model_validate_json(snapshot) if snapshot else None,
        collaborators=collaborators or [],
    )


async def _collaborators(playlist_id: int) -> list[Collaborator]:
    db = get_db()
    cursor = await db.execute(
        "SELECT user_id, permission FROM playlist_collaborators WHERE playlist_id = ? ORDER BY user_id",
        (playlist_id,),
    )
    return [Collaborator(user_id=r[0], permission=r[1]) for r in await cursor.fetchall()]


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def get_playlist_record(spotify_id: str) -> Playlist | None:
    db = get_db()
    cursor = await db.execute("SELECT * FROM playlists WHERE spotify_id = ?", (spotify_id,))
    row = await cursor.fetchone()
    if not row:
        return None
    return playlist_from_row(row, await _collaborators(row["id"]))


async def get_playlist_by_id(playlist_id: int) -> Playlist | None:
    db = get_db()
    cursor = await db.execute("SELECT * FROM playlists WHERE id = ?", (playlist_id,))
    row = await cursor.fetchone()
    if not row:
        return None
    return playlist_from_row(row, await _collaborators(row["id"]))


async def get_owned_playlist(owner_id: int, spotify_id: str) -> Playlist:
    """Return the record only if *owner_id* owns it.

    A missing record and someone else's record raise the same ``NotFound``
    so callers cannot probe for existence.
    """
    validate_external_id(spotify_id, "playlist id")
    db = get_db()
    cursor = await db.execute(
        "SELECT * FROM playlists WHERE spotify_id = ? AND owner_id = ?",
        (spotify_id, owner_id),
    )
    row = await cursor.fetchone()
    if not row:
        raise NotFound(NOT_OWNED)
    return playlist_from_row(row, await _collaborators(row["id"]))


async def get_or_create_playlist(spotify_id: str, owner_id: int, name: str = "") -> Playlist:
    """Return the record for *spotify_id*, creating it owned by *owner_id*.

    An existing record keeps its owner; a non-empty *name* refreshes the
    cached display name.
    """
    validate_external_id(spotify_id, "playlist id")
    now = to_db_time(utcnow())
    async with transaction() as db:
        await db.execute(
            """
            INSERT INTO playlists (spotify_id, name, owner_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(spotify_id)
            DO UPDATE SET name = excluded.name, updated_at = excluded.updated_at
                WHERE excluded.name != '' AND excluded.name != playlists.name
            """,
            (spotify_id, name or "", owner_id, now, now),
        )

    playlist = await get_playlist_record(spotify_id)
    if playlist is None:  # pragma: no cover - the insert above guarantees a row
        raise NotFound("Playlist not found")
    return playlist


# ---------------------------------------------------------------------------
# Share snapshot
# ---------------------------------------------------------------------------

async def sync_share_snapshot(db: aiosqlite.Connection, playlist_id: int, share: Share | None) -> None:
    """Mirror *share* onto the playlist row; ``None`` clears the snapshot.

    Must run inside the caller's ``transaction()``.
    """
    now = to_db_time(utcnow())
    if share is None:
        await db.execute(
            """UPDATE playlists
               SET share_token = NULL, is_public = 0, share_settings = NULL, updated_at = ?
               WHERE id = ?""",
            (now, playlist_id),
        )
        return

    await db.execute(
        """UPDATE playlists
           SET share_token = ?, is_public = 1, share_settings = ?, updated_at = ?
           WHERE id = ?""",
        (
            share.share_token,
            share.settings_snapshot().model_dump_json(by_alias=True),
            now,
            playlist_id,
        ),
    )


# ---------------------------------------------------------------------------
# Notification badges
# ---------------------------------------------------------------------------

async def playlist_badges(user_id: int, spotify_ids: list[str]) -> dict[str, CommentBadge]:
    """Compute ``{spotify_id: CommentBadge}`` for *user_id* over the listed playlists.

    Playlists without a local record or without comments get a zero badge.
    """
    badges = {sid: CommentBadge() for sid in spotify_ids}
    if not spotify_ids:
        return badges

    watermarks = await get_watermarks(user_id)
    db = get_db()
    cursor = await db.execute(
        """
        SELECT p.spotify_id, c.created_at
        FROM comments c JOIN playlists p ON p.id = c.playlist_id
        WHERE p.spotify_id IN (SELECT value FROM json_each(?))
        """,
        (json.dumps(spotify_ids),),
    )
    created: dict[str, list] = {}
    for spotify_id, created_at in await cursor.fetchall():
        created.setdefault(spotify_id, []).append(from_db_time(created_at))

    for spotify_id, stamps in created.items():
        badges[spotify_id] = count_new_comments(stamps, watermarks.get(spotify_id))

    return badges
