"""User records and per-playlist "last viewed" watermarks."""

from __future__ import annotations

import logging
from datetime import datetime

from liner.db import from_db_time, get_db, row_to_dict, to_db_time, transaction
from liner_core.models import User
from liner_core.sharing import utcnow

logger = logging.getLogger(__name__)


def user_from_row(row) -> User:
    data = row_to_dict(row)
    return User(**data)


async def upsert_user(profile: dict, access_token: str) -> User:
    """Create the user on first sight, else overwrite the stored access token.

    *profile* is the identity provider's ``{"id", "display_name", "email"}``.
    """
    now = to_db_time(utcnow())
    async with transaction() as db:
        rows = await db.execute_fetchall(
            """
            INSERT INTO users (spotify_user_id, display_name, email, access_token,
                               created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(spotify_user_id)
            DO UPDATE SET access_token = excluded.access_token,
                          updated_at   = excluded.updated_at
            RETURNING *
            """,
            (
                profile["id"],
                profile.get("display_name") or profile["id"],
                profile.get("email"),
                access_token,
                now,
                now,
            ),
        )
    return user_from_row(list(rows)[0])


async def get_user(user_id: int) -> User | None:
    db = get_db()
    cursor = await db.execute("SELECT * FROM users WHERE id = ?", (user_id,))
    row = await cursor.fetchone()
    return user_from_row(row) if row else None


# ---------------------------------------------------------------------------
# Viewed-state watermarks
# ---------------------------------------------------------------------------

async def mark_viewed(user_id: int, spotify_playlist_id: str) -> datetime:
    """Advance the watermark for (*user_id*, playlist) to now; never moves back."""
    now = to_db_time(utcnow())
    async with transaction() as db:
        rows = await db.execute_fetchall(
            """
            INSERT INTO playlist_views (user_id, playlist_id, viewed_at)
            VALUES (?, ?, ?)
            ON CONFLICT(user_id, playlist_id)
            DO UPDATE SET viewed_at = max(viewed_at, excluded.viewed_at)
            RETURNING viewed_at
            """,
            (user_id, spotify_playlist_id, now),
        )
    return from_db_time(list(rows)[0][0])  # type: ignore[return-value]


async def get_watermarks(user_id: int) -> dict[str, datetime]:
    """Return ``{spotify_playlist_id: last_viewed}`` for one user."""
    db = get_db()
    cursor = await db.execute(
        "SELECT playlist_id, viewed_at FROM playlist_views WHERE user_id = ?",
        (user_id,),
    )
    return {row[0]: from_db_time(row[1]) for row in await cursor.fetchall()}  # type: ignore[misc]
