"""Async SQLite database layer.

Uses aiosqlite for non-blocking access.  Tables are created on first
startup via ``init_db()``.  Every write goes through ``transaction()``,
which serialises writers on the shared connection and commits (or rolls
back) the whole block as one unit.

Timestamps are stored as UTC ISO-8601 strings with microseconds, so
string order is time order.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator

import aiosqlite

from liner.config import get_settings

# Module-level connection and writer lock (set during lifespan startup).
_db: aiosqlite.Connection | None = None
_write_lock: asyncio.Lock | None = None

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_NOW = "(strftime('%Y-%m-%dT%H:%M:%f000+00:00', 'now'))"

_SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS users (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    spotify_user_id TEXT    NOT NULL UNIQUE,
    display_name    TEXT    NOT NULL DEFAULT '',
    email           TEXT,
    access_token    TEXT,
    refresh_token   TEXT,
    token_expiry    TEXT,
    created_at      TEXT    NOT NULL DEFAULT {_NOW},
    updated_at      TEXT    NOT NULL DEFAULT {_NOW}
);

-- Per-user "last viewed" watermark, keyed by Spotify playlist id.
CREATE TABLE IF NOT EXISTS playlist_views (
    user_id         INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    playlist_id     TEXT    NOT NULL,
    viewed_at       TEXT    NOT NULL,
    PRIMARY KEY (user_id, playlist_id)
);

CREATE TABLE IF NOT EXISTS playlists (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    spotify_id      TEXT    NOT NULL UNIQUE,
    name            TEXT    NOT NULL DEFAULT '',
    owner_id        INTEGER NOT NULL REFERENCES users(id),
    is_public       INTEGER NOT NULL DEFAULT 0,
    share_token     TEXT    UNIQUE,                 -- denormalized from shares
    share_settings  TEXT,                           -- JSON snapshot or NULL
    created_at      TEXT    NOT NULL DEFAULT {_NOW},
    updated_at      TEXT    NOT NULL DEFAULT {_NOW}
);

CREATE TABLE IF NOT EXISTS playlist_collaborators (
    playlist_id     INTEGER NOT NULL REFERENCES playlists(id) ON DELETE CASCADE,
    user_id         INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    permission      TEXT    NOT NULL DEFAULT 'view'
                        CHECK(permission IN ('view', 'comment', 'admin')),
    PRIMARY KEY (playlist_id, user_id)
);

CREATE TABLE IF NOT EXISTS comments (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    playlist_id     INTEGER NOT NULL REFERENCES playlists(id) ON DELETE CASCADE,
    track_id        TEXT,                           -- NULL = playlist comment
    user_id         INTEGER REFERENCES users(id),
    is_anonymous    INTEGER NOT NULL DEFAULT 0,
    anonymous_name  TEXT,
    content         TEXT    NOT NULL CHECK(length(trim(content)) > 0),
    rating          INTEGER CHECK(rating IS NULL OR rating BETWEEN 0 AND 10),
    edited          INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT    NOT NULL DEFAULT {_NOW},
    updated_at      TEXT    NOT NULL DEFAULT {_NOW},
    CHECK (
        (is_anonymous = 1 AND user_id IS NULL
            AND anonymous_name IS NOT NULL AND length(trim(anonymous_name)) > 0)
        OR (is_anonymous = 0 AND user_id IS NOT NULL AND anonymous_name IS NULL)
    )
);

CREATE INDEX IF NOT EXISTS idx_comments_playlist_track
    ON comments(playlist_id, track_id);
CREATE INDEX IF NOT EXISTS idx_comments_playlist_created
    ON comments(playlist_id, created_at DESC);

CREATE TABLE IF NOT EXISTS shares (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    playlist_id     INTEGER NOT NULL REFERENCES playlists(id) ON DELETE CASCADE,
    share_token     TEXT    NOT NULL UNIQUE,
    created_by      INTEGER NOT NULL REFERENCES users(id),
    allow_comments  INTEGER NOT NULL DEFAULT 1,
    require_auth    INTEGER NOT NULL DEFAULT 0,
    expires_at      TEXT,                           -- NULL = never expires
    is_active       INTEGER NOT NULL DEFAULT 1,
    access_count    INTEGER NOT NULL DEFAULT 0,
    last_accessed   TEXT,
    created_at      TEXT    NOT NULL DEFAULT {_NOW},
    updated_at      TEXT    NOT NULL DEFAULT {_NOW}
);

-- At most one active share per playlist.
CREATE UNIQUE INDEX IF NOT EXISTS ux_shares_active_playlist
    ON shares(playlist_id) WHERE is_active = 1;

CREATE TABLE IF NOT EXISTS share_access_log (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    share_id        INTEGER NOT NULL REFERENCES shares(id) ON DELETE CASCADE,
    ip              TEXT,
    user_agent      TEXT,
    user_id         INTEGER REFERENCES users(id),
    accessed_at     TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_access_log_share
    ON share_access_log(share_id, id);
"""


# ---------------------------------------------------------------------------
# Lifecycle helpers
# ---------------------------------------------------------------------------

async def init_db() -> aiosqlite.Connection:
    """Open (or create) the SQLite database and ensure schema exists."""
    global _db, _write_lock  # noqa: PLW0603
    settings = get_settings()
    db_path = settings.db_abs_path

    _db = await aiosqlite.connect(str(db_path))
    _db.row_factory = aiosqlite.Row  # type: ignore[assignment]
    await _db.execute("PRAGMA foreign_keys = ON")
    await _db.executescript(_SCHEMA_SQL)
    await _db.commit()
    _write_lock = asyncio.Lock()
    return _db


async def close_db() -> None:
    """Close the database connection."""
    global _db, _write_lock  # noqa: PLW0603
    if _db is not None:
        await _db.close()
        _db = None
    _write_lock = None


def get_db() -> aiosqlite.Connection:
    """Return the current database connection (call after init)."""
    if _db is None:
        raise RuntimeError("Database not initialised — call init_db() first.")
    return _db


@asynccontextmanager
async def transaction() -> AsyncIterator[aiosqlite.Connection]:
    """Run a block of writes atomically.

    Commits when the block exits normally and rolls back on any exception.
    Writers are serialised, so another request can never commit half of
    this block.
    """
    db = get_db()
    if _write_lock is None:
        raise RuntimeError("Database not initialised — call init_db() first.")
    async with _write_lock:
        try:
            yield db
        except BaseException:
            await db.rollback()
            raise
        await db.commit()


# ---------------------------------------------------------------------------
# Row helpers
# ---------------------------------------------------------------------------

def to_db_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_time(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def row_to_dict(row: Any) -> dict:
    return {key: row[key] for key in row.keys()}
