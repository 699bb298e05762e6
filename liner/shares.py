"""Share registry, access gate and access ledger.

Share lifecycle per playlist::

    unshared ──upsert──▶ active ──(time passes)──▶ expired
        ▲                  │  ▲                        │
        └──────revoke──────┘  └─────────upsert─────────┘

- ``upsert_share`` issues a token or updates the single active share in
  place (one atomic ``INSERT … ON CONFLICT`` against the partial unique
  index ``ux_shares_active_playlist``).
- ``revoke_share`` deactivates every share of the playlist.
- ``open_share`` is the gate run on every public request; views are
  recorded in the ledger, comment posts are not.

Every mutation re-syncs the playlist's denormalized snapshot inside the
same transaction.  Validity is always judged from the ``shares`` row.
"""

from __future__ import annotations

import logging
from typing import Any

import aiosqlite

from liner.config import get_settings
from liner.db import get_db, row_to_dict, to_db_time, transaction
from liner.playlists import get_owned_playlist, get_playlist_by_id, sync_share_snapshot
from liner_core.errors import Conflict, NotFound, ValidationError
from liner_core.models import AccessEntry, Playlist, Share, SharePermissions, User
from liner_core.sharing import (
    SHARE_UNAVAILABLE,
    AccessLog,
    ShareAction,
    check_access,
    expiry_from_days,
    generate_share_token,
    utcnow,
)

logger = logging.getLogger(__name__)

NO_ACTIVE_SHARE = "No active share link found"

_UPDATABLE = ("allow_comments", "require_auth", "expires_in")


def share_from_row(row) -> Share:
    data = row_to_dict(row)
    return Share(
        id=data["id"],
        playlist_id=data["playlist_id"],
        share_token=data["share_token"],
        created_by=data["created_by"],
        permissions=SharePermissions(
            allow_comments=bool(data["allow_comments"]),
            require_auth=bool(data["require_auth"]),
        ),
        expires_at=data["expires_at"],
        is_active=bool(data["is_active"]),
        access_count=data["access_count"],
        last_accessed=data["last_accessed"],
        created_at=data["created_at"],
        updated_at=data["updated_at"],
    )


async def _active_share(db: aiosqlite.Connection, playlist_id: int) -> Share | None:
    cursor = await db.execute(
        "SELECT * FROM shares WHERE playlist_id = ? AND is_active = 1",
        (playlist_id,),
    )
    row = await cursor.fetchone()
    return share_from_row(row) if row else None


# ---------------------------------------------------------------------------
# Registry (owner only)
# ---------------------------------------------------------------------------

async def upsert_share(
    user: User,
    spotify_id: str,
    *,
    allow_comments: bool = True,
    require_auth: bool = False,
    expires_in: int | None = None,
) -> Share:
    """Create the playlist's share, or update the active one in place.

    Calling this repeatedly is idempotent with respect to the number of
    active shares: the token is kept and only permissions and expiry are
    replaced.  Expiry is always recomputed from now.
    """
    playlist = await get_owned_playlist(user.id, spotify_id)
    expires_at = expiry_from_days(expires_in)
    token = generate_share_token()
    now = to_db_time(utcnow())

    try:
        async with transaction() as db:
            rows = await db.execute_fetchall(
                """
                INSERT INTO shares
                    (playlist_id, share_token, created_by, allow_comments, require_auth,
                     expires_at, is_active, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, 1, ?, ?)
                ON CONFLICT(playlist_id) WHERE is_active = 1
                DO UPDATE SET allow_comments = excluded.allow_comments,
                              require_auth   = excluded.require_auth,
                              expires_at     = excluded.expires_at,
                              updated_at     = excluded.updated_at
                RETURNING *
                """,
                (
                    playlist.id,
                    token,
                    user.id,
                    int(allow_comments),
                    int(require_auth),
                    to_db_time(expires_at),
                    now,
                    now,
                ),
            )
            share = share_from_row(list(rows)[0])
            await sync_share_snapshot(db, playlist.id, share)
    except aiosqlite.IntegrityError as exc:
        logger.error("Share token collision while sharing playlist %s", spotify_id)
        raise Conflict("Could not issue a unique share token") from exc

    if share.share_token == token:
        logger.info("Created share %d for playlist %s", share.id, spotify_id)
    else:
        logger.info("Updated share %d for playlist %s in place", share.id, spotify_id)
    return share


async def get_share(user: User, spotify_id: str) -> Share:
    """Return the playlist's active share (possibly expired)."""
    playlist = await get_owned_playlist(user.id, spotify_id)
    share = await _active_share(get_db(), playlist.id)
    if share is None:
        raise NotFound(NO_ACTIVE_SHARE)
    return share


async def update_share(user: User, spotify_id: str, changes: dict[str, Any]) -> Share:
    """Partially update the active share.

    *changes* may hold ``allow_comments``, ``require_auth`` and
    ``expires_in``.  Keys that are absent stay untouched; ``expires_in=None``
    clears the expiry, a number re-derives it from now.
    """
    unknown = set(changes) - set(_UPDATABLE)
    if unknown:
        raise ValidationError(f"Unknown share fields: {', '.join(sorted(unknown))}")

    playlist = await get_owned_playlist(user.id, spotify_id)

    assignments: list[str] = []
    params: list[Any] = []
    for field in ("allow_comments", "require_auth"):
        if changes.get(field) is not None:
            assignments.append(f"{field} = ?")
            params.append(int(bool(changes[field])))
    if "expires_in" in changes:
        assignments.append("expires_at = ?")
        params.append(to_db_time(expiry_from_days(changes["expires_in"])))

    async with transaction() as db:
        current = await _active_share(db, playlist.id)
        if current is None:
            raise NotFound(NO_ACTIVE_SHARE)

        rows = await db.execute_fetchall(
            f"UPDATE shares SET {', '.join(assignments + ['updated_at = ?'])} WHERE id = ? RETURNING *",
            (*params, to_db_time(utcnow()), current.id),
        )
        share = share_from_row(list(rows)[0])
        await sync_share_snapshot(db, playlist.id, share)

    logger.info("Updated permissions of share %d (%s)", share.id, ", ".join(sorted(changes)) or "no fields")
    return share


async def revoke_share(user: User, spotify_id: str) -> int:
    """Deactivate every share of the playlist; returns how many rows changed."""
    playlist = await get_owned_playlist(user.id, spotify_id)
    async with transaction() as db:
        cursor = await db.execute(
            "UPDATE shares SET is_active = 0, updated_at = ? WHERE playlist_id = ?",
            (to_db_time(utcnow()), playlist.id),
        )
        revoked = cursor.rowcount
        await sync_share_snapshot(db, playlist.id, None)

    logger.info("Revoked %d share(s) for playlist %s", revoked, spotify_id)
    return revoked


# ---------------------------------------------------------------------------
# Access gate (public)
# ---------------------------------------------------------------------------

async def get_share_by_token(share_token: str) -> Share | None:
    db = get_db()
    cursor = await db.execute("SELECT * FROM shares WHERE share_token = ?", (share_token,))
    row = await cursor.fetchone()
    return share_from_row(row) if row else None


async def open_share(
    share_token: str,
    user: User | None,
    action: ShareAction = ShareAction.VIEW,
    *,
    log_access: bool = False,
    ip: str | None = None,
    user_agent: str | None = None,
) -> tuple[Share, Playlist]:
    """Run the access gate for a public request and return the share + playlist.

    With ``log_access`` the access is recorded in the ledger and the
    returned share carries the bumped counters.
    """
    share = check_access(
        await get_share_by_token(share_token),
        action=action,
        authenticated=user is not None,
        enforce_require_auth=get_settings().enforce_require_auth,
    )

    if log_access:
        share = await record_access(
            share.id,
            ip=ip,
            user_agent=user_agent,
            user_id=user.id if user else None,
        )

    playlist = await get_playlist_by_id(share.playlist_id)
    if playlist is None:
        raise NotFound(SHARE_UNAVAILABLE)
    return share, playlist


# ---------------------------------------------------------------------------
# Access ledger
# ---------------------------------------------------------------------------

async def record_access(
    share_id: int,
    *,
    ip: str | None = None,
    user_agent: str | None = None,
    user_id: int | None = None,
) -> Share:
    """Bump the counters and append to the log, trimming it to capacity.

    The increment is done in SQL and all three statements share one
    transaction, so concurrent viewers never lose an update.
    """
    capacity = get_settings().access_log_size
    now = to_db_time(utcnow())

    async with transaction() as db:
        rows = await db.execute_fetchall(
            """UPDATE shares
               SET access_count = access_count + 1, last_accessed = ?
               WHERE id = ?
               RETURNING *""",
            (now, share_id),
        )
        await db.execute(
            """INSERT INTO share_access_log (share_id, ip, user_agent, user_id, accessed_at)
               VALUES (?, ?, ?, ?, ?)""",
            (share_id, ip, user_agent, user_id, now),
        )
        await db.execute(
            """DELETE FROM share_access_log
               WHERE share_id = ? AND id NOT IN (
                   SELECT id FROM share_access_log
                   WHERE share_id = ? ORDER BY id DESC LIMIT ?
               )""",
            (share_id, share_id, capacity),
        )

    return share_from_row(list(rows)[0])


async def get_access_log(share_id: int) -> AccessLog:
    """Load a share's access log (oldest first, at most ``access_log_size``)."""
    capacity = get_settings().access_log_size
    db = get_db()
    cursor = await db.execute(
        """SELECT ip, user_agent, user_id, accessed_at FROM share_access_log
           WHERE share_id = ? ORDER BY id ASC""",
        (share_id,),
    )
    entries = [
        AccessEntry(ip=r[0], user_agent=r[1], user_id=r[2], accessed_at=r[3])
        for r in await cursor.fetchall()
    ]
    return AccessLog(entries, capacity=capacity)
