"""Comment store — playlist- and track-level comments.

Authors are either an identified local user or an anonymous display name
(see ``liner_core.models.Author``).  Only an identified author can edit or
delete their comment; anonymous comments are immutable through the API.
"""

from __future__ import annotations

import logging
from enum import Enum

from liner.db import get_db, row_to_dict, to_db_time, transaction
from liner.playlists import get_or_create_playlist
from liner.users import mark_viewed
from liner_core.comments import (
    normalize_content,
    validate_external_id,
    validate_rating,
)
from liner_core.errors import Forbidden, NotFound
from liner_core.models import AnonymousAuthor, Author, Comment, IdentifiedAuthor, User
from liner_core.sharing import utcnow

logger = logging.getLogger(__name__)

_SELECT_COMMENTS = """
    SELECT c.*, u.display_name AS author_display_name
    FROM comments c
    LEFT JOIN users u ON u.id = c.user_id
"""


class CommentScope(str, Enum):
    ALL = "all"
    PLAYLIST = "playlist"  # track_id IS NULL
    TRACK = "track"  # track_id IS NOT NULL


def comment_from_row(row) -> Comment:
    data = row_to_dict(row)
    author: Author
    if data["is_anonymous"]:
        author = AnonymousAuthor(name=data["anonymous_name"])
    else:
        author = IdentifiedAuthor(
            user_id=data["user_id"],
            display_name=data.get("author_display_name") or "",
        )
    return Comment(
        id=data["id"],
        playlist_id=data["playlist_id"],
        track_id=data["track_id"],
        author=author,
        content=data["content"],
        rating=data["rating"],
        edited=bool(data["edited"]),
        created_at=data["created_at"],
        updated_at=data["updated_at"],
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_comment(comment_id: int) -> Comment | None:
    db = get_db()
    cursor = await db.execute(f"{_SELECT_COMMENTS} WHERE c.id = ?", (comment_id,))
    row = await cursor.fetchone()
    return comment_from_row(row) if row else None


async def list_comments(
    playlist_id: int,
    scope: CommentScope = CommentScope.ALL,
    track_id: str | None = None,
) -> list[Comment]:
    """Comments of one playlist, newest first (insertion order breaks ties).

    ``scope=TRACK`` with a *track_id* narrows to that single track.
    """
    sql = f"{_SELECT_COMMENTS} WHERE c.playlist_id = ?"
    params: list = [playlist_id]

    if scope is CommentScope.PLAYLIST:
        sql += " AND c.track_id IS NULL"
    elif scope is CommentScope.TRACK:
        if track_id is not None:
            sql += " AND c.track_id = ?"
            params.append(track_id)
        else:
            sql += " AND c.track_id IS NOT NULL"

    sql += " ORDER BY c.created_at DESC, c.id DESC"

    db = get_db()
    cursor = await db.execute(sql, params)
    return [comment_from_row(row) for row in await cursor.fetchall()]


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def add_comment(
    playlist_id: int,
    content: str,
    author: Author,
    *,
    track_id: str | None = None,
    rating: int | None = None,
) -> Comment:
    """Persist a comment on playlist *playlist_id* (local record id)."""
    text = normalize_content(content)
    rating = validate_rating(rating)
    if track_id is not None:
        validate_external_id(track_id, "track id")

    if isinstance(author, IdentifiedAuthor):
        user_id, is_anonymous, anonymous_name = author.user_id, 0, None
    else:
        user_id, is_anonymous, anonymous_name = None, 1, author.name

    now = to_db_time(utcnow())
    async with transaction() as db:
        cursor = await db.execute(
            """
            INSERT INTO comments
                (playlist_id, track_id, user_id, is_anonymous, anonymous_name,
                 content, rating, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (playlist_id, track_id, user_id, is_anonymous, anonymous_name, text, rating, now, now),
        )
        comment_id = cursor.lastrowid

    logger.info(
        "Comment %d added to playlist %d (track=%s, anonymous=%s)",
        comment_id, playlist_id, track_id, bool(is_anonymous),
    )
    return await get_comment(comment_id)  # type: ignore[arg-type,return-value]


async def add_owner_comment(
    user: User,
    spotify_id: str,
    content: str,
    *,
    track_id: str | None = None,
    rating: int | None = None,
) -> Comment:
    """Comment as a signed-in user, creating the playlist record if needed.

    When the commenter owns the playlist their watermark is advanced so
    their own comment is not reported as new.  That update is best-effort:
    a failure is logged and the comment stays.
    """
    playlist = await get_or_create_playlist(spotify_id, user.id)
    comment = await add_comment(
        playlist.id,
        content,
        IdentifiedAuthor(user_id=user.id, display_name=user.display_name),
        track_id=track_id,
        rating=rating,
    )

    if playlist.owner_id == user.id:
        try:
            await mark_viewed(user.id, spotify_id)
        except Exception:
            logger.exception("Could not advance watermark for user %d on %s", user.id, spotify_id)

    return comment


async def _authored_comment(comment_id: int, user_id: int, action: str) -> Comment:
    comment = await get_comment(comment_id)
    if comment is None:
        raise NotFound("Comment not found")
    if not comment.written_by(user_id):
        raise Forbidden(f"Not authorized to {action} this comment")
    return comment


async def edit_comment(comment_id: int, user_id: int, content: str) -> Comment:
    """Replace the text of the caller's own comment and flag it as edited."""
    await _authored_comment(comment_id, user_id, "edit")
    text = normalize_content(content)

    async with transaction() as db:
        await db.execute(
            "UPDATE comments SET content = ?, edited = 1, updated_at = ? WHERE id = ? AND user_id = ?",
            (text, to_db_time(utcnow()), comment_id, user_id),
        )

    return await get_comment(comment_id)  # type: ignore[return-value]


async def delete_comment(comment_id: int, user_id: int) -> None:
    """Delete the caller's own comment."""
    await _authored_comment(comment_id, user_id, "delete")
    async with transaction() as db:
        await db.execute("DELETE FROM comments WHERE id = ? AND user_id = ?", (comment_id, user_id))
    logger.info("Comment %d deleted by user %d", comment_id, user_id)
