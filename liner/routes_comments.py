"""Routes for comments by signed-in users (playlist- and track-level)."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from liner.comments import (
    CommentScope,
    add_owner_comment,
    delete_comment,
    edit_comment,
    list_comments,
)
from liner.identity import require_user
from liner.playlists import get_playlist_record
from liner_core.comments import group_by_track, validate_external_id
from liner_core.errors import NotFound
from liner_core.models import ApiModel, Playlist, User

router = APIRouter(prefix="/api", tags=["comments"])


class NewComment(ApiModel):
    content: str = ""
    rating: Optional[int] = None


class CommentEdit(ApiModel):
    content: str = ""


async def _record_or_404(playlist_id: str) -> Playlist:
    validate_external_id(playlist_id, "playlist id")
    playlist = await get_playlist_record(playlist_id)
    if playlist is None:
        raise NotFound("Playlist not found")
    return playlist


# ---------------------------------------------------------------------------
# Playlist-level comments
# ---------------------------------------------------------------------------

@router.get("/playlists/{playlist_id}/comments")
async def get_playlist_comments(playlist_id: str, user: User = Depends(require_user)):
    playlist = await _record_or_404(playlist_id)
    return await list_comments(playlist.id, CommentScope.PLAYLIST)


@router.post("/playlists/{playlist_id}/comments", status_code=201)
async def post_playlist_comment(
    playlist_id: str, body: NewComment, user: User = Depends(require_user)
):
    return await add_owner_comment(user, playlist_id, body.content, rating=body.rating)


# ---------------------------------------------------------------------------
# Track-level comments
# ---------------------------------------------------------------------------

@router.get("/playlists/{playlist_id}/tracks/comments")
async def get_all_track_comments(playlist_id: str, user: User = Depends(require_user)):
    """Every track comment of the playlist grouped as ``{trackId: [comment, …]}``."""
    playlist = await _record_or_404(playlist_id)
    return group_by_track(await list_comments(playlist.id, CommentScope.TRACK))


@router.get("/playlists/{playlist_id}/tracks/{track_id}/comments")
async def get_track_comments(playlist_id: str, track_id: str, user: User = Depends(require_user)):
    playlist = await _record_or_404(playlist_id)
    validate_external_id(track_id, "track id")
    return await list_comments(playlist.id, CommentScope.TRACK, track_id)


@router.post("/playlists/{playlist_id}/tracks/{track_id}/comments", status_code=201)
async def post_track_comment(
    playlist_id: str, track_id: str, body: NewComment, user: User = Depends(require_user)
):
    return await add_owner_comment(
        user, playlist_id, body.content, track_id=track_id, rating=body.rating
    )


# ---------------------------------------------------------------------------
# Edit / delete (author only)
# ---------------------------------------------------------------------------

@router.put("/comments/{comment_id}")
async def put_comment(comment_id: int, body: CommentEdit, user: User = Depends(require_user)):
    return await edit_comment(comment_id, user.id, body.content)


@router.delete("/comments/{comment_id}")
async def remove_comment(comment_id: int, user: User = Depends(require_user)):
    await delete_comment(comment_id, user.id)
    return {"message": "Comment deleted successfully"}
