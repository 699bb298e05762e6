"""Routes for the signed-in user's playlists, badges and viewed state."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from liner.comments import list_comments
from liner.identity import require_user
from liner.playlists import (
    NOT_OWNED,
    get_or_create_playlist,
    get_owned_playlist,
    get_playlist_record,
    playlist_badges,
)
from liner.spotify import get_full_playlist, get_my_playlists, get_playlist
from liner.users import mark_viewed
from liner_core.comments import group_by_track, validate_external_id
from liner_core.errors import NotFound
from liner_core.models import ApiModel, User

router = APIRouter(prefix="/api", tags=["playlists"])


class RegisterPlaylist(ApiModel):
    spotify_id: str
    name: Optional[str] = None


# ---------------------------------------------------------------------------
# GET /api/me
# ---------------------------------------------------------------------------

@router.get("/me")
async def me(user: User = Depends(require_user)):
    """The caller's local user record (credentials are never serialized)."""
    return user


# ---------------------------------------------------------------------------
# GET /api/playlists — catalog listing + comment badges
# ---------------------------------------------------------------------------

@router.get("/playlists")
async def list_playlists(user: User = Depends(require_user)):
    """Every playlist of the caller, each annotated with its new-comment badge."""
    items = await get_my_playlists(user.access_token or "")
    badges = await playlist_badges(user.id, [item["id"] for item in items if item.get("id")])

    result = []
    for item in items:
        badge = badges.get(item.get("id"))
        result.append({
            **item,
            "hasNewComments": badge.has_new_comments if badge else False,
            "newCommentCount": badge.new_comment_count if badge else 0,
        })
    return result


# ---------------------------------------------------------------------------
# POST /api/playlists — register a local record
# ---------------------------------------------------------------------------

@router.post("/playlists", status_code=201)
async def register_playlist(body: RegisterPlaylist, user: User = Depends(require_user)):
    """Create (or return) the local record anchoring comments and shares."""
    validate_external_id(body.spotify_id, "playlist id")
    existing = await get_playlist_record(body.spotify_id)
    if existing is not None and existing.owner_id != user.id:
        raise NotFound(NOT_OWNED)

    name = body.name
    if not name:
        meta = await get_playlist(user.access_token or "", body.spotify_id)
        name = meta.get("name") or ""

    return await get_or_create_playlist(body.spotify_id, user.id, name)


# ---------------------------------------------------------------------------
# GET /api/playlists/{playlist_id} — catalog data + comments
# ---------------------------------------------------------------------------

@router.get("/playlists/{playlist_id}")
async def playlist_detail(playlist_id: str, user: User = Depends(require_user)):
    """Full playlist from the catalog merged with the local comments.

    Touching a playlist creates its local record on first sight.
    """
    validate_external_id(playlist_id, "playlist id")
    data = await get_full_playlist(user.access_token or "", playlist_id)
    playlist = await get_or_create_playlist(playlist_id, user.id, data.get("name") or "")
    comments = await list_comments(playlist.id)

    return {
        **data,
        "recordId": playlist.id,
        "isOwner": playlist.owner_id == user.id,
        "isShared": playlist.is_public,
        "comments": [c for c in comments if c.track_id is None],
        "songComments": group_by_track(comments),
    }


@router.get("/playlists/{playlist_id}/record")
async def playlist_record(playlist_id: str, user: User = Depends(require_user)):
    """The local record of a playlist the caller owns."""
    return await get_owned_playlist(user.id, playlist_id)


# ---------------------------------------------------------------------------
# POST /api/playlists/{playlist_id}/viewed
# ---------------------------------------------------------------------------

@router.post("/playlists/{playlist_id}/viewed")
async def playlist_viewed(playlist_id: str, user: User = Depends(require_user)):
    """Advance the caller's watermark so current comments stop counting as new."""
    validate_external_id(playlist_id, "playlist id")
    viewed_at = await mark_viewed(user.id, playlist_id)
    return {"success": True, "viewedAt": viewed_at}
