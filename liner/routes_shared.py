"""Public routes addressed by share token.

No sign-in is needed unless the share demands it; a bearer token, when
present and valid, attributes comments to the signed-in user.  Every
request passes the access gate in ``liner.shares.open_share``.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request

from liner.comments import add_comment, list_comments
from liner.config import get_settings
from liner.identity import optional_user
from liner.shares import open_share
from liner.spotify import get_full_playlist
from liner.users import get_user
from liner_core.comments import anonymous_author, group_by_track
from liner_core.errors import LinerError, UpstreamFailure
from liner_core.models import ApiModel, Author, IdentifiedAuthor, User
from liner_core.sharing import ShareAction

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/shared", tags=["shared"])


class SharedComment(ApiModel):
    content: str = ""
    author_name: Optional[str] = None
    track_id: Optional[str] = None
    rating: Optional[int] = None


def _author_for(user: User | None, author_name: str | None) -> Author:
    if user is not None:
        return IdentifiedAuthor(user_id=user.id, display_name=user.display_name)
    return anonymous_author(author_name, get_settings().anonymous_name)


# ---------------------------------------------------------------------------
# GET /api/shared/{token} — the shared view
# ---------------------------------------------------------------------------

@router.get("/{share_token}")
async def shared_playlist(
    share_token: str, request: Request, user: Optional[User] = Depends(optional_user)
):
    """Catalog data, comments and share info; each call is recorded as an access."""
    share, playlist = await open_share(
        share_token,
        user,
        ShareAction.VIEW,
        log_access=True,
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )

    # Catalog data is read with the owner's stored credentials.
    owner = await get_user(playlist.owner_id)
    if owner is None or not owner.access_token:
        raise UpstreamFailure("Unable to access playlist data")
    try:
        data = await get_full_playlist(owner.access_token, playlist.spotify_id)
    except LinerError as exc:
        logger.warning("Catalog fetch for shared playlist %s failed: %s", playlist.spotify_id, exc.detail)
        raise UpstreamFailure("Unable to fetch playlist from Spotify") from exc

    comments = await list_comments(playlist.id)
    return {
        "playlist": {
            **data,
            "recordId": playlist.id,
            "isShared": True,
            "comments": [c for c in comments if c.track_id is None],
            "shareInfo": {
                "permissions": share.permissions,
                "sharedBy": owner.display_name,
                "accessCount": share.access_count,
                "expiresAt": share.expires_at,
            },
        },
        "songComments": group_by_track(comments),
    }


@router.get("/{share_token}/comments")
async def shared_comments(share_token: str, user: Optional[User] = Depends(optional_user)):
    """Every comment of the shared playlist, newest first (not recorded as an access)."""
    _, playlist = await open_share(share_token, user, ShareAction.VIEW)
    return await list_comments(playlist.id)


# ---------------------------------------------------------------------------
# POST — comments through a share
# ---------------------------------------------------------------------------

@router.post("/{share_token}/comments", status_code=201)
async def shared_add_comment(
    share_token: str, body: SharedComment, user: Optional[User] = Depends(optional_user)
):
    _, playlist = await open_share(share_token, user, ShareAction.COMMENT)
    return await add_comment(
        playlist.id,
        body.content,
        _author_for(user, body.author_name),
        track_id=body.track_id,
        rating=body.rating,
    )


@router.post("/{share_token}/tracks/{track_id}/comments", status_code=201)
async def shared_add_track_comment(
    share_token: str,
    track_id: str,
    body: SharedComment,
    user: Optional[User] = Depends(optional_user),
):
    _, playlist = await open_share(share_token, user, ShareAction.COMMENT)
    return await add_comment(
        playlist.id,
        body.content,
        _author_for(user, body.author_name),
        track_id=track_id,
        rating=body.rating,
    )
