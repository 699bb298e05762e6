"""Owner routes for creating, inspecting, updating and revoking a share link."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends

from liner.config import get_settings
from liner.identity import require_user
from liner.shares import get_access_log, get_share, revoke_share, update_share, upsert_share
from liner_core.models import AccessEntry, ApiModel, Share, SharePermissions, User
from liner_core.sharing import is_share_valid

router = APIRouter(prefix="/api/playlists/{playlist_id}/share", tags=["share"])


class CreateShare(ApiModel):
    allow_comments: bool = True
    require_auth: bool = False
    expires_in: Optional[int] = None  # whole days; null / 0 = never


class UpdateShare(ApiModel):
    allow_comments: Optional[bool] = None
    require_auth: Optional[bool] = None
    expires_in: Optional[int] = None


class ShareOut(ApiModel):
    share_token: str
    share_url: str
    permissions: SharePermissions
    expires_at: Optional[datetime] = None
    is_active: bool
    is_valid: bool
    access_count: int
    last_accessed: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_share(cls, share: Share) -> "ShareOut":
        return cls(
            share_token=share.share_token,
            share_url=get_settings().share_url(share.share_token),
            permissions=share.permissions,
            expires_at=share.expires_at,
            is_active=share.is_active,
            is_valid=is_share_valid(share),
            access_count=share.access_count,
            last_accessed=share.last_accessed,
            created_at=share.created_at,
        )


# ---------------------------------------------------------------------------
# POST — create or update in place
# ---------------------------------------------------------------------------

@router.post("", response_model=ShareOut, response_model_by_alias=True)
async def create_share(playlist_id: str, body: CreateShare, user: User = Depends(require_user)):
    """Issue a share link; an existing active link keeps its token."""
    share = await upsert_share(
        user,
        playlist_id,
        allow_comments=body.allow_comments,
        require_auth=body.require_auth,
        expires_in=body.expires_in,
    )
    return ShareOut.from_share(share)


@router.get("", response_model=ShareOut, response_model_by_alias=True)
async def read_share(playlist_id: str, user: User = Depends(require_user)):
    return ShareOut.from_share(await get_share(user, playlist_id))


@router.put("", response_model=ShareOut, response_model_by_alias=True)
async def change_share(playlist_id: str, body: UpdateShare, user: User = Depends(require_user)):
    """Partial update: only fields present in the body change.

    ``"expiresIn": null`` removes the expiry; omitting it keeps the current one.
    """
    share = await update_share(user, playlist_id, body.model_dump(exclude_unset=True))
    return ShareOut.from_share(share)


@router.delete("")
async def delete_share(playlist_id: str, user: User = Depends(require_user)):
    await revoke_share(user, playlist_id)
    return {"message": "Share access revoked successfully"}


# ---------------------------------------------------------------------------
# GET /access-log — recent visitors, newest first
# ---------------------------------------------------------------------------

@router.get("/access-log", response_model=list[AccessEntry], response_model_by_alias=True)
async def share_access_log(playlist_id: str, limit: int = 20, user: User = Depends(require_user)):
    share = await get_share(user, playlist_id)
    log = await get_access_log(share.id)
    return log.recent(max(limit, 0))
