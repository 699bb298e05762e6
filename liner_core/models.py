"""Pydantic models shared across the application.

API payloads use camelCase field names (``alias_generator``) while Python
code uses snake_case; ``populate_by_name`` lets either spelling in.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for every model that crosses the HTTP boundary."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class User(ApiModel):
    """Local record for a Spotify identity.

    Credential fields are kept for the catalog calls made on the user's
    behalf but are **never** serialized.
    """

    id: int
    spotify_user_id: str
    display_name: str = ""
    email: Optional[str] = None
    access_token: Optional[str] = Field(default=None, exclude=True, repr=False)
    refresh_token: Optional[str] = Field(default=None, exclude=True, repr=False)
    token_expiry: Optional[datetime] = Field(default=None, exclude=True)
    created_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

class IdentifiedAuthor(ApiModel):
    kind: Literal["user"] = "user"
    user_id: int
    display_name: str = ""


class AnonymousAuthor(ApiModel):
    kind: Literal["anonymous"] = "anonymous"
    name: str = Field(min_length=1)


Author = Annotated[Union[IdentifiedAuthor, AnonymousAuthor], Field(discriminator="kind")]


class Comment(ApiModel):
    """A remark on a playlist, or on one track of it when ``track_id`` is set."""

    id: int
    playlist_id: int
    track_id: Optional[str] = None
    author: Author
    content: str
    rating: Optional[int] = Field(default=None, ge=0, le=10)
    edited: bool = False
    created_at: datetime
    updated_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_anonymous(self) -> bool:
        return isinstance(self.author, AnonymousAuthor)

    def written_by(self, user_id: int) -> bool:
        """True only for the identified author; anonymous comments have none."""
        return isinstance(self.author, IdentifiedAuthor) and self.author.user_id == user_id


class CommentBadge(ApiModel):
    """Notification counters shown next to a playlist."""

    has_new_comments: bool = False
    new_comment_count: int = 0


# ---------------------------------------------------------------------------
# Sharing
# ---------------------------------------------------------------------------

class SharePermissions(ApiModel):
    allow_comments: bool = True
    require_auth: bool = False


class ShareSettings(ApiModel):
    """Snapshot of a share's settings stored on the playlist record."""

    allow_comments: bool = True
    require_auth: bool = False
    expires_at: Optional[datetime] = None


class AccessEntry(ApiModel):
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    user_id: Optional[int] = None
    accessed_at: datetime


class Share(ApiModel):
    """A revocable, token-addressed public view of one playlist."""

    id: int
    playlist_id: int
    share_token: str
    created_by: int
    permissions: SharePermissions = Field(default_factory=SharePermissions)
    expires_at: Optional[datetime] = None
    is_active: bool = True
    access_count: int = 0
    last_accessed: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def settings_snapshot(self) -> ShareSettings:
        return ShareSettings(
            allow_comments=self.permissions.allow_comments,
            require_auth=self.permissions.require_auth,
            expires_at=self.expires_at,
        )


# ---------------------------------------------------------------------------
# Playlists
# ---------------------------------------------------------------------------

class Collaborator(ApiModel):
    user_id: int
    permission: Literal["view", "comment", "admin"] = "view"


class Playlist(ApiModel):
    """Local annotation anchor for a Spotify playlist."""

    id: int
    spotify_id: str
    name: str = ""
    owner_id: int
    is_public: bool = False
    share_token: Optional[str] = None
    share_settings: Optional[ShareSettings] = None
    collaborators: List[Collaborator] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
