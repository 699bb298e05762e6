"""Tests for the comment store (liner/comments.py)."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from liner.comments import (
    CommentScope,
    add_comment,
    add_owner_comment,
    delete_comment,
    edit_comment,
    get_comment,
    list_comments,
)
from liner.playlists import get_or_create_playlist
from liner.users import get_watermarks, upsert_user
from liner_core.errors import Forbidden, NotFound, ValidationError
from liner_core.models import AnonymousAuthor, IdentifiedAuthor


@pytest.fixture
async def owner(db):
    return await upsert_user({"id": "u1", "display_name": "Olivia"}, "owner-token")


@pytest.fixture
async def playlist(owner):
    return await get_or_create_playlist("pl_abc", owner.id, "Road Trip")


@pytest.mark.asyncio
async def test_anonymous_track_comment(db, playlist):
    comment = await add_comment(
        playlist.id, "  great track ", AnonymousAuthor(name="Casey"), track_id="trk_1"
    )
    assert comment.content == "great track"
    assert comment.is_anonymous
    assert comment.author.name == "Casey"
    assert comment.track_id == "trk_1"
    assert not comment.edited


@pytest.mark.asyncio
async def test_blank_comment_is_not_stored(db, playlist):
    with pytest.raises(ValidationError):
        await add_comment(playlist.id, "   ", AnonymousAuthor(name="Casey"))
    assert await list_comments(playlist.id) == []


@pytest.mark.asyncio
async def test_malformed_track_id_rejected(db, playlist):
    with pytest.raises(ValidationError):
        await add_comment(playlist.id, "hi", AnonymousAuthor(name="Casey"), track_id="no/slashes")


@pytest.mark.asyncio
async def test_scopes_and_newest_first(db, owner, playlist):
    author = IdentifiedAuthor(user_id=owner.id, display_name=owner.display_name)
    first = await add_comment(playlist.id, "on the playlist", author)
    second = await add_comment(playlist.id, "on a track", author, track_id="trk_1")
    third = await add_comment(playlist.id, "another track", author, track_id="trk_2")

    assert [c.id for c in await list_comments(playlist.id)] == [third.id, second.id, first.id]
    assert [c.id for c in await list_comments(playlist.id, CommentScope.PLAYLIST)] == [first.id]
    assert [c.id for c in await list_comments(playlist.id, CommentScope.TRACK)] == [third.id, second.id]
    assert [c.id for c in await list_comments(playlist.id, CommentScope.TRACK, "trk_1")] == [second.id]


@pytest.mark.asyncio
async def test_identified_comment_carries_display_name(db, owner, playlist):
    comment = await add_owner_comment(owner, "pl_abc", "nice", rating=8)
    assert comment.author.display_name == "Olivia"
    assert comment.rating == 8
    assert not comment.is_anonymous


@pytest.mark.asyncio
async def test_owner_comment_creates_record_and_advances_watermark(db, owner):
    await add_owner_comment(owner, "pl_new", "first!")
    assert "pl_new" in await get_watermarks(owner.id)


@pytest.mark.asyncio
async def test_watermark_failure_keeps_comment(db, owner, playlist):
    with patch("liner.comments.mark_viewed", new_callable=AsyncMock, side_effect=RuntimeError("db hiccup")):
        comment = await add_owner_comment(owner, "pl_abc", "still here")
    assert await get_comment(comment.id) is not None


@pytest.mark.asyncio
async def test_other_users_comment_does_not_advance_owner_watermark(db, owner, playlist):
    friend = await upsert_user({"id": "u2", "display_name": "Frank"}, "friend-token")
    await add_owner_comment(friend, "pl_abc", "hello")
    assert "pl_abc" not in await get_watermarks(owner.id)
    assert "pl_abc" not in await get_watermarks(friend.id)


@pytest.mark.asyncio
async def test_author_can_edit_and_delete(db, owner, playlist):
    comment = await add_owner_comment(owner, "pl_abc", "draft")

    edited = await edit_comment(comment.id, owner.id, "final")
    assert edited.content == "final"
    assert edited.edited
    assert edited.updated_at >= comment.updated_at

    await delete_comment(comment.id, owner.id)
    assert await get_comment(comment.id) is None


@pytest.mark.asyncio
async def test_non_author_cannot_edit_or_delete(db, owner, playlist):
    friend = await upsert_user({"id": "u2", "display_name": "Frank"}, "friend-token")
    comment = await add_owner_comment(owner, "pl_abc", "mine")

    with pytest.raises(Forbidden):
        await edit_comment(comment.id, friend.id, "hijacked")
    with pytest.raises(Forbidden):
        await delete_comment(comment.id, friend.id)


@pytest.mark.asyncio
async def test_anonymous_comments_are_immutable(db, owner, playlist):
    comment = await add_comment(playlist.id, "drive-by", AnonymousAuthor(name="Casey"))
    with pytest.raises(Forbidden):
        await edit_comment(comment.id, owner.id, "changed")


@pytest.mark.asyncio
async def test_missing_comment(db, owner):
    with pytest.raises(NotFound):
        await delete_comment(12345, owner.id)
