"""Tests for viewed-state watermarks and notification badges."""

from __future__ import annotations

import pytest

from liner.comments import add_comment, add_owner_comment
from liner.playlists import get_or_create_playlist, playlist_badges
from liner.users import get_watermarks, mark_viewed, upsert_user
from liner_core.models import AnonymousAuthor


@pytest.fixture
async def owner(db):
    return await upsert_user({"id": "u1", "display_name": "Olivia"}, "owner-token")


@pytest.mark.asyncio
async def test_mark_viewed_never_moves_backwards(db, owner):
    first = await mark_viewed(owner.id, "pl_abc")
    second = await mark_viewed(owner.id, "pl_abc")
    assert second >= first
    assert (await get_watermarks(owner.id))["pl_abc"] == second


@pytest.mark.asyncio
async def test_badges_follow_watermark(db, owner):
    playlist = await get_or_create_playlist("pl_abc", owner.id, "Road Trip")
    visitor = AnonymousAuthor(name="Casey")

    await add_comment(playlist.id, "one", visitor)
    await add_comment(playlist.id, "two", visitor, track_id="trk_1")

    badges = await playlist_badges(owner.id, ["pl_abc", "pl_other"])
    assert badges["pl_abc"].new_comment_count == 2
    assert badges["pl_abc"].has_new_comments
    assert badges["pl_other"].new_comment_count == 0

    await mark_viewed(owner.id, "pl_abc")
    assert (await playlist_badges(owner.id, ["pl_abc"]))["pl_abc"].new_comment_count == 0

    await add_comment(playlist.id, "three", visitor)
    assert (await playlist_badges(owner.id, ["pl_abc"]))["pl_abc"].new_comment_count == 1


@pytest.mark.asyncio
async def test_own_comment_is_not_new(db, owner):
    await add_owner_comment(owner, "pl_abc", "note to self")
    badge = (await playlist_badges(owner.id, ["pl_abc"]))["pl_abc"]
    assert not badge.has_new_comments


@pytest.mark.asyncio
async def test_empty_listing(db, owner):
    assert await playlist_badges(owner.id, []) == {}
