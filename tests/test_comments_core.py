"""Tests for comment helpers and author modelling (liner_core)."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from liner_core.comments import (
    anonymous_author,
    count_new_comments,
    group_by_track,
    normalize_content,
    validate_external_id,
    validate_rating,
)
from liner_core.errors import ValidationError
from liner_core.models import AnonymousAuthor, Comment, IdentifiedAuthor

T0 = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _comment(cid: int, track_id=None, author=None) -> Comment:
    return Comment(
        id=cid,
        playlist_id=1,
        track_id=track_id,
        author=author or AnonymousAuthor(name="Casey"),
        content="hi",
        created_at=T0,
        updated_at=T0,
    )


@pytest.mark.parametrize("content", ["", "   ", "\n\t", None])
def test_blank_content_rejected(content):
    with pytest.raises(ValidationError, match="required"):
        normalize_content(content)


def test_content_is_trimmed():
    assert normalize_content("  great track \n") == "great track"


def test_rating_bounds():
    assert validate_rating(None) is None
    assert validate_rating(0) == 0
    assert validate_rating(10) == 10
    with pytest.raises(ValidationError):
        validate_rating(11)


@pytest.mark.parametrize("value", ["", "a/b", "x" * 65, "../etc"])
def test_malformed_external_ids(value):
    with pytest.raises(ValidationError):
        validate_external_id(value, "track id")


def test_anonymous_author_falls_back_to_default():
    assert anonymous_author("  ", "Guest").name == "Guest"
    assert anonymous_author(None).name == "Anonymous"
    assert anonymous_author(" Casey ").name == "Casey"


def test_author_is_exactly_one_kind():
    anon = _comment(1)
    named = _comment(2, author=IdentifiedAuthor(user_id=7, display_name="Olivia"))
    assert anon.is_anonymous and not anon.written_by(7)
    assert not named.is_anonymous and named.written_by(7)

    dumped = anon.model_dump(by_alias=True)
    assert dumped["isAnonymous"] is True
    assert dumped["author"] == {"kind": "anonymous", "name": "Casey"}


def test_group_by_track_skips_playlist_comments():
    comments = [_comment(1, "a"), _comment(2), _comment(3, "b"), _comment(4, "a")]
    grouped = group_by_track(comments)
    assert list(grouped) == ["a", "b"]
    assert [c.id for c in grouped["a"]] == [1, 4]


def test_new_comment_count_without_watermark_counts_all():
    badge = count_new_comments([T0, T0 + timedelta(seconds=1)], None)
    assert badge.has_new_comments and badge.new_comment_count == 2


def test_new_comment_count_is_strictly_after_watermark():
    stamps = [T0, T0 + timedelta(seconds=1), T0 + timedelta(seconds=2)]
    badge = count_new_comments(stamps, T0 + timedelta(seconds=1))
    assert badge.new_comment_count == 1


def test_no_comments_zero_badge():
    badge = count_new_comments([], None)
    assert not badge.has_new_comments and badge.new_comment_count == 0
