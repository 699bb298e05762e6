"""Comment helpers — validation, grouping and "new comment" counting."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from liner_core.errors import ValidationError
from liner_core.models import AnonymousAuthor, Comment, CommentBadge

DEFAULT_ANONYMOUS_NAME = "Anonymous"
MAX_CONTENT_LENGTH = 2000
MAX_NAME_LENGTH = 80

_EXTERNAL_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def validate_external_id(value: str, what: str = "id") -> str:
    """Spotify ids are base62; underscores and dashes are tolerated."""
    if not isinstance(value, str) or not _EXTERNAL_ID_RE.match(value):
        raise ValidationError(f"Malformed {what}")
    return value


def normalize_content(content: Optional[str]) -> str:
    """Trim *content*; reject it if nothing is left."""
    text = (content or "").strip()
    if not text:
        raise ValidationError("Comment content is required")
    if len(text) > MAX_CONTENT_LENGTH:
        raise ValidationError(f"Comment is longer than {MAX_CONTENT_LENGTH} characters")
    return text


def validate_rating(rating: Optional[int]) -> Optional[int]:
    if rating is None:
        return None
    if not 0 <= rating <= 10:
        raise ValidationError("Rating must be between 0 and 10")
    return rating


def anonymous_author(name: Optional[str], default: str = DEFAULT_ANONYMOUS_NAME) -> AnonymousAuthor:
    """Build an anonymous author, falling back to *default* for blank names."""
    cleaned = (name or "").strip()[:MAX_NAME_LENGTH]
    return AnonymousAuthor(name=cleaned or default)


def group_by_track(comments: Sequence[Comment]) -> Dict[str, List[Comment]]:
    """Group track-level comments by track id, keeping the input order."""
    grouped: Dict[str, List[Comment]] = {}
    for comment in comments:
        if comment.track_id is None:
            continue
        grouped.setdefault(comment.track_id, []).append(comment)
    return grouped


def count_new_comments(
    created_ats: Sequence[datetime],
    watermark: Optional[datetime],
) -> CommentBadge:
    """Count comments created strictly after *watermark*.

    A playlist that was never viewed has every comment counted as new.
    """
    if watermark is None:
        count = len(created_ats)
    else:
        count = sum(1 for ts in created_ats if ts > watermark)
    return CommentBadge(has_new_comments=count > 0, new_comment_count=count)
