"""Tests for the share engine (liner_core/sharing.py)."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from liner_core.errors import Forbidden, NotFound, Unauthenticated, ValidationError
from liner_core.models import AccessEntry, Share, SharePermissions
from liner_core.sharing import (
    COMMENTS_DISABLED,
    SHARE_UNAVAILABLE,
    AccessLog,
    ShareAction,
    check_access,
    expiry_from_days,
    generate_share_token,
    is_share_valid,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _share(**overrides) -> Share:
    fields = dict(id=1, playlist_id=1, share_token="tok", created_by=1)
    fields.update(overrides)
    return Share(**fields)


# ---------------------------------------------------------------------------
# Tokens & expiry
# ---------------------------------------------------------------------------

def test_tokens_are_url_safe_and_distinct():
    tokens = {generate_share_token() for _ in range(200)}
    assert len(tokens) == 200
    for token in tokens:
        assert len(token) >= 22
        assert all(ch.isalnum() or ch in "-_" for ch in token)


@pytest.mark.parametrize("expires_in", [None, 0])
def test_no_expiry_for_none_or_zero(expires_in):
    assert expiry_from_days(expires_in, NOW) is None


def test_expiry_is_whole_days_from_now():
    assert expiry_from_days(7, NOW) == NOW + timedelta(days=7)


def test_negative_expiry_rejected():
    with pytest.raises(ValidationError):
        expiry_from_days(-1, NOW)


# ---------------------------------------------------------------------------
# Validity
# ---------------------------------------------------------------------------

def test_share_without_expiry_is_valid():
    assert is_share_valid(_share(), NOW)


def test_inactive_share_is_invalid():
    assert not is_share_valid(_share(is_active=False), NOW)


def test_expiry_instant_counts_as_expired():
    share = _share(expires_at=NOW)
    assert not is_share_valid(share, NOW)
    assert is_share_valid(share, NOW - timedelta(microseconds=1))


# ---------------------------------------------------------------------------
# Access gate
# ---------------------------------------------------------------------------

def test_unknown_and_expired_give_same_error():
    with pytest.raises(NotFound) as unknown:
        check_access(None, action=ShareAction.VIEW, authenticated=False, now=NOW)
    with pytest.raises(NotFound) as expired:
        check_access(
            _share(expires_at=NOW - timedelta(days=1)),
            action=ShareAction.VIEW, authenticated=False, now=NOW,
        )
    assert unknown.value.detail == expired.value.detail == SHARE_UNAVAILABLE


def test_comments_disabled_blocks_posting_but_not_viewing():
    share = _share(permissions=SharePermissions(allow_comments=False))
    assert check_access(share, action=ShareAction.VIEW, authenticated=False, now=NOW) is share
    with pytest.raises(Forbidden, match=COMMENTS_DISABLED):
        check_access(share, action=ShareAction.COMMENT, authenticated=False, now=NOW)


def test_require_auth_rejects_anonymous_when_enforced():
    share = _share(permissions=SharePermissions(require_auth=True))
    with pytest.raises(Unauthenticated):
        check_access(share, action=ShareAction.VIEW, authenticated=False, now=NOW)
    assert check_access(share, action=ShareAction.VIEW, authenticated=True, now=NOW) is share


def test_require_auth_advisory_when_not_enforced():
    share = _share(permissions=SharePermissions(require_auth=True))
    result = check_access(
        share, action=ShareAction.COMMENT, authenticated=False,
        enforce_require_auth=False, now=NOW,
    )
    assert result is share


def test_validity_checked_before_permissions():
    share = _share(is_active=False, permissions=SharePermissions(allow_comments=False))
    with pytest.raises(NotFound):
        check_access(share, action=ShareAction.COMMENT, authenticated=False, now=NOW)


# ---------------------------------------------------------------------------
# Access log
# ---------------------------------------------------------------------------

def _entry(n: int) -> AccessEntry:
    return AccessEntry(ip=f"10.0.0.{n}", accessed_at=NOW + timedelta(seconds=n))


def test_access_log_drops_oldest_beyond_capacity():
    log = AccessLog(capacity=100)
    for n in range(101):
        log.append(_entry(n))
    assert len(log) == 100
    entries = list(log)
    assert entries[0].ip == "10.0.0.1"
    assert entries[-1].ip == "10.0.0.100"


def test_access_log_recent_is_newest_first():
    log = AccessLog([_entry(n) for n in range(5)], capacity=10)
    assert [e.ip for e in log.recent(2)] == ["10.0.0.4", "10.0.0.3"]
