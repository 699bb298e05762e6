"""Share engine — pure business logic, no I/O.

Provides:
- Share token generation (128-bit, URL-safe)
- Expiry arithmetic (whole days from "now")
- The validity predicate and the access-gate decision
- A fixed-capacity access log
"""

from __future__ import annotations

import secrets
from collections import deque
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Deque, Iterable, Iterator, List, Optional

from liner_core.errors import Forbidden, NotFound, Unauthenticated, ValidationError
from liner_core.models import AccessEntry, Share

SHARE_TOKEN_BYTES = 16
ACCESS_LOG_SIZE = 100

SHARE_UNAVAILABLE = "Shared playlist not found or expired"
COMMENTS_DISABLED = "Comments not allowed for this shared playlist"
SIGN_IN_REQUIRED = "Sign in required to access this shared playlist"


def utcnow() -> datetime:
    """Timezone-aware current time; the single clock used for all stamps."""
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Tokens & expiry
# ---------------------------------------------------------------------------

def generate_share_token() -> str:
    """Return an unguessable URL-safe token (``SHARE_TOKEN_BYTES`` of entropy)."""
    return secrets.token_urlsafe(SHARE_TOKEN_BYTES)


def expiry_from_days(expires_in: Optional[int], now: Optional[datetime] = None) -> Optional[datetime]:
    """Absolute expiry for a share valid for *expires_in* whole days.

    ``None`` or ``0`` means the share never expires.
    """
    if expires_in is None or expires_in == 0:
        return None
    if expires_in < 0:
        raise ValidationError("expiresIn must be a positive number of days")
    return (now or utcnow()) + timedelta(days=expires_in)


def is_share_valid(share: Share, now: Optional[datetime] = None) -> bool:
    """Active and not yet expired.  The expiry instant itself counts as expired."""
    if not share.is_active:
        return False
    if share.expires_at is None:
        return True
    return (now or utcnow()) < share.expires_at


# ---------------------------------------------------------------------------
# Access gate
# ---------------------------------------------------------------------------

class ShareAction(str, Enum):
    VIEW = "view"
    COMMENT = "comment"


def check_access(
    share: Optional[Share],
    *,
    action: ShareAction,
    authenticated: bool,
    enforce_require_auth: bool = True,
    now: Optional[datetime] = None,
) -> Share:
    """Decide whether a public request on *share* may proceed.

    Checks run in a fixed order and stop at the first failure:

    1. unknown token and 2. inactive/expired share raise the same
       :class:`NotFound`, so outsiders cannot tell them apart;
    3. posting on a share with comments disabled raises :class:`Forbidden`;
    4. an anonymous caller on a ``require_auth`` share raises
       :class:`Unauthenticated` (only when *enforce_require_auth*).

    Returns the share on success.
    """
    if share is None or not is_share_valid(share, now):
        raise NotFound(SHARE_UNAVAILABLE)

    if action is ShareAction.COMMENT and not share.permissions.allow_comments:
        raise Forbidden(COMMENTS_DISABLED)

    if enforce_require_auth and share.permissions.require_auth and not authenticated:
        raise Unauthenticated(SIGN_IN_REQUIRED)

    return share


# ---------------------------------------------------------------------------
# Access log
# ---------------------------------------------------------------------------

class AccessLog:
    """Fixed-capacity log of a share's accesses, oldest first.

    Appending beyond ``capacity`` drops the oldest entry.
    """

    def __init__(self, entries: Iterable[AccessEntry] = (), capacity: int = ACCESS_LOG_SIZE):
        self.capacity = capacity
        self._entries: Deque[AccessEntry] = deque(maxlen=capacity)
        for entry in entries:
            self._entries.append(entry)

    def append(self, entry: AccessEntry) -> None:
        self._entries.append(entry)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[AccessEntry]:
        return iter(self._entries)

    def recent(self, limit: Optional[int] = None) -> List[AccessEntry]:
        """Entries newest first."""
        items = list(reversed(self._entries))
        return items if limit is None else items[:limit]
