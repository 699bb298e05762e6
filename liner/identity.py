"""Identity resolver — Spotify bearer token → local ``User``.

Every authenticated request validates its bearer token against Spotify's
``/me`` endpoint (one call, no retry) and upserts the user record.  Two
FastAPI dependencies expose the resolver:

  - ``require_user``   → missing/invalid token aborts with 401
  - ``optional_user``  → missing/invalid token degrades to ``None``
                          (public share endpoints)

Obtaining or refreshing tokens (the OAuth flow) happens elsewhere.
"""

from __future__ import annotations

import logging

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from liner.spotify import get_current_profile
from liner.users import upsert_user
from liner_core.errors import Forbidden, LinerError, NotFound, Unauthenticated
from liner_core.models import User

logger = logging.getLogger(__name__)

# Allow absence of the Authorization header; each dependency decides.
bearer_scheme = HTTPBearer(auto_error=False)


async def resolve_user(token: str) -> User:
    """Validate *token* with the identity provider and return the local user.

    Raises ``Unauthenticated`` for a rejected token and ``UpstreamFailure``
    when the provider cannot be reached.
    """
    try:
        profile = await get_current_profile(token)
    except (Unauthenticated, Forbidden, NotFound) as exc:
        raise Unauthenticated("Invalid or expired token") from exc

    user = await upsert_user(profile, token)
    logger.debug("Resolved Spotify user %s → local user %d", profile["id"], user.id)
    return user


async def require_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> User:
    """Dependency for endpoints that need a signed-in caller."""
    if creds is None or not creds.credentials:
        raise Unauthenticated("No token provided")
    return await resolve_user(creds.credentials)


async def optional_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> User | None:
    """Dependency for endpoints open to both signed-in and anonymous callers."""
    if creds is None or not creds.credentials:
        return None
    try:
        return await resolve_user(creds.credentials)
    except LinerError as exc:
        logger.debug("Continuing anonymously: %s", exc.detail)
        return None
