"""Error taxonomy shared by the core logic and the HTTP layer.

Every error carries a short machine-readable ``kind`` and a human-readable
``detail``.  The FastAPI app maps each class to a status code in one place
(``liner.main``), so nothing below knows about HTTP.
"""

from __future__ import annotations


class LinerError(Exception):
    """Base class for all expected, request-scoped failures."""

    kind = "error"
    default_detail = "Request failed"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class Unauthenticated(LinerError):
    kind = "unauthenticated"
    default_detail = "Invalid or expired token"


class Forbidden(LinerError):
    kind = "forbidden"
    default_detail = "Not authorized"


class NotFound(LinerError):
    kind = "not_found"
    default_detail = "Not found"


class ValidationError(LinerError):
    kind = "validation_error"
    default_detail = "Invalid input"


class UpstreamFailure(LinerError):
    """The identity provider or the catalog failed or was unreachable."""

    kind = "upstream_failure"
    default_detail = "Upstream service unavailable"

    def __init__(self, detail: str | None = None, status_code: int = 0):
        self.status_code = status_code
        super().__init__(detail)


class Conflict(LinerError):
    """Uniqueness violation that should never happen (e.g. token collision)."""

    kind = "conflict"
    default_detail = "Conflicting record"
