"""
Error taxonomy for token issuance and verification.

Three kinds of failure reach callers:

- JsonWebTokenError: structural and validation problems (malformed token,
  bad option, claim collision, disallowed algorithm, key problems).
- TokenExpiredError: ``exp`` or ``max_age`` violated; carries the expiry
  instant.
- NotBeforeError: ``nbf`` violated; carries the not-before instant.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from shared.errors import ServiceException


def instant(seconds: float) -> datetime:
    """Convert epoch seconds into an aware UTC datetime.

    Values outside the range datetime can represent are clamped to its
    bounds.
    """
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        bound = datetime.max if seconds > 0 else datetime.min
        return bound.replace(tzinfo=timezone.utc)


class JsonWebTokenError(ServiceException):
    """A token could not be issued or was rejected."""

    def __init__(
        self,
        message: str,
        inner_error: Optional[BaseException] = None,
        *,
        code: str = "INVALID_TOKEN",
        details: Optional[Dict[str, Any]] = None,
    ):
        details = dict(details or {})
        if inner_error is not None:
            details.setdefault("inner_error", str(inner_error))
        super().__init__(code, message, details)
        self.inner_error = inner_error


class TokenExpiredError(JsonWebTokenError):
    """The token expired, either by ``exp`` or by ``max_age``."""

    def __init__(self, message: str, expired_at: datetime):
        super().__init__(
            message,
            code="TOKEN_EXPIRED",
            details={"expired_at": expired_at.isoformat()},
        )
        self.expired_at = expired_at


class NotBeforeError(JsonWebTokenError):
    """The token is not active yet."""

    def __init__(self, message: str, date: datetime):
        super().__init__(
            message,
            code="TOKEN_NOT_ACTIVE",
            details={"date": date.isoformat()},
        )
        self.date = date
