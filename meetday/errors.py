"""
API error taxonomy.

Every failure leaves the API as {"detail": {"reason": <code>, "message": <text>}}.
Reasons are stable machine-readable codes; messages are short and never contain
driver or SQL text.
"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError

from .models import BUSYDAY_UNIQUE_CONSTRAINT, INVITATION_DATE_UNIQUE_CONSTRAINT

logger = logging.getLogger(__name__)


class ApiError(HTTPException):
    status_code = 500
    default_reason = "internal_error"

    def __init__(
        self,
        reason: Optional[str] = None,
        message: Optional[str] = None,
        headers: Optional[dict] = None,
    ):
        self.reason = reason or self.default_reason
        super().__init__(
            status_code=self.status_code,
            detail={"reason": self.reason, "message": message or self.reason.replace("_", " ")},
            headers=headers,
        )


class BadRequest(ApiError):
    status_code = 400
    default_reason = "bad_request"


class Unauthorized(ApiError):
    status_code = 401
    default_reason = "unauthorized"

    def __init__(self, reason: Optional[str] = None, message: Optional[str] = None):
        super().__init__(reason, message, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(ApiError):
    status_code = 403
    default_reason = "forbidden"


class NotFound(ApiError):
    status_code = 404
    default_reason = "not_found"


class Conflict(ApiError):
    status_code = 409
    default_reason = "conflict"


class InternalError(ApiError):
    status_code = 500
    default_reason = "internal_error"


# Markers that identify a unique violation across PostgreSQL and SQLite drivers
_UNIQUE_MARKERS = (
    BUSYDAY_UNIQUE_CONSTRAINT,
    INVITATION_DATE_UNIQUE_CONSTRAINT,
    "duplicate key",
    "unique constraint",
)


def map_integrity_error(exc: IntegrityError) -> ApiError:
    """
    Translate a storage constraint violation into an API error.

    Unique violations become Conflict; a busyday collision gets the day_busy reason.
    Anything else is an InternalError. The raw error is logged, not returned.
    """
    message = str(exc.orig if exc.orig is not None else exc).lower()

    if BUSYDAY_UNIQUE_CONSTRAINT in message or "busydays.user_id, busydays.date" in message:
        logger.warning("Busyday unique constraint violated (concurrent claim)")
        return Conflict("day_busy", "selected day is already busy")

    if any(marker in message for marker in _UNIQUE_MARKERS):
        logger.warning(f"Unique constraint violated: {type(exc.orig).__name__}")
        return Conflict()

    logger.error(f"❌ Unexpected integrity error: {message}")
    return InternalError()
