"""Shared validation utilities"""

from datetime import date, datetime, timezone
from typing import Optional

from ..errors import BadRequest


def today_utc() -> date:
    """The current calendar day. All dates are timezone-less days anchored to UTC."""
    return datetime.now(timezone.utc).date()


def parse_iso_date(value: Optional[str]) -> date:
    """
    Parse a strict YYYY-MM-DD calendar date.

    Raises:
        BadRequest: If the value is missing or not an ISO calendar date
    """
    # strptime also accepts non-ASCII digits
    if not isinstance(value, str) or len(value) != 10 or not value.isascii():
        raise BadRequest("invalid_date", f"invalid date format `{value}`, expected YYYY-MM-DD")
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as e:
        raise BadRequest(
            "invalid_date", f"invalid date format `{value}`, expected YYYY-MM-DD"
        ) from e


def parse_date_range(start: Optional[str], end: Optional[str]) -> tuple[date, date]:
    """Parse an inclusive [start, end] range, requiring start <= end"""
    from_date = parse_iso_date(start)
    to_date = parse_iso_date(end)
    if from_date > to_date:
        raise BadRequest("invalid_range", "`from` must be <= `to`")
    return from_date, to_date


def parse_proposed_dates(values: list[str], today: date) -> list[date]:
    """
    Validate a proposed-date list: non-empty, well formed, not in the past, pairwise distinct.

    Returns the parsed dates in the caller's order.
    """
    if not values:
        raise BadRequest("dates_empty", "dates cannot be empty")

    parsed: list[date] = []
    seen: set[date] = set()
    for raw in values:
        day = parse_iso_date(raw)
        if day < today:
            raise BadRequest("date_in_past", "past dates are not allowed")
        if day in seen:
            raise BadRequest("dates_not_unique", "dates must be unique")
        seen.add(day)
        parsed.append(day)
    return parsed
