"""Shared helpers for building requests and dates in tests."""

from datetime import date, timedelta

from meetday.models import User
from meetday.security_utils import create_access_token
from meetday.shared.validators import today_utc


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def days_from_today(n: int) -> date:
    return today_utc() + timedelta(days=n)


def iso_days_from_today(n: int) -> str:
    return days_from_today(n).isoformat()
