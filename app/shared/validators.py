"""Shared validation and date utilities"""

import re
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from ..config import APP_TIMEZONE

EMAIL_PATTERN = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
MAX_EMAIL_LENGTH = 255


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    if len(email) > MAX_EMAIL_LENGTH:
        raise ValueError(f"Email must be at most {MAX_EMAIL_LENGTH} characters")

    if not re.match(EMAIL_PATTERN, email):
        raise ValueError("Please enter a valid email address")

    return email


def utc_now() -> datetime:
    """Naive UTC timestamp, the storage convention for every DateTime column"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def business_tz() -> ZoneInfo:
    return ZoneInfo(APP_TIMEZONE)


def to_utc_naive(value: datetime) -> datetime:
    """Normalize a datetime to naive UTC. Naive input is read as business-local time."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=business_tz())
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def to_business_time(value: datetime) -> datetime:
    """Convert a stored naive UTC datetime to business-local time"""
    return value.replace(tzinfo=timezone.utc).astimezone(business_tz())


def calculate_age(birth_date: date, today: Optional[date] = None) -> int:
    """Whole years since birth; one less if this year's birthday hasn't come yet"""
    today = today or date.today()
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age
