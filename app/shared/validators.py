"""Shared validation utilities"""

import re
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

BOOKING_STATUSES = ("pending", "scheduled", "confirmed", "completed", "cancelled", "no_show")

# Sentinel accepted by the calendar status filter for time-off blocks
TIMEOFF_FILTER_KEY = "timeoff"


def validate_date_str(value: str) -> str:
    """
    Validate a local date string.

    Args:
        value: Date in YYYY-MM-DD format

    Returns:
        The same string, stripped

    Raises:
        ValueError: If the string is not a real calendar date
    """
    if not value:
        raise ValueError("Date is required")

    value = value.strip()
    if not re.match(r"^\d{4}-\d{2}-\d{2}$", value):
        raise ValueError("Date must be in YYYY-MM-DD format")

    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise ValueError(f"Invalid date: {value}")

    return value


def validate_time_str(value: str) -> str:
    """
    Validate a 24-hour local time string.

    Args:
        value: Time in HH:MM format

    Returns:
        The time zero-padded to HH:MM

    Raises:
        ValueError: If the string is not a valid time of day
    """
    if not value:
        raise ValueError("Time is required")

    match = re.match(r"^(\d{1,2}):(\d{2})$", value.strip())
    if not match:
        raise ValueError("Time must be in HH:MM format")

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"Invalid time: {value}")

    return f"{hour:02d}:{minute:02d}"


def validate_timezone(zone: Optional[str]) -> str:
    """
    Validate an IANA timezone identifier.

    Raises:
        ValueError: If the zone is unknown
    """
    if not zone or not zone.strip():
        raise ValueError("Timezone is required")

    zone = zone.strip()
    try:
        ZoneInfo(zone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {zone}")

    return zone


def validate_booking_status(status: Optional[str]) -> str:
    """Normalize and validate a booking status"""
    normalized = (status or "").strip().lower()
    if normalized not in BOOKING_STATUSES:
        raise ValueError(f"Invalid booking status: {status}")
    return normalized


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

    # Basic email validation pattern
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email
