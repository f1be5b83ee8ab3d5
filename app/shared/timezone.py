"""
Timezone conversion utilities

All times from the booking service are UTC instants and are shown in the
company timezone. All times sent to the booking service are converted from
the company timezone back to UTC.

Every function takes the zone explicitly. The active company zone lives in
services.company_settings and is never read from here.
"""

from datetime import datetime, timezone
from typing import Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..exceptions import InvalidLocalTime, ValidationError

FormatStyle = Literal["date", "time", "datetime"]

# Fixed en-US month names so output never depends on the process locale
MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
WEEKDAY_ABBR = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def get_zone(zone: str) -> ZoneInfo:
    """Resolve an IANA zone id, raising ValidationError for unknown ids"""
    try:
        return ZoneInfo(zone)
    except (ZoneInfoNotFoundError, ValueError, TypeError):
        raise ValidationError(f"Unknown timezone: {zone}")


def parse_utc_instant(value: str) -> datetime:
    """
    Parse an ISO-8601 instant into an aware UTC datetime.

    Accepts a trailing "Z" or an explicit offset. Naive strings are
    treated as UTC, which is what the booking service returns.
    """
    if not value:
        raise ValidationError("Missing timestamp")

    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid timestamp: {value}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_utc_instant(moment: datetime) -> str:
    """Serialize an aware datetime as e.g. 2026-02-14T10:00:00.000Z"""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    utc = moment.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_local_datetime(utc_instant: str, zone: str) -> datetime:
    """Return the instant as an aware datetime in the given zone"""
    return parse_utc_instant(utc_instant).astimezone(get_zone(zone))


def to_local_parts(utc_instant: str, zone: str) -> dict[str, str]:
    """
    Split a UTC instant into local form fields.

    Returns:
        {"date": "YYYY-MM-DD", "time": "HH:MM"} in the given zone (24-hour)
    """
    local = to_local_datetime(utc_instant, zone)
    return {"date": local.strftime("%Y-%m-%d"), "time": local.strftime("%H:%M")}


def to_utc_instant(date_str: str, time_str: str, zone: str) -> str:
    """
    Build a UTC ISO string from local date and time fields.

    Ambiguous wall-clock times (autumn fall-back) resolve to the first
    occurrence. Times inside a spring-forward gap do not exist and raise
    InvalidLocalTime instead of being shifted.

    Raises:
        ValidationError: Malformed date/time or unknown zone
        InvalidLocalTime: The local time falls in a DST gap
    """
    tz = get_zone(zone)
    try:
        naive = datetime.strptime(f"{date_str} {time_str}", "%Y-%m-%d %H:%M")
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid local date/time: {date_str} {time_str}")

    local = naive.replace(tzinfo=tz, fold=0)
    utc = local.astimezone(timezone.utc)

    # A gap time does not survive the round trip back to wall-clock
    if utc.astimezone(tz).replace(tzinfo=None) != naive:
        raise InvalidLocalTime(date_str, time_str, zone)

    return format_utc_instant(utc)


def _format_time(local: datetime) -> str:
    hour = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return f"{hour:02d}:{local.minute:02d} {suffix}"


def _format_date(local: datetime) -> str:
    return f"{MONTH_ABBR[local.month - 1]} {local.day}, {local.year}"


def format_in_timezone(utc_instant: str, zone: str, style: FormatStyle = "datetime") -> str:
    """
    Format a UTC instant for display in the given zone.

    Styles (en-US, 12-hour):
        date      "Feb 14, 2026"
        time      "10:00 AM"
        datetime  "Feb 14, 2026, 10:00 AM"
    """
    local = to_local_datetime(utc_instant, zone)

    if style == "date":
        return _format_date(local)
    if style == "time":
        return _format_time(local)
    if style == "datetime":
        return f"{_format_date(local)}, {_format_time(local)}"

    raise ValidationError(f"Unknown format style: {style}")


def weekday_abbr(utc_instant: str, zone: str) -> str:
    """Short weekday name (Mon..Sun) of the instant's local calendar day"""
    return WEEKDAY_ABBR[to_local_datetime(utc_instant, zone).weekday()]


def today_in_timezone(zone: str, now: Optional[datetime] = None) -> str:
    """Local calendar date (YYYY-MM-DD) of `now` (default: current time) in the zone"""
    moment = now or datetime.now(timezone.utc)
    return to_local_parts(format_utc_instant(moment), zone)["date"]
