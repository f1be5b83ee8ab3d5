"""
Report period resolution

Maps a dashboard period (week / month / year / custom) to local-date bounds
in the company timezone, plus the preceding window of equal length.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from ...exceptions import ValidationError
from ...shared.timezone import today_in_timezone
from ...shared.validators import validate_date_str
from .schemas import ReportWindow

logger = logging.getLogger(__name__)

PERIOD_DAYS = {
    "week": 7,
    "month": 30,
    "year": 365,
}
DEFAULT_PERIOD = "week"


def _parse_date(value: str, label: str) -> date:
    try:
        return date.fromisoformat(validate_date_str(value))
    except ValueError as e:
        raise ValidationError(f"Invalid {label}: {e}")


def resolve_window(
    period: str,
    zone: str,
    custom_start: Optional[str] = None,
    custom_end: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ReportWindow:
    """
    Resolve the report window for a period.

    Predefined periods end "today" in the company zone and start N days
    earlier. Custom ranges use the given dates; their comparison window has
    the same number of days (at least one) and ends where the range starts.

    Raises:
        ValidationError: custom period with missing, malformed or reversed dates
    """
    period = (period or DEFAULT_PERIOD).strip().lower()

    if period == "custom":
        if not custom_start or not custom_end:
            raise ValidationError("Custom reports need both a start and an end date")

        start = _parse_date(custom_start, "start date")
        end = _parse_date(custom_end, "end date")
        if start > end:
            raise ValidationError("Start date must be on or before end date")

        days = max((end - start).days, 1)
        logger.debug(f"Custom report range {start} → {end} ({days} days)")
    else:
        if period not in PERIOD_DAYS:
            logger.warning(f"⚠️ Unknown report period '{period}', using {DEFAULT_PERIOD}")
            period = DEFAULT_PERIOD

        days = PERIOD_DAYS[period]
        end = date.fromisoformat(today_in_timezone(zone, now))
        start = end - timedelta(days=days)

    previous_start = start - timedelta(days=days)

    return ReportWindow(
        period=period,
        start_date=start.isoformat(),
        end_date=end.isoformat(),
        previous_start_date=previous_start.isoformat(),
    )
