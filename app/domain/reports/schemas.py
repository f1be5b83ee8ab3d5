"""Report domain schemas - Pydantic models for dashboard analytics"""

from typing import Optional

from pydantic import BaseModel

# Slots tracked in status_breakdown. "scheduled" has no slot of its own.
BREAKDOWN_STATUSES = ("completed", "pending", "cancelled", "confirmed", "no_show")


class StaffData(BaseModel):
    name: str
    count: int = 0
    revenue: float = 0.0


class ServiceData(BaseModel):
    count: int = 0
    revenue: float = 0.0


class StaffPerformance(BaseModel):
    id: str
    name: str
    bookings: int
    revenue: float
    average_per_booking: float


class Comparison(BaseModel):
    bookings_change: float = 0.0
    revenue_change: float = 0.0


class ReportData(BaseModel):
    """Aggregated bookings report for one period. Currency in major units."""

    period: str
    start_date: str
    end_date: str
    total_bookings: int = 0
    completed_bookings: int = 0
    cancelled_bookings: int = 0
    pending_bookings: int = 0
    total_revenue: float = 0.0
    average_booking_value: float = 0.0
    completion_rate: float = 0.0
    bookings_by_day: dict[str, int] = {}
    revenue_by_day: dict[str, float] = {}
    bookings_by_staff: dict[str, StaffData] = {}
    bookings_by_service: dict[str, ServiceData] = {}
    status_breakdown: dict[str, int] = {status: 0 for status in BREAKDOWN_STATUSES}
    comparison: Comparison = Comparison()
    staff_performance: list[StaffPerformance] = []


class ReportWindow(BaseModel):
    """Local-date bounds of a report and of the period it is compared against"""

    period: str
    start_date: str
    end_date: str
    previous_start_date: str

    @property
    def cache_key(self) -> str:
        return report_cache_key(self.period, self.start_date, self.end_date)


class ReportState(BaseModel):
    """What the dashboard shows: the last good report plus loading/staleness flags"""

    report: Optional[ReportData] = None
    cache_key: Optional[str] = None
    is_loading: bool = False
    is_stale: bool = False
    error: Optional[str] = None


def report_cache_key(
    period: str, custom_start: Optional[str] = None, custom_end: Optional[str] = None
) -> str:
    """Period alone for predefined periods, period + range for custom"""
    if period == "custom" and custom_start and custom_end:
        return f"{period}-{custom_start}-{custom_end}"
    return period
