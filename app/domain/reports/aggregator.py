"""
Bookings report aggregation

Buckets a window's bookings by status, weekday, staff and service, and
compares totals against the preceding window of equal length.

Prices arrive in cents and are summed as integers; they are converted to
major currency units once, when the report is built.
"""

from collections import defaultdict
from collections.abc import Iterable

from ...shared.timezone import weekday_abbr
from ..calendar.schemas import Booking, BookingServiceLine
from .schemas import (
    BREAKDOWN_STATUSES,
    Comparison,
    ReportData,
    ReportWindow,
    ServiceData,
    StaffData,
    StaffPerformance,
)

UNASSIGNED_STAFF_ID = "unassigned"
UNASSIGNED_STAFF_NAME = "Unassigned"
UNKNOWN_SERVICE_NAME = "Unknown"


def to_major_units(cents: int) -> float:
    return (cents or 0) / 100


def percent_change(current: float, previous: float) -> float:
    """Percentage change vs. previous; 0 when there is nothing to compare against"""
    if previous > 0:
        return (current - previous) / previous * 100
    return 0.0


def _staff_line_price(line: BookingServiceLine) -> int:
    """Staff revenue uses the catalogue price, discounted when a discount is set"""
    service = line.category_service
    if not service:
        return 0
    return service.discount_price or service.price or 0


def _completed_revenue_cents(bookings: Iterable[Booking]) -> int:
    return sum(b.total_price or 0 for b in bookings if b.status == "completed")


def aggregate_report(
    current: list[Booking],
    previous: list[Booking],
    window: ReportWindow,
    zone: str,
) -> ReportData:
    """
    Build the dashboard report for `current`, compared against `previous`.

    Weekday buckets use the booking's local start day in `zone`.
    """
    completed = cancelled = pending = 0
    revenue_cents = 0
    status_breakdown = {status: 0 for status in BREAKDOWN_STATUSES}
    bookings_by_day: dict[str, int] = defaultdict(int)
    revenue_by_day_cents: dict[str, int] = {}
    staff_names: dict[str, str] = {}
    staff_counts: dict[str, int] = {}
    staff_revenue_cents: dict[str, int] = {}
    service_counts: dict[str, int] = {}
    service_revenue_cents: dict[str, int] = {}

    for booking in current:
        status = booking.status
        is_completed = status == "completed"

        if status in status_breakdown:
            status_breakdown[status] += 1

        if is_completed:
            completed += 1
            revenue_cents += booking.total_price or 0
        elif status == "cancelled":
            cancelled += 1
        else:
            pending += 1

        if booking.start_at:
            day = weekday_abbr(booking.start_at, zone)
            bookings_by_day[day] += 1
            if is_completed:
                revenue_by_day_cents[day] = revenue_by_day_cents.get(day, 0) + (booking.total_price or 0)

        for line in booking.booking_services:
            staff = line.assigned_staff
            staff_id = staff.id if staff and staff.id else UNASSIGNED_STAFF_ID
            if staff_id not in staff_names:
                staff_names[staff_id] = (staff.full_name if staff else "") or UNASSIGNED_STAFF_NAME
                staff_revenue_cents[staff_id] = 0
            # One per staff member seen in the window, not a per-booking tally
            staff_counts[staff_id] = 1
            if is_completed:
                staff_revenue_cents[staff_id] += _staff_line_price(line)

            service_name = (line.category_service.name if line.category_service else None) or UNKNOWN_SERVICE_NAME
            service_counts[service_name] = service_counts.get(service_name, 0) + 1
            service_revenue_cents.setdefault(service_name, 0)
            if is_completed:
                service_revenue_cents[service_name] += line.price or 0

    total = len(current)
    total_revenue = to_major_units(revenue_cents)

    bookings_by_staff = {
        staff_id: StaffData(
            name=staff_names[staff_id],
            count=staff_counts[staff_id],
            revenue=to_major_units(staff_revenue_cents[staff_id]),
        )
        for staff_id in staff_names
    }

    staff_performance = [
        StaffPerformance(
            id=staff_id,
            name=data.name,
            bookings=data.count,
            revenue=data.revenue,
            average_per_booking=data.revenue / data.count if data.count > 0 else 0.0,
        )
        for staff_id, data in bookings_by_staff.items()
    ]

    previous_total = len(previous)
    previous_revenue = to_major_units(_completed_revenue_cents(previous))

    return ReportData(
        period=window.period,
        start_date=window.start_date,
        end_date=window.end_date,
        total_bookings=total,
        completed_bookings=completed,
        cancelled_bookings=cancelled,
        pending_bookings=pending,
        total_revenue=total_revenue,
        average_booking_value=total_revenue / completed if completed > 0 else 0.0,
        completion_rate=completed / total * 100 if total > 0 else 0.0,
        bookings_by_day=dict(bookings_by_day),
        revenue_by_day={day: to_major_units(cents) for day, cents in revenue_by_day_cents.items()},
        bookings_by_staff=bookings_by_staff,
        bookings_by_service={
            name: ServiceData(count=service_counts[name], revenue=to_major_units(service_revenue_cents[name]))
            for name in service_counts
        },
        status_breakdown=status_breakdown,
        comparison=Comparison(
            bookings_change=percent_change(total, previous_total),
            revenue_change=percent_change(total_revenue, previous_revenue),
        ),
        staff_performance=staff_performance,
    )
