"""
Calendar event projection

Turns booking and time-off records into renderable calendar events.
Pure functions: the same inputs always produce the same event list.
"""

from collections.abc import Iterable
from typing import Optional

from ...shared.validators import TIMEOFF_FILTER_KEY
from .schemas import Booking, CalendarEvent, TimeOff

BOOKING_EVENT_PREFIX = "booking-"
TIMEOFF_EVENT_PREFIX = "timeoff-"

UNKNOWN_CUSTOMER_TITLE = "Unknown Customer"
TIMEOFF_TITLE = "Time Off"

# status -> (background, border, text)
STATUS_COLORS: dict[str, dict[str, str]] = {
    "pending": {"background": "#FEF3C7", "border": "#F59E0B", "text": "#92400E"},
    "scheduled": {"background": "#FEF3C7", "border": "#F59E0B", "text": "#92400E"},
    "confirmed": {"background": "#D1FAE5", "border": "#10B981", "text": "#065F46"},
    "completed": {"background": "#DBEAFE", "border": "#3B82F6", "text": "#1E40AF"},
    "cancelled": {"background": "#FEE2E2", "border": "#EF4444", "text": "#991B1B"},
    "no_show": {"background": "#EDE9FE", "border": "#8B5CF6", "text": "#5B21B6"},
}
DEFAULT_COLORS = {"background": "#E0E7FF", "border": "#6366F1", "text": "#3730A3"}
TIMEOFF_COLORS = {"background": "#F3F4F6", "border": "#9CA3AF", "text": "#374151"}


def booking_event_id(booking_id: str) -> str:
    return f"{BOOKING_EVENT_PREFIX}{booking_id}"


def timeoff_event_id(time_off_id: str) -> str:
    return f"{TIMEOFF_EVENT_PREFIX}{time_off_id}"


def get_status_colors(status: Optional[str]) -> dict[str, str]:
    """Color triple for a booking status, indigo for anything unrecognized"""
    return STATUS_COLORS.get((status or "").lower(), DEFAULT_COLORS)


def booking_title(booking: Booking, customer_names: Optional[dict[str, str]] = None) -> str:
    """Customer full name, falling back to the customer list, then a placeholder"""
    if booking.customer and booking.customer.full_name:
        return booking.customer.full_name

    customer_id = booking.customer_id or (booking.customer.id if booking.customer else None)
    if customer_names and customer_id and customer_names.get(customer_id):
        return customer_names[customer_id].strip()

    return UNKNOWN_CUSTOMER_TITLE


def timeoff_title(time_off: TimeOff, staff_names: Optional[dict[str, str]] = None) -> str:
    name = time_off.user.full_name if time_off.user else ""
    if not name and staff_names:
        name = (staff_names.get(time_off.user_id) or "").strip()
    return f"{TIMEOFF_TITLE} - {name}" if name else TIMEOFF_TITLE


def booking_staff_ids(booking: Booking) -> list[str]:
    """Staff ids assigned across the booking lines, in line order without repeats"""
    staff_ids: list[str] = []
    for line in booking.booking_services:
        staff_id = line.assigned_staff.id if line.assigned_staff and line.assigned_staff.id else line.user_id
        if staff_id and staff_id not in staff_ids:
            staff_ids.append(staff_id)
    return staff_ids


def booking_to_event(booking: Booking, customer_names: Optional[dict[str, str]] = None) -> CalendarEvent:
    colors = get_status_colors(booking.status)
    return CalendarEvent(
        id=booking_event_id(booking.id),
        title=booking_title(booking, customer_names),
        start=booking.start_at,
        end=booking.end_at,
        backgroundColor=colors["background"],
        borderColor=colors["border"],
        textColor=colors["text"],
        type="booking",
        originalEvent=booking,
        staffIds=booking_staff_ids(booking),
    )


def timeoff_to_event(time_off: TimeOff, staff_names: Optional[dict[str, str]] = None) -> CalendarEvent:
    return CalendarEvent(
        id=timeoff_event_id(time_off.id),
        title=timeoff_title(time_off, staff_names),
        start=time_off.start_date,
        end=time_off.end_date,
        backgroundColor=TIMEOFF_COLORS["background"],
        borderColor=TIMEOFF_COLORS["border"],
        textColor=TIMEOFF_COLORS["text"],
        type="timeoff",
        originalEvent=time_off,
        staffIds=[time_off.user_id],
    )


def booking_passes_filter(booking: Booking, status_filter: Optional[Iterable[str]]) -> bool:
    statuses = set(status_filter or ())
    return not statuses or booking.status in statuses


def timeoff_passes_filter(status_filter: Optional[Iterable[str]]) -> bool:
    statuses = set(status_filter or ())
    return not statuses or TIMEOFF_FILTER_KEY in statuses


def project(
    bookings: Iterable[Booking],
    time_offs: Iterable[TimeOff],
    status_filter: Optional[Iterable[str]] = None,
    customer_names: Optional[dict[str, str]] = None,
    staff_names: Optional[dict[str, str]] = None,
) -> list[CalendarEvent]:
    """
    Build the calendar event list.

    Booking events come first, then time-off events, each in input order.
    An empty filter shows everything; otherwise bookings need their status
    in the filter and time-offs need the "timeoff" key.
    """
    statuses = set(status_filter or ())

    events = [
        booking_to_event(booking, customer_names)
        for booking in bookings
        if booking_passes_filter(booking, statuses)
    ]

    if timeoff_passes_filter(statuses):
        events.extend(timeoff_to_event(time_off, staff_names) for time_off in time_offs)

    return events
