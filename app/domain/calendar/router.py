"""Calendar router - FastAPI endpoints for the calendar view"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from ...exceptions import RecordNotFound
from ...schemas import envelope
from ...services.company_settings import CompanySettings
from .forms import BookingForm, TimeOffForm, booking_to_form, time_off_to_form
from .reconciler import CalendarReconciler
from .schemas import StatusUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["Calendar"])


def get_reconciler(request: Request) -> CalendarReconciler:
    """Dependency injection for the session's CalendarReconciler"""
    return request.app.state.reconciler


def get_company_settings(request: Request) -> CompanySettings:
    return request.app.state.company_settings


def _dump(events) -> list[dict]:
    return [event.model_dump() for event in events]


# ============================================================================
# EVENTS
# ============================================================================


@router.get("/events")
async def load_events(
    start: str = Query(..., description="Range start (YYYY-MM-DD or ISO instant)"),
    end: str = Query(..., description="Range end, exclusive"),
    status: Optional[list[str]] = Query(None, description="Statuses to show; 'timeoff' for time-offs"),
    reconciler: CalendarReconciler = Depends(get_reconciler),
):
    """Load the visible range and return its events"""
    if status is not None:
        reconciler.set_status_filter(status)
    events = await reconciler.load_range(start, end)
    return envelope(_dump(events))


@router.get("/events/current")
async def current_events(reconciler: CalendarReconciler = Depends(get_reconciler)):
    """Events of the current range without reloading"""
    return envelope(
        {
            "range": list(reconciler.current_range) if reconciler.current_range else None,
            "status_filter": sorted(reconciler.status_filter),
            "is_loading": reconciler.is_loading,
            "events": _dump(reconciler.events),
        }
    )


# ============================================================================
# BOOKINGS
# ============================================================================


@router.post("/bookings")
async def create_booking(
    form: BookingForm,
    reconciler: CalendarReconciler = Depends(get_reconciler),
    settings: CompanySettings = Depends(get_company_settings),
):
    """Create a booking from company-local form fields"""
    event = await reconciler.create_booking(form.to_payload(settings.timezone))
    return envelope(event.model_dump(), "Booking created successfully")


@router.get("/bookings/{booking_id}/form")
async def booking_form(
    booking_id: str,
    reconciler: CalendarReconciler = Depends(get_reconciler),
    settings: CompanySettings = Depends(get_company_settings),
):
    """Edit-form fields for a visible booking, in company-local time"""
    booking = next((b for b in reconciler.bookings if b.id == booking_id), None)
    if not booking:
        raise RecordNotFound(f"Booking {booking_id} is not on the calendar")
    return envelope(booking_to_form(booking, settings.timezone).model_dump())


@router.put("/bookings/{booking_id}")
async def update_booking(
    booking_id: str,
    form: BookingForm,
    reconciler: CalendarReconciler = Depends(get_reconciler),
    settings: CompanySettings = Depends(get_company_settings),
):
    events = await reconciler.update_booking(booking_id, form.to_payload(settings.timezone))
    return envelope(_dump(events), "Booking updated successfully")


@router.patch("/bookings/{booking_id}/status")
async def change_booking_status(
    booking_id: str,
    data: StatusUpdate,
    reconciler: CalendarReconciler = Depends(get_reconciler),
):
    event = await reconciler.change_status(booking_id, data.status)
    return envelope(event.model_dump() if event else None, "Booking status updated")


@router.delete("/bookings/{booking_id}")
async def delete_booking(booking_id: str, reconciler: CalendarReconciler = Depends(get_reconciler)):
    await reconciler.delete_booking(booking_id)
    return envelope(None, "Booking deleted")


# ============================================================================
# TIME-OFFS
# ============================================================================


@router.post("/time-offs")
async def create_time_off(
    form: TimeOffForm,
    reconciler: CalendarReconciler = Depends(get_reconciler),
    settings: CompanySettings = Depends(get_company_settings),
):
    event = await reconciler.create_time_off(form.to_payload(settings.timezone))
    return envelope(event.model_dump(), "Time off created successfully")


@router.get("/time-offs/{time_off_id}/form")
async def time_off_form(
    time_off_id: str,
    reconciler: CalendarReconciler = Depends(get_reconciler),
    settings: CompanySettings = Depends(get_company_settings),
):
    time_off = next((t for t in reconciler.time_offs if t.id == time_off_id), None)
    if not time_off:
        raise RecordNotFound(f"Time off {time_off_id} is not on the calendar")
    return envelope(time_off_to_form(time_off, settings.timezone).model_dump())


@router.put("/time-offs/{time_off_id}")
async def update_time_off(
    time_off_id: str,
    form: TimeOffForm,
    reconciler: CalendarReconciler = Depends(get_reconciler),
    settings: CompanySettings = Depends(get_company_settings),
):
    events = await reconciler.update_time_off(time_off_id, form.to_payload(settings.timezone))
    return envelope(_dump(events), "Time off updated successfully")


@router.delete("/time-offs/{time_off_id}")
async def delete_time_off(time_off_id: str, reconciler: CalendarReconciler = Depends(get_reconciler)):
    await reconciler.delete_time_off(time_off_id)
    return envelope(None, "Time off deleted")
