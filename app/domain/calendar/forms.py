"""
Booking and time-off forms

Forms carry local date/time fields in the company timezone. They are
converted to UTC payloads before anything is sent to the booking service,
and booking service records are converted back to form fields for editing.
"""

from typing import Optional

from pydantic import BaseModel, field_validator

from ...exceptions import ValidationError
from ...shared.timezone import parse_utc_instant, to_local_parts, to_utc_instant
from ...shared.validators import validate_date_str, validate_email, validate_time_str
from .schemas import (
    Booking,
    BookingPayload,
    BookingServiceSelection,
    TimeOff,
    TimeOffPayload,
)


def check_window(start_at: str, end_at: str) -> None:
    """Reject windows where start is not strictly before end"""
    if parse_utc_instant(start_at) >= parse_utc_instant(end_at):
        raise ValidationError("End time must be after start time")


class BookingForm(BaseModel):
    """Booking form as filled in on the calendar (company-local times)"""

    date: str
    start_time: str
    end_time: str
    services: list[BookingServiceSelection] = []
    customer_id: Optional[str] = None
    customer_first_name: Optional[str] = None
    customer_last_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("date")
    @classmethod
    def check_date(cls, v):
        return validate_date_str(v)

    @field_validator("start_time", "end_time")
    @classmethod
    def check_time(cls, v):
        return validate_time_str(v)

    @field_validator("customer_email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    def to_payload(self, zone: str) -> BookingPayload:
        """
        Convert to a UTC booking payload.

        Raises:
            InvalidLocalTime: start or end falls in a DST gap
            ValidationError: no services selected, no customer, or start >= end
        """
        if not self.services:
            raise ValidationError("Select at least one service")
        if not self.customer_id and not (self.customer_first_name or self.customer_last_name):
            raise ValidationError("Select a customer or enter the customer's name")

        start_datetime = to_utc_instant(self.date, self.start_time, zone)
        end_datetime = to_utc_instant(self.date, self.end_time, zone)
        check_window(start_datetime, end_datetime)

        return BookingPayload(
            start_datetime=start_datetime,
            end_datetime=end_datetime,
            services=self.services,
            customer_id=self.customer_id,
            customer_first_name=self.customer_first_name,
            customer_last_name=self.customer_last_name,
            customer_email=self.customer_email,
            customer_phone=self.customer_phone,
            description=self.description,
            notes=self.notes,
        )


class TimeOffForm(BaseModel):
    """Time-off form (company-local times, may span several days)"""

    start_date: str
    start_time: str
    end_date: str
    end_time: str
    user_id: str
    reason: Optional[str] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def check_date(cls, v):
        return validate_date_str(v)

    @field_validator("start_time", "end_time")
    @classmethod
    def check_time(cls, v):
        return validate_time_str(v)

    def to_payload(self, zone: str) -> TimeOffPayload:
        if not self.user_id:
            raise ValidationError("Select a staff member")

        start_datetime = to_utc_instant(self.start_date, self.start_time, zone)
        end_datetime = to_utc_instant(self.end_date, self.end_time, zone)
        check_window(start_datetime, end_datetime)

        return TimeOffPayload(
            start_datetime=start_datetime,
            end_datetime=end_datetime,
            user_id=self.user_id,
            reason=self.reason,
        )


def booking_to_form(booking: Booking, zone: str) -> BookingForm:
    """Pre-fill the edit form from an existing booking"""
    start = to_local_parts(booking.start_at, zone)
    end = to_local_parts(booking.end_at, zone)

    services = [
        BookingServiceSelection(
            service_id=line.service_id or (line.category_service.id if line.category_service else ""),
            user_id=line.user_id or (line.assigned_staff.id if line.assigned_staff else ""),
        )
        for line in booking.booking_services
    ]

    customer = booking.customer
    return BookingForm(
        date=start["date"],
        start_time=start["time"],
        end_time=end["time"],
        services=services,
        customer_id=booking.customer_id or (customer.id if customer else None),
        customer_first_name=customer.first_name if customer else None,
        customer_last_name=customer.last_name if customer else None,
        customer_email=customer.email if customer else None,
        customer_phone=customer.phone if customer else None,
        description=booking.description,
        notes=booking.notes,
    )


def time_off_to_form(time_off: TimeOff, zone: str) -> TimeOffForm:
    start = to_local_parts(time_off.start_date, zone)
    end = to_local_parts(time_off.end_date, zone)
    return TimeOffForm(
        start_date=start["date"],
        start_time=start["time"],
        end_date=end["date"],
        end_time=end["time"],
        user_id=time_off.user_id,
        reason=time_off.reason,
    )
