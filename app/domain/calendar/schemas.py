"""Calendar domain schemas - Pydantic models for bookings, time-offs and rendered events"""

from typing import Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, Field, field_validator

from ...shared.validators import validate_booking_status, validate_email

BookingStatus = Literal["pending", "scheduled", "confirmed", "completed", "cancelled", "no_show"]
EventType = Literal["booking", "timeoff"]


class PersonRef(BaseModel):
    """Denormalized staff/customer snapshot embedded in booking service records"""

    id: Optional[str] = None
    first_name: Optional[str] = ""
    last_name: Optional[str] = ""
    email: Optional[str] = None
    phone: Optional[str] = None

    class Config:
        extra = "ignore"

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class ServiceRef(BaseModel):
    """Catalogue service as embedded in a booking line"""

    id: Optional[str] = None
    name: Optional[str] = None
    duration: Optional[int] = None
    price: Optional[int] = 0
    discount_price: Optional[int] = None

    class Config:
        extra = "ignore"


class BookingServiceLine(BaseModel):
    """One (service, assigned staff, price) line of a booking. Prices in cents."""

    id: Optional[str] = None
    service_id: Optional[str] = None
    user_id: Optional[str] = None
    price: Optional[int] = 0
    assigned_staff: Optional[PersonRef] = None
    category_service: Optional[ServiceRef] = None

    class Config:
        extra = "ignore"


class Booking(BaseModel):
    """Booking as returned by the booking service. Times are UTC ISO strings."""

    id: str
    start_at: str
    end_at: str
    status: str = "pending"
    total_price: int = 0
    customer_id: Optional[str] = None
    customer: Optional[PersonRef] = None
    booking_services: list[BookingServiceLine] = []
    notes: Optional[str] = None
    description: Optional[str] = None
    user_ids: Optional[list[str]] = None

    class Config:
        extra = "ignore"

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v) if v is not None else v

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        return (v or "pending").lower()

    @field_validator("total_price", mode="before")
    @classmethod
    def default_price(cls, v):
        return v or 0


class TimeOff(BaseModel):
    """Staff time-off block. The service may send start_at/end_at or start_date/end_date."""

    id: str
    start_date: str = Field(validation_alias=AliasChoices("start_date", "start_at"))
    end_date: str = Field(validation_alias=AliasChoices("end_date", "end_at"))
    user_id: str
    reason: Optional[str] = None
    user: Optional[PersonRef] = None

    class Config:
        extra = "ignore"
        populate_by_name = True

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v) if v is not None else v


class Customer(BaseModel):
    """Customer list entry, used only to resolve display names"""

    id: str
    first_name: Optional[str] = ""
    last_name: Optional[str] = ""
    email: Optional[str] = None
    phone: Optional[str] = None

    class Config:
        extra = "ignore"

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class CalendarEvent(BaseModel):
    """Renderable calendar entry derived from a booking or time-off"""

    id: str
    title: str
    start: str
    end: str
    backgroundColor: str
    borderColor: str
    textColor: str
    type: EventType
    originalEvent: Union[Booking, TimeOff]
    staffIds: list[str] = []

    class Config:
        frozen = True


# ============================================================================
# REQUEST PAYLOADS (sent to the booking service, UTC times)
# ============================================================================


class BookingServiceSelection(BaseModel):
    """Service + staff pair chosen in the booking form"""

    service_id: str
    user_id: str


class BookingPayload(BaseModel):
    """Schema for creating or updating a booking"""

    start_datetime: str
    end_datetime: str
    services: list[BookingServiceSelection]
    customer_id: Optional[str] = None
    customer_first_name: Optional[str] = None
    customer_last_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("customer_email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)


class TimeOffPayload(BaseModel):
    """Schema for creating or updating a time-off block"""

    start_datetime: str
    end_datetime: str
    user_id: str
    reason: Optional[str] = None


class StatusUpdate(BaseModel):
    """Schema for a booking status change"""

    status: str

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return validate_booking_status(v)


def dump_payload(payload: BaseModel) -> dict[str, Any]:
    """Serialize a payload for the booking service, dropping unset optionals"""
    return payload.model_dump(exclude_none=True)
