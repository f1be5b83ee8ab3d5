"""
Calendar reconciler

Keeps the visible calendar (bookings + time-offs for the current date range)
in sync with the booking service across navigation and user actions.

- load_range replaces the visible set. Duplicate requests for a range that is
  already loading join the in-flight fetch; a response for a range that is no
  longer the latest request is discarded.
- create and status changes are applied locally once the service confirms.
- edits reload the current range, since the record may have moved out of it.
- deletes remove the event locally once the service confirms.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from enum import Enum
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from ...exceptions import InvalidLocalTime, RecordNotFound, RemoteRequestFailed, ValidationError
from ...services.booking_api import BookingApiClient
from ...services.company_settings import CompanySettings
from ...shared.timezone import parse_utc_instant, to_utc_instant
from ...shared.validators import BOOKING_STATUSES, TIMEOFF_FILTER_KEY
from .events import booking_event_id, booking_to_event, project, timeoff_event_id, timeoff_to_event
from .forms import check_window
from .schemas import (
    Booking,
    BookingPayload,
    CalendarEvent,
    Customer,
    TimeOff,
    TimeOffPayload,
    dump_payload,
)

logger = logging.getLogger(__name__)

EventListener = Callable[[list[CalendarEvent]], Any]


class RecordState(str, Enum):
    ABSENT = "absent"
    VISIBLE = "visible"
    PENDING_MUTATION = "pending-mutation"
    VISIBLE_REVERTED = "visible-reverted"


def _parse_records(model, raw: Any, kind: str) -> list:
    """Validate service records, skipping malformed ones and duplicate ids"""
    records = []
    seen: set[str] = set()
    for item in raw or []:
        try:
            record = model.model_validate(item)
        except PydanticValidationError as e:
            logger.warning(f"⚠️ Skipping malformed {kind}: {e.error_count()} error(s)")
            continue

        start, end = (
            (record.start_at, record.end_at) if kind == "booking" else (record.start_date, record.end_date)
        )
        try:
            check_window(start, end)
        except ValidationError:
            logger.warning(f"⚠️ Skipping {kind} {record.id} with invalid time window")
            continue

        if record.id in seen:
            logger.warning(f"⚠️ Skipping duplicate {kind} {record.id}")
            continue
        seen.add(record.id)
        records.append(record)
    return records


def _parse_records_loose(model, raw: Any) -> list:
    """Validate lookup records, skipping anything malformed"""
    records = []
    for item in raw or []:
        try:
            records.append(model.model_validate(item))
        except PydanticValidationError:
            continue
    return records


class CalendarReconciler:
    """Single-owner view of the calendar for one session"""

    def __init__(self, api: BookingApiClient, settings: CompanySettings):
        self.api = api
        self.settings = settings

        self._bookings: list[Booking] = []
        self._time_offs: list[TimeOff] = []
        self._status_filter: set[str] = set()
        self._customer_names: Optional[dict[str, str]] = None
        self._states: dict[str, RecordState] = {}
        self._listeners: list[EventListener] = []

        self.current_range: Optional[tuple[str, str]] = None
        self._load_seq = 0
        self._requested_seq = 0
        self._inflight: dict[tuple[str, str], tuple[int, asyncio.Future]] = {}

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def bookings(self) -> tuple[Booking, ...]:
        return tuple(self._bookings)

    @property
    def time_offs(self) -> tuple[TimeOff, ...]:
        return tuple(self._time_offs)

    @property
    def status_filter(self) -> frozenset[str]:
        return frozenset(self._status_filter)

    @property
    def is_loading(self) -> bool:
        return bool(self._inflight)

    @property
    def events(self) -> list[CalendarEvent]:
        return project(
            self._bookings,
            self._time_offs,
            self._status_filter,
            customer_names=self._customer_names,
            staff_names=self._staff_names(),
        )

    def _staff_names(self) -> dict[str, str]:
        names: dict[str, str] = {}
        for booking in self._bookings:
            for line in booking.booking_services:
                staff = line.assigned_staff
                if staff and staff.id and staff.full_name:
                    names.setdefault(staff.id, staff.full_name)
        return names

    def record_state(self, event_id: str) -> RecordState:
        if event_id in self._states:
            return self._states[event_id]
        if any(booking_event_id(b.id) == event_id for b in self._bookings) or any(
            timeoff_event_id(t.id) == event_id for t in self._time_offs
        ):
            return RecordState.VISIBLE
        return RecordState.ABSENT

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register a listener called with the new event list after every change"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        events = self.events
        for listener in list(self._listeners):
            try:
                listener(events)
            except Exception as e:
                logger.error(f"❌ Calendar listener failed: {e}")

    def set_status_filter(self, statuses: Optional[Iterable[str]]) -> list[CalendarEvent]:
        """Change the active status filter and re-project without reloading"""
        normalized = {s.strip().lower() for s in statuses or () if s and s.strip()}
        unknown = normalized - set(BOOKING_STATUSES) - {TIMEOFF_FILTER_KEY}
        if unknown:
            raise ValidationError(f"Unknown status filter: {', '.join(sorted(unknown))}")

        self._status_filter = normalized
        self._notify()
        return self.events

    def reset(self) -> None:
        """Forget everything (logout). In-flight loads are discarded when they land."""
        self._bookings = []
        self._time_offs = []
        self._status_filter = set()
        self._customer_names = None
        self._states = {}
        self.current_range = None
        self._load_seq += 1
        self._requested_seq = self._load_seq
        # Loads started before the reset must never be joined again
        self._inflight = {}
        self._notify()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_range(self, start: str, end: str, force: bool = False) -> list[CalendarEvent]:
        """
        Load bookings and time-offs for [start, end) and replace the visible set.

        A request for a range that is already loading joins that fetch unless
        `force` is set (used after edits, where the in-flight data may predate
        the change). Only the most recently requested load is applied.
        """
        self._range_bounds(start, end)

        key = (start, end)
        inflight = self._inflight.get(key)
        if inflight and not force:
            seq, future = inflight
            logger.debug(f"Joining in-flight calendar load {start} → {end}")
            self._requested_seq = seq
            return await asyncio.shield(future)

        self._load_seq += 1
        seq = self._load_seq
        self._requested_seq = seq

        future = asyncio.ensure_future(self._load(key, seq))
        self._inflight[key] = (seq, future)
        return await asyncio.shield(future)

    async def reload(self) -> list[CalendarEvent]:
        """Reload the current range, if any"""
        if not self.current_range:
            return self.events
        start, end = self.current_range
        logger.info(f"🔄 Reloading calendar {start} → {end}")
        return await self.load_range(start, end, force=True)

    async def _reload_after_edit(self) -> list[CalendarEvent]:
        # The edit is already saved; a failed refresh keeps the old view
        try:
            return await self.reload()
        except RemoteRequestFailed as e:
            logger.warning(f"⚠️ Edit saved but calendar reload failed: {e.message}")
            return self.events

    async def _load(self, key: tuple[str, str], seq: int) -> list[CalendarEvent]:
        start, end = key
        try:
            bookings, time_offs, customer_names = await self._fetch_range(start, end)
        except RemoteRequestFailed:
            if seq != self._requested_seq:
                logger.info(f"Ignoring failed stale calendar load {start} → {end}")
                return self.events
            raise
        finally:
            if self._inflight.get(key, (None,))[0] == seq:
                del self._inflight[key]

        if seq != self._requested_seq:
            logger.info(f"Discarding stale calendar load {start} → {end}")
            return self.events

        self._bookings = bookings
        self._time_offs = time_offs
        if customer_names is not None:
            self._customer_names = customer_names
        self._states = {}
        self.current_range = key
        logger.info(f"✅ Calendar loaded {start} → {end}: {len(bookings)} bookings, {len(time_offs)} time-offs")
        self._notify()
        return self.events

    async def _fetch_range(self, start: str, end: str):
        range_start, range_end = self._range_bounds(start, end)

        calls = [self.api.list_bookings(start, end), self.api.list_time_offs()]
        if self._customer_names is None:
            calls.append(self.api.list_customers())
        responses = await asyncio.gather(*calls)

        bookings = _parse_records(Booking, responses[0].unwrap("Failed to load bookings"), "booking")
        time_offs = [
            time_off
            for time_off in _parse_records(TimeOff, responses[1].unwrap("Failed to load time-offs"), "time-off")
            if parse_utc_instant(time_off.start_date) < range_end
            and parse_utc_instant(time_off.end_date) > range_start
        ]

        customer_names = None
        if len(responses) > 2:
            # Names are cosmetic: a failed lookup only affects titles
            if responses[2].success:
                customer_names = {
                    c.id: c.full_name for c in _parse_records_loose(Customer, responses[2].data)
                }
            else:
                logger.warning("⚠️ Customer lookup failed, titles fall back to embedded names")

        return bookings, time_offs, customer_names

    async def refresh_customers(self) -> None:
        """Re-fetch customer names used for booking titles"""
        response = await self.api.list_customers()
        data = response.unwrap("Failed to load customers")
        self._customer_names = {c.id: c.full_name for c in _parse_records_loose(Customer, data)}
        self._notify()

    def _range_bounds(self, start: str, end: str):
        """Range as UTC datetimes. Bare dates are midnight in the company zone."""
        zone = self.settings.timezone

        def bound(value: str):
            if value and len(value) == 10:
                try:
                    return parse_utc_instant(to_utc_instant(value, "00:00", zone))
                except InvalidLocalTime:
                    # Midnight skipped by DST in this zone
                    return parse_utc_instant(to_utc_instant(value, "01:00", zone))
            return parse_utc_instant(value)

        range_start, range_end = bound(start), bound(end)
        if range_start >= range_end:
            raise ValidationError("Range start must be before range end")
        return range_start, range_end

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    def _find_booking(self, booking_id: str) -> int:
        for index, booking in enumerate(self._bookings):
            if booking.id == booking_id:
                return index
        return -1

    def _find_time_off(self, time_off_id: str) -> int:
        for index, time_off in enumerate(self._time_offs):
            if time_off.id == time_off_id:
                return index
        return -1

    @staticmethod
    def _validate_booking_payload(payload: BookingPayload) -> None:
        if not payload.services:
            raise ValidationError("Select at least one service")
        check_window(payload.start_datetime, payload.end_datetime)

    async def create_booking(self, payload: BookingPayload) -> CalendarEvent:
        """Create a booking and append its event without reloading"""
        self._validate_booking_payload(payload)

        response = await self.api.create_booking(dump_payload(payload))
        data = response.unwrap("Failed to create booking")
        try:
            booking = Booking.model_validate(data)
        except PydanticValidationError:
            raise RemoteRequestFailed("Booking service returned an invalid booking")

        # No awaits from here on: the append must not interleave with a load
        index = self._find_booking(booking.id)
        if index >= 0:
            self._bookings[index] = booking
        else:
            self._bookings.append(booking)
        self._states.pop(booking_event_id(booking.id), None)
        logger.info(f"✅ Booking {booking.id} created")
        self._notify()
        return booking_to_event(booking, self._customer_names)

    async def update_booking(self, booking_id: str, payload: BookingPayload) -> list[CalendarEvent]:
        """Update a booking, then reload the current range"""
        self._validate_booking_payload(payload)
        event_id = booking_event_id(booking_id)
        tracked = self._find_booking(booking_id) >= 0

        if tracked:
            self._states[event_id] = RecordState.PENDING_MUTATION
        try:
            response = await self.api.update_booking(booking_id, dump_payload(payload))
            response.unwrap("Failed to update booking")
        except RemoteRequestFailed:
            if tracked:
                self._states[event_id] = RecordState.VISIBLE_REVERTED
            raise

        self._states.pop(event_id, None)
        logger.info(f"✅ Booking {booking_id} updated")
        return await self._reload_after_edit()

    async def change_status(self, booking_id: str, new_status: str) -> Optional[CalendarEvent]:
        """
        Change a booking's status and recolor its event in place.

        confirmed → no_show / completed use the dedicated endpoints; any other
        transition goes through the generic status update.
        """
        status = (new_status or "").strip().lower()
        if status not in BOOKING_STATUSES:
            raise ValidationError(f"Invalid booking status: {new_status}")

        index = self._find_booking(booking_id)
        if index < 0:
            raise RecordNotFound(f"Booking {booking_id} is not on the calendar")

        previous = self._bookings[index].status
        event_id = booking_event_id(booking_id)
        self._states[event_id] = RecordState.PENDING_MUTATION
        try:
            if previous == "confirmed" and status == "no_show":
                response = await self.api.mark_no_show(booking_id)
            elif previous == "confirmed" and status == "completed":
                response = await self.api.mark_completed(booking_id)
            else:
                response = await self.api.update_booking_status(booking_id, status)
            response.unwrap("Failed to update booking status")
        except RemoteRequestFailed:
            self._states[event_id] = RecordState.VISIBLE_REVERTED
            raise

        # The list may have been replaced by a load while the request was out
        self._states.pop(event_id, None)
        index = self._find_booking(booking_id)
        if index < 0:
            logger.info(f"Booking {booking_id} left the calendar before its status change landed")
            return None

        updated = self._bookings[index].model_copy(update={"status": status})
        self._bookings[index] = updated
        logger.info(f"✅ Booking {booking_id} status: {previous} → {status}")
        self._notify()
        return booking_to_event(updated, self._customer_names)

    async def delete_booking(self, booking_id: str) -> None:
        """Delete a booking and drop its event"""
        await self._delete(
            booking_event_id(booking_id),
            self._find_booking(booking_id) >= 0,
            self.api.delete_booking(booking_id),
            "Failed to delete booking",
        )
        index = self._find_booking(booking_id)
        if index >= 0:
            del self._bookings[index]
        logger.info(f"🗑️ Booking {booking_id} deleted")
        self._notify()

    async def _delete(self, event_id: str, tracked: bool, request, fallback: str) -> None:
        if tracked:
            self._states[event_id] = RecordState.PENDING_MUTATION
        try:
            response = await request
            response.unwrap(fallback)
        except RemoteRequestFailed:
            if tracked:
                self._states[event_id] = RecordState.VISIBLE_REVERTED
            raise
        self._states.pop(event_id, None)

    # ------------------------------------------------------------------
    # Time-offs
    # ------------------------------------------------------------------

    async def create_time_off(self, payload: TimeOffPayload) -> CalendarEvent:
        """Create a time-off block and append its event without reloading"""
        check_window(payload.start_datetime, payload.end_datetime)

        response = await self.api.create_time_off(dump_payload(payload))
        data = response.unwrap("Failed to create time off")
        try:
            time_off = TimeOff.model_validate(data)
        except PydanticValidationError:
            raise RemoteRequestFailed("Booking service returned an invalid time off")

        index = self._find_time_off(time_off.id)
        if index >= 0:
            self._time_offs[index] = time_off
        else:
            self._time_offs.append(time_off)
        self._states.pop(timeoff_event_id(time_off.id), None)
        logger.info(f"✅ Time off {time_off.id} created")
        self._notify()
        return timeoff_to_event(time_off, self._staff_names())

    async def update_time_off(self, time_off_id: str, payload: TimeOffPayload) -> list[CalendarEvent]:
        """Update a time-off block, then reload the current range"""
        check_window(payload.start_datetime, payload.end_datetime)
        event_id = timeoff_event_id(time_off_id)
        tracked = self._find_time_off(time_off_id) >= 0

        if tracked:
            self._states[event_id] = RecordState.PENDING_MUTATION
        try:
            response = await self.api.update_time_off(time_off_id, dump_payload(payload))
            response.unwrap("Failed to update time off")
        except RemoteRequestFailed:
            if tracked:
                self._states[event_id] = RecordState.VISIBLE_REVERTED
            raise

        self._states.pop(event_id, None)
        logger.info(f"✅ Time off {time_off_id} updated")
        return await self._reload_after_edit()

    async def delete_time_off(self, time_off_id: str) -> None:
        """Delete a time-off block and drop its event"""
        await self._delete(
            timeoff_event_id(time_off_id),
            self._find_time_off(time_off_id) >= 0,
            self.api.delete_time_off(time_off_id),
            "Failed to delete time off",
        )
        index = self._find_time_off(time_off_id)
        if index >= 0:
            del self._time_offs[index]
        logger.info(f"🗑️ Time off {time_off_id} deleted")
        self._notify()
