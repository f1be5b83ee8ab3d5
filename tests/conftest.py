"""pytest configuration: path management, a fake booking service and record factories."""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any, Optional

import pytest

# Ensure the project root is available on sys.path so tests can import the app package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.schemas import ApiResponse  # noqa: E402
from app.services.company_settings import CompanySettings  # noqa: E402


def make_booking(
    booking_id: str = "b1",
    start_at: str = "2026-02-14T15:00:00.000Z",
    end_at: str = "2026-02-14T16:00:00.000Z",
    status: str = "confirmed",
    total_price: int = 5000,
    customer: Optional[tuple[str, str]] = ("Jane", "Doe"),
    customer_id: Optional[str] = "cust-1",
    staff: Optional[tuple[str, str, str]] = ("staff-1", "Ann", "Lee"),
    service_name: Optional[str] = "Haircut",
    line_price: int = 3000,
    catalogue_price: Optional[int] = None,
    discount_price: Optional[int] = None,
) -> dict[str, Any]:
    """Booking record as the booking service returns it (prices in cents)"""
    line: dict[str, Any] = {"id": f"{booking_id}-line", "service_id": "svc-1", "price": line_price}
    if staff:
        staff_id, first, last = staff
        line["user_id"] = staff_id
        line["assigned_staff"] = {"id": staff_id, "first_name": first, "last_name": last}
    if service_name is not None:
        line["category_service"] = {
            "id": "svc-1",
            "name": service_name,
            "price": catalogue_price if catalogue_price is not None else line_price,
            "discount_price": discount_price,
        }

    record: dict[str, Any] = {
        "id": booking_id,
        "start_at": start_at,
        "end_at": end_at,
        "status": status,
        "total_price": total_price,
        "customer_id": customer_id,
        "booking_services": [line],
    }
    if customer:
        record["customer"] = {"id": customer_id, "first_name": customer[0], "last_name": customer[1]}
    return record


def make_time_off(
    time_off_id: str = "t1",
    start_date: str = "2026-02-14T13:00:00.000Z",
    end_date: str = "2026-02-14T17:00:00.000Z",
    user_id: str = "staff-1",
    user: Optional[tuple[str, str]] = ("Ann", "Lee"),
    reason: Optional[str] = "Dentist",
) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": time_off_id,
        "start_date": start_date,
        "end_date": end_date,
        "user_id": user_id,
        "reason": reason,
    }
    if user:
        record["user"] = {"id": user_id, "first_name": user[0], "last_name": user[1]}
    return record


class FakeBookingApi:
    """
    In-memory stand-in for BookingApiClient.

    failures: method name -> message; that method returns a failed envelope.
    gates: method name, or (method name, *args), -> asyncio.Event awaited before responding.
    booking_ranges: (start, end) -> bookings returned by list_bookings for that range.
    """

    def __init__(self, bookings=None, time_offs=None, customers=None, company=None):
        self.bookings: list[dict] = list(bookings or [])
        self.time_offs: list[dict] = list(time_offs or [])
        self.customers: list[dict] = list(customers or [])
        self.company: dict = company or {"id": "company-1", "timezone": "UTC"}
        self.booking_ranges: dict[tuple, list[dict]] = {}
        self.failures: dict[str, Optional[str]] = {}
        self.gates: dict[Any, asyncio.Event] = {}
        self.calls: list[tuple] = []
        self._next_id = 100

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    async def _respond(self, name: str, data: Any, *args) -> ApiResponse:
        self.calls.append((name, *args))
        try:
            gate = self.gates.get((name, *args))
        except TypeError:  # unhashable args (e.g. dict payloads) cannot be gate keys
            gate = None
        gate = gate or self.gates.get(name)
        if gate is not None:
            await gate.wait()
        if name in self.failures:
            return ApiResponse(success=False, message=self.failures[name], status_code=500)
        return ApiResponse(success=True, data=data, status_code=200)

    def _new_id(self, prefix: str) -> str:
        self._next_id += 1
        return f"{prefix}{self._next_id}"

    # Bookings

    async def list_bookings(self, start_date=None, end_date=None) -> ApiResponse:
        data = self.booking_ranges.get((start_date, end_date), self.bookings)
        return await self._respond("list_bookings", [dict(b) for b in data], start_date, end_date)

    async def create_booking(self, payload: dict) -> ApiResponse:
        booking = {
            "id": self._new_id("b"),
            "start_at": payload["start_datetime"],
            "end_at": payload["end_datetime"],
            "status": "pending",
            "total_price": 0,
            "customer_id": payload.get("customer_id"),
            "booking_services": [
                {"service_id": s["service_id"], "user_id": s["user_id"]} for s in payload["services"]
            ],
        }
        response = await self._respond("create_booking", booking, payload)
        if response.success:
            self.bookings.append(booking)
        return response

    async def update_booking(self, booking_id: str, payload: dict) -> ApiResponse:
        response = await self._respond("update_booking", {"id": booking_id}, booking_id, payload)
        if response.success:
            for booking in self.bookings:
                if booking["id"] == booking_id:
                    booking["start_at"] = payload["start_datetime"]
                    booking["end_at"] = payload["end_datetime"]
        return response

    async def update_booking_status(self, booking_id: str, status: str) -> ApiResponse:
        return await self._respond("update_booking_status", {"id": booking_id, "status": status}, booking_id, status)

    async def mark_no_show(self, booking_id: str) -> ApiResponse:
        return await self._respond("mark_no_show", {"id": booking_id}, booking_id)

    async def mark_completed(self, booking_id: str) -> ApiResponse:
        return await self._respond("mark_completed", {"id": booking_id}, booking_id)

    async def delete_booking(self, booking_id: str) -> ApiResponse:
        response = await self._respond("delete_booking", None, booking_id)
        if response.success:
            self.bookings = [b for b in self.bookings if b["id"] != booking_id]
        return response

    # Time-offs

    async def list_time_offs(self) -> ApiResponse:
        return await self._respond("list_time_offs", [dict(t) for t in self.time_offs])

    async def create_time_off(self, payload: dict) -> ApiResponse:
        time_off = {
            "id": self._new_id("t"),
            "start_at": payload["start_datetime"],
            "end_at": payload["end_datetime"],
            "user_id": payload["user_id"],
            "reason": payload.get("reason"),
        }
        response = await self._respond("create_time_off", time_off, payload)
        if response.success:
            self.time_offs.append(time_off)
        return response

    async def update_time_off(self, time_off_id: str, payload: dict) -> ApiResponse:
        return await self._respond("update_time_off", {"id": time_off_id}, time_off_id, payload)

    async def delete_time_off(self, time_off_id: str) -> ApiResponse:
        response = await self._respond("delete_time_off", None, time_off_id)
        if response.success:
            self.time_offs = [t for t in self.time_offs if t["id"] != time_off_id]
        return response

    # Lookups

    async def list_customers(self) -> ApiResponse:
        return await self._respond("list_customers", list(self.customers))

    async def get_company(self, company_id: str) -> ApiResponse:
        return await self._respond("get_company", self.company, company_id)


class FakeClock:
    """Monotonic clock the tests move by hand"""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_api():
    return FakeBookingApi()


@pytest.fixture
def settings():
    return CompanySettings("America/New_York")


@pytest.fixture
def clock():
    return FakeClock()
