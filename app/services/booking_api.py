"""
Booking Service API client
Talks to the remote booking service (bookings, time-offs, customers, companies)
Every call returns the {success, data, message} envelope; it never raises on
a failed request so callers can show the server message.
"""

import logging
from typing import Any, Optional

import httpx

from ..schemas import ApiResponse

logger = logging.getLogger(__name__)


class BookingApiClient:
    """Async client for the booking service REST API"""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> ApiResponse:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers(),
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = await client.request(method, path, params=params, json=json)
        except httpx.HTTPError as e:
            logger.error(f"❌ Booking service unreachable: {method} {path}: {e}")
            return ApiResponse(success=False, message=None, status_code=None)

        return self._parse_response(method, path, response)

    @staticmethod
    def _parse_response(method: str, path: str, response: httpx.Response) -> ApiResponse:
        try:
            body = response.json() if response.content else None
        except ValueError:
            body = None

        ok = response.is_success

        if isinstance(body, dict) and "success" in body:
            parsed = ApiResponse(**{**body, "status_code": response.status_code})
            if not ok:
                parsed.success = False
        elif ok:
            parsed = ApiResponse(success=True, data=body, status_code=response.status_code)
        else:
            message = None
            if isinstance(body, dict):
                detail = body.get("message") or body.get("detail")
                message = detail if isinstance(detail, str) else None
            parsed = ApiResponse(success=False, message=message, status_code=response.status_code)

        if not parsed.success:
            logger.error(
                f"❌ Booking service request failed: {method} {path} "
                f"({response.status_code}) {parsed.message or ''}".rstrip()
            )
        return parsed

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    async def list_bookings(
        self, start_date: Optional[str] = None, end_date: Optional[str] = None
    ) -> ApiResponse:
        """List bookings, optionally limited to a date range"""
        params = {}
        if start_date:
            params["start_date"] = start_date
        if end_date:
            params["end_date"] = end_date
        return await self._request("GET", "/v1/bookings", params=params)

    async def create_booking(self, payload: dict[str, Any]) -> ApiResponse:
        return await self._request("POST", "/v1/bookings/users/create_booking", json=payload)

    async def update_booking(self, booking_id: str, payload: dict[str, Any]) -> ApiResponse:
        return await self._request("PUT", f"/v1/bookings/{booking_id}", json=payload)

    async def update_booking_status(self, booking_id: str, status: str) -> ApiResponse:
        return await self._request("PATCH", f"/v1/bookings/{booking_id}/status", json={"status": status})

    async def mark_no_show(self, booking_id: str) -> ApiResponse:
        return await self._request("PATCH", f"/v1/bookings/{booking_id}/no-show")

    async def mark_completed(self, booking_id: str) -> ApiResponse:
        return await self._request("PATCH", f"/v1/bookings/{booking_id}/complete")

    async def delete_booking(self, booking_id: str) -> ApiResponse:
        return await self._request("DELETE", f"/v1/bookings/{booking_id}")

    # ------------------------------------------------------------------
    # Time-offs
    # ------------------------------------------------------------------

    async def list_time_offs(self) -> ApiResponse:
        return await self._request("GET", "/v1/users/time-offs")

    async def create_time_off(self, payload: dict[str, Any]) -> ApiResponse:
        return await self._request("POST", "/v1/users/time-offs", json=payload)

    async def update_time_off(self, time_off_id: str, payload: dict[str, Any]) -> ApiResponse:
        return await self._request("PATCH", f"/v1/users/time-offs/{time_off_id}", json=payload)

    async def delete_time_off(self, time_off_id: str) -> ApiResponse:
        return await self._request("DELETE", f"/v1/users/time-offs/{time_off_id}")

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def list_customers(self) -> ApiResponse:
        return await self._request("GET", "/v1/companies/customers")

    async def get_company(self, company_id: str) -> ApiResponse:
        return await self._request("GET", f"/v1/companies/{company_id}")
