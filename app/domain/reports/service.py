"""Report service - Business logic for dashboard reports"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from ...exceptions import RemoteRequestFailed, ReportUnavailable, ValidationError
from ...services.booking_api import BookingApiClient
from ...services.company_settings import CompanySettings
from ...shared.timezone import parse_utc_instant
from ..calendar.schemas import Booking
from .aggregator import aggregate_report
from .cache import ReportCache
from .periods import resolve_window
from .schemas import ReportData, ReportState, ReportWindow

logger = logging.getLogger(__name__)


class ReportService:
    """
    Service layer for dashboard reports.

    Lookups go through the cache; concurrent misses for the same key share
    one computation. The last good report stays visible (flagged stale) when
    a refresh fails.
    """

    def __init__(
        self,
        api: BookingApiClient,
        settings: CompanySettings,
        cache: Optional[ReportCache] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.api = api
        self.settings = settings
        self.cache = cache if cache is not None else ReportCache()
        self._now = now
        # key -> (generation, future); only the latest generation per key may publish
        self._inflight: dict[str, tuple[int, asyncio.Future]] = {}
        self._latest: dict[str, int] = {}
        self._seq = 0
        self.state = ReportState()

    def _current_time(self) -> Optional[datetime]:
        return self._now() if self._now else None

    async def get_report(
        self,
        period: str = "week",
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> ReportData:
        """
        Report for a period, from cache when fresh.

        Custom ranges are always recomputed.

        Raises:
            ValidationError: bad custom range
            ReportUnavailable: either window could not be fetched
        """
        window = resolve_window(period, self.settings.timezone, start_date, end_date, self._current_time())
        key = window.cache_key

        if window.period == "custom":
            self.cache.invalidate(key)
        else:
            cached = self.cache.get_by_key(key)
            if cached is not None:
                logger.debug(f"📊 Report cache hit for {key}")
                self._show(key, cached)
                return cached

        return await self._compute_shared(window)

    async def refresh(
        self,
        period: str = "week",
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> ReportData:
        """Drop the cached report for a period and regenerate it"""
        window = resolve_window(period, self.settings.timezone, start_date, end_date, self._current_time())
        self.cache.invalidate(window.cache_key)
        logger.info(f"🔄 Cleared cache for {window.cache_key}, regenerating...")
        # A computation already in flight may predate whatever prompted the refresh
        return await self._compute_shared(window, join=False)

    def clear(self) -> None:
        """Forget all reports (logout or timezone change). In-flight results are discarded."""
        self.cache.clear()
        self._inflight = {}
        self._latest = {}
        self.state = ReportState()

    def has_stale_report(
        self,
        period: str = "week",
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> bool:
        """True when the report on screen belongs to this period and can stand in for a failed one"""
        window = resolve_window(period, self.settings.timezone, start_date, end_date, self._current_time())
        return self.state.report is not None and self.state.cache_key == window.cache_key

    def _is_current(self, key: str, seq: int) -> bool:
        return self._latest.get(key) == seq

    async def _compute_shared(self, window: ReportWindow, join: bool = True) -> ReportData:
        key = window.cache_key
        inflight = self._inflight.get(key)
        if join and inflight is not None:
            seq, future = inflight
            logger.debug(f"Joining in-flight report computation for {key}")
        else:
            self._seq += 1
            seq = self._seq
            self._latest[key] = seq
            future = asyncio.ensure_future(self._compute(window, seq))
            self._inflight[key] = (seq, future)
            future.add_done_callback(lambda _f, k=key, s=seq: self._drop_inflight(k, s))

        self.state = self.state.model_copy(update={"is_loading": True})
        try:
            report = await asyncio.shield(future)
        except ReportUnavailable as e:
            if self._is_current(key, seq):
                self._mark_failed(key, e.message)
            raise
        except Exception:
            if self._is_current(key, seq):
                self.state = self.state.model_copy(update={"is_loading": False})
            raise

        if self._is_current(key, seq):
            self._show(key, report)
        return report

    def _drop_inflight(self, key: str, seq: int) -> None:
        inflight = self._inflight.get(key)
        if inflight is not None and inflight[0] == seq:
            del self._inflight[key]

    async def _compute(self, window: ReportWindow, seq: int) -> ReportData:
        zone = self.settings.timezone
        logger.info(f"📊 Generating fresh report for {window.cache_key}")

        current_response, previous_response = await asyncio.gather(
            self.api.list_bookings(window.start_date, window.end_date),
            self.api.list_bookings(window.previous_start_date, window.start_date),
        )

        try:
            current = self._parse_bookings(current_response.unwrap("Failed to fetch bookings"))
            previous = self._parse_bookings(previous_response.unwrap("Failed to fetch previous period bookings"))
        except RemoteRequestFailed as e:
            logger.error(f"❌ Report {window.cache_key} unavailable: {e.message}")
            raise ReportUnavailable(e.message)

        report = aggregate_report(current, previous, window, zone)
        if self._is_current(window.cache_key, seq):
            self.cache.set(window.cache_key, report)
        else:
            logger.info(f"Discarding superseded report for {window.cache_key}")
        return report

    @staticmethod
    def _parse_bookings(raw) -> list[Booking]:
        bookings = []
        for item in raw or []:
            try:
                booking = Booking.model_validate(item)
                parse_utc_instant(booking.start_at)
            except PydanticValidationError as e:
                logger.warning(f"⚠️ Skipping malformed booking in report: {e.error_count()} error(s)")
                continue
            except ValidationError:
                logger.warning(f"⚠️ Skipping booking {booking.id} with unreadable start time")
                continue
            bookings.append(booking)
        return bookings

    def _show(self, key: str, report: ReportData) -> None:
        self.state = ReportState(report=report, cache_key=key, is_loading=False, is_stale=False)

    def _mark_failed(self, key: str, message: str) -> None:
        previous = self.state.report
        self.state = ReportState(
            report=previous,
            cache_key=self.state.cache_key if previous else key,
            is_loading=False,
            is_stale=previous is not None,
            error=message,
        )
