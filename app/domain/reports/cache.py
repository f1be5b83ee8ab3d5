"""Report cache - dashboard reports kept for a few minutes per period"""

import logging
import time
from collections.abc import Callable
from typing import Optional

from ...cache import Cache
from .schemas import ReportData, report_cache_key

logger = logging.getLogger(__name__)

REPORT_CACHE_TTL_SECONDS = 5 * 60


class ReportCache:
    """
    Reports keyed by period (and range, for custom periods).

    get() returns None on a miss. Custom ranges are still cached here; the
    report service invalidates them before recomputing.
    """

    def __init__(self, ttl: int = REPORT_CACHE_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self._cache = Cache(ttl=ttl, clock=clock)

    @staticmethod
    def key_for(period: str, custom_start: Optional[str] = None, custom_end: Optional[str] = None) -> str:
        return report_cache_key(period, custom_start, custom_end)

    def get(
        self, period: str, custom_start: Optional[str] = None, custom_end: Optional[str] = None
    ) -> Optional[ReportData]:
        key = self.key_for(period, custom_start, custom_end)
        report = self._cache.get(key)
        if report is not None:
            logger.info(f"📊 Using cached report for {key}")
        return report

    def get_by_key(self, key: str) -> Optional[ReportData]:
        return self._cache.get(key)

    def set(self, key: str, data: ReportData) -> None:
        self._cache.set(key, data)
        logger.info(f"📊 Cached report for {key}")

    def invalidate(self, key: str) -> bool:
        return self._cache.delete(key)

    def clear(self) -> None:
        count = self._cache.clear()
        logger.info(f"📊 Report cache cleared ({count} entries)")

    def __len__(self) -> int:
        return len(self._cache)
