"""
In-process TTL cache
Entries expire a fixed time after insertion and are evicted lazily on lookup
"""

import logging
import time
from collections.abc import Callable
from typing import Any, Optional

logger = logging.getLogger(__name__)


class Cache:
    """Dict-backed cache with per-entry expiry"""

    def __init__(self, ttl: int = 300, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache, None on miss or expiry"""
        entry = self._entries.get(key)
        if entry is None:
            logger.debug(f"❌ Cache MISS: {key}")
            return None

        value, stored_at = entry
        if self.clock() - stored_at >= self.ttl:
            del self._entries[key]
            logger.debug(f"⌛ Cache EXPIRED: {key}")
            return None

        logger.debug(f"✅ Cache HIT: {key}")
        return value

    def set(self, key: str, value: Any) -> None:
        """Store value; the TTL starts now"""
        self._entries[key] = (value, self.clock())
        logger.debug(f"✅ Cache SET: {key} (TTL: {self.ttl}s)")

    def delete(self, key: str) -> bool:
        """Delete value from cache"""
        removed = self._entries.pop(key, None) is not None
        if removed:
            logger.debug(f"✅ Cache DELETE: {key}")
        return removed

    def clear(self) -> int:
        """Drop every entry"""
        count = len(self._entries)
        self._entries.clear()
        logger.debug(f"✅ Cache CLEAR ({count} keys)")
        return count

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)
