"""In-memory result cache with a time-to-live."""

import time
from typing import Any, Callable, Optional


class ResultCache:
    """
    Process-local cache of analysis results.

    Entries expire ``ttl_seconds`` after they were stored. The clock is
    injectable so expiry can be tested without sleeping.
    """

    def __init__(self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.time):
        """
        Initialize cache.

        Args:
            ttl_seconds: Lifetime of an entry in seconds
            clock: Callable returning the current time in seconds
        """
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}

    def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value, or None if missing or expired
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if self.clock() - stored_at >= self.ttl_seconds:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        """Store value under key, stamped with the current clock time."""
        self._entries[key] = (value, self.clock())

    def timestamp(self, key: str) -> Optional[float]:
        """Return the time the entry for key was stored, if present."""
        entry = self._entries.get(key)
        return entry[1] if entry else None

    def delete(self, key: str) -> bool:
        """
        Delete cache entry.

        Returns:
            True if deleted, False if not found
        """
        return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        """
        Clear all cache entries.

        Returns:
            Number of entries deleted
        """
        deleted = len(self._entries)
        self._entries.clear()
        return deleted
