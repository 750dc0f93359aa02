"""
Exchange Rate Cache

In-memory, TTL- and size-bounded map from a pair key ("USD_NGN") to the
last fetched rate. Eviction beyond max_size is by insertion order (FIFO),
not by access.
"""

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable

from ratewatch.config import (
    DEFAULT_CACHE_MAX_SIZE,
    DEFAULT_CACHE_TTL_SECONDS,
    coerce_positive,
)
from ratewatch.models import RateCacheEntry, utc_now

logger = logging.getLogger(__name__)


def parse_timestamp(value: datetime | str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp, returning None when it cannot be parsed."""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class RateCache:
    """
    Bounded, self-expiring key -> rate store.

    Construct one instance per process and hand it to every consumer.

    Args:
        ttl_seconds: Entry lifetime. Non-finite or non-positive values
            fall back to 600.
        max_size: Maximum number of entries. Coerced like ttl_seconds
            (default 1000) and floored to an integer.
        clock: Returns the current timezone-aware time.
    """

    def __init__(
        self,
        ttl_seconds: float | None = DEFAULT_CACHE_TTL_SECONDS,
        max_size: int | None = DEFAULT_CACHE_MAX_SIZE,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.ttl = timedelta(
            seconds=coerce_positive(ttl_seconds, DEFAULT_CACHE_TTL_SECONDS)
        )
        self.max_size = int(coerce_positive(max_size, DEFAULT_CACHE_MAX_SIZE)) or DEFAULT_CACHE_MAX_SIZE
        self._clock = clock
        self._store: dict[str, RateCacheEntry] = {}

    def get(self, pair_key: str) -> RateCacheEntry | None:
        """Return a copy of the entry for ``pair_key`` or None if absent/expired."""
        entry = self._store.get(pair_key)
        if entry is None:
            return None

        if not entry.is_valid(self._clock()):
            del self._store[pair_key]
            logger.debug(f"Cache entry expired: {pair_key}")
            return None

        return entry.model_copy()

    def set(
        self,
        pair_key: str,
        rate: Decimal,
        fetched_at: datetime | str | None = None,
    ) -> RateCacheEntry:
        """
        Store a rate and return a copy of the stored entry.

        Args:
            pair_key: Cache key for the currency pair
            rate: Positive rate
            fetched_at: Fetch time (datetime or ISO-8601 string). Unparseable
                or missing values are replaced by the current time.

        Returns:
            The stored entry with expires_at = fetched_at + ttl
        """
        base_time = parse_timestamp(fetched_at) or self._clock()
        entry = RateCacheEntry(
            rate=rate,
            fetched_at=base_time,
            expires_at=base_time + self.ttl,
        )

        self._store[pair_key] = entry
        self._sweep_expired()
        self._enforce_max_size()

        return entry.model_copy()

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, pair_key: object) -> bool:
        return isinstance(pair_key, str) and self.get(pair_key) is not None

    def _sweep_expired(self) -> None:
        now = self._clock()
        expired = [key for key, entry in self._store.items() if not entry.is_valid(now)]
        for key in expired:
            del self._store[key]

    def _enforce_max_size(self) -> None:
        overflow = len(self._store) - self.max_size
        if overflow <= 0:
            return

        # dicts keep insertion order, so the first keys are the oldest
        for key in list(self._store)[:overflow]:
            del self._store[key]
        logger.debug(f"Evicted {overflow} cache entries (max_size={self.max_size})")
