"""Shared cache-aside lookup used by the price, overview and analysis caches.

Every cache in SignalTrader follows the same shape: read the stored value and
its timestamp, return it if the TTL policy says it is still fresh, otherwise
fetch a new value, persist it and return it. The price cache additionally
falls back to the stale value when the fetch fails.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class TTLPolicy(ABC):
    """Decides how long a cached value stays valid."""

    @abstractmethod
    def ttl(self, now: datetime) -> timedelta:
        """Validity window that applies at ``now``."""

    def is_fresh(self, last_updated: datetime, now: datetime) -> bool:
        return now - last_updated < self.ttl(now)


class FixedTTL(TTLPolicy):
    """Same validity window at all times."""

    def __init__(self, window: timedelta):
        self.window = window

    def ttl(self, now: datetime) -> timedelta:
        return self.window


class MarketHoursTTL(TTLPolicy):
    """Short validity while the market is open, longer outside market hours.

    The market is considered open when ``open_hour <= now.hour < close_hour``.
    """

    def __init__(
        self,
        open_hour: int = 9,
        close_hour: int = 16,
        market_window: timedelta = timedelta(hours=1),
        off_hours_window: timedelta = timedelta(hours=24),
    ):
        self.open_hour = open_hour
        self.close_hour = close_hour
        self.market_window = market_window
        self.off_hours_window = off_hours_window

    def is_market_hours(self, now: datetime) -> bool:
        return self.open_hour <= now.hour < self.close_hour

    def ttl(self, now: datetime) -> timedelta:
        if self.is_market_hours(now):
            return self.market_window
        return self.off_hours_window


class CachedValue(Generic[T]):
    """A stored value and the time it was written."""

    __slots__ = ("value", "last_updated")

    def __init__(self, value: T, last_updated: datetime):
        self.value = value
        self.last_updated = last_updated


def cached_lookup(
    key: str,
    load: Callable[[str], Optional[CachedValue[T]]],
    fetch: Callable[[], T],
    save: Callable[[str, T, datetime], None],
    policy: TTLPolicy,
    now: datetime,
    stale_fallback: bool = False,
    label: str = "value",
) -> T:
    """Return a fresh cached value or fetch, persist and return a new one.

    Args:
        key: Cache key (the ticker).
        load: Reads the stored value for a key, or None on a miss.
        fetch: Produces a new value. Called only on a miss or stale entry.
        save: Persists a fetched value with its timestamp.
        policy: TTL policy deciding freshness.
        now: Current time.
        stale_fallback: Return the stale value if ``fetch`` raises.
        label: Name used in log messages.

    Returns:
        The cached or freshly fetched value.

    Raises:
        Exception: Whatever ``fetch`` raised, unless a stale value was
            available and ``stale_fallback`` is set.
    """
    cached = load(key)
    if cached is not None and policy.is_fresh(cached.last_updated, now):
        logger.debug("Using cached %s for %s", label, key)
        return cached.value

    try:
        value = fetch()
    except Exception as e:
        if stale_fallback and cached is not None:
            logger.warning(
                "Fetching %s for %s failed (%s), using stale cache from %s",
                label,
                key,
                e,
                cached.last_updated.isoformat(timespec="minutes"),
            )
            return cached.value
        raise

    save(key, value, now)
    logger.info("Cached fresh %s for %s", label, key)
    return value
