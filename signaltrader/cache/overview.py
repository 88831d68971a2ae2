"""Company overview cache.

Fundamentals are cached for a day; prices never are. A cache hit is always
combined with a live read from the price cache.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from signaltrader.cache.base import CachedValue, Clock, FixedTTL, TTLPolicy, cached_lookup
from signaltrader.cache.prices import PriceCache
from signaltrader.db.store import DataStore
from signaltrader.models import CompanyFundamentals, CompanyOverview

logger = logging.getLogger(__name__)


class OverviewCache:
    """Per-ticker cache of company fundamentals."""

    def __init__(
        self,
        store: DataStore,
        prices: PriceCache,
        policy: Optional[TTLPolicy] = None,
        clock: Clock = datetime.now,
    ):
        self._store = store
        self._prices = prices
        self._policy = policy or FixedTTL(timedelta(hours=24))
        self._clock = clock

    def _load(self, ticker: str) -> Optional[CachedValue[CompanyFundamentals]]:
        entry = self._store.get_cached_overview(ticker)
        return CachedValue(*entry) if entry else None

    def _save(self, ticker: str, fundamentals: CompanyFundamentals, now: datetime) -> None:
        self._store.save_cached_overview(ticker, fundamentals, now)

    def get_or_fetch(
        self, ticker: str, fetch_fn: Callable[[], CompanyOverview]
    ) -> CompanyOverview:
        """Get an overview, fetching it when the cached one is missing or stale.

        Args:
            ticker: Ticker symbol.
            fetch_fn: Produces a complete overview. Its errors propagate.

        Returns:
            The overview. On a cache hit the price information is re-read
            from the price cache.
        """
        fetched: Optional[CompanyOverview] = None

        def fetch() -> CompanyFundamentals:
            nonlocal fetched
            logger.info("Fetching fresh company overview for %s", ticker)
            fetched = fetch_fn()
            return fetched.fundamentals

        fundamentals = cached_lookup(
            ticker,
            load=self._load,
            fetch=fetch,
            save=self._save,
            policy=self._policy,
            now=self._clock(),
            label="company overview",
        )

        if fetched is not None:
            return fetched
        return CompanyOverview(
            fundamentals=fundamentals,
            price=self._prices.get_both(ticker),
        )

    def clear(self, ticker: str) -> None:
        self._store.delete_cached_overview(ticker)
        logger.info("Cleared cached company overview for %s", ticker)

    def stats(self) -> dict:
        cutoff = self._clock() - self._policy.ttl(self._clock())
        return self._store.cache_age_stats("overview_cache", cutoff)
