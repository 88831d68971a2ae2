"""Price cache with market-hours TTL and stale-on-failure fallback."""

import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional

from signaltrader.cache.base import (
    CachedValue,
    Clock,
    FixedTTL,
    MarketHoursTTL,
    TTLPolicy,
    cached_lookup,
)
from signaltrader.db.store import DataStore, PriceKind
from signaltrader.errors import PriceUnavailableError
from signaltrader.models import PriceInfo
from signaltrader.sources.base import PriceSource

logger = logging.getLogger(__name__)


class PriceCache:
    """Per-ticker cache of current and previous-close prices.

    The two prices expire independently: the current price follows a
    market-hours policy (1 hour while the market is open, 24 hours
    otherwise), the previous close is valid for 24 hours. When a refresh
    fails the stale value is returned if one exists.
    """

    def __init__(
        self,
        store: DataStore,
        source: PriceSource,
        current_policy: Optional[TTLPolicy] = None,
        previous_policy: Optional[TTLPolicy] = None,
        clock: Clock = datetime.now,
    ):
        """Initialize the price cache.

        Args:
            store: DataStore for persistence.
            source: Where fresh prices come from.
            current_policy: TTL for the current price. Defaults to MarketHoursTTL().
            previous_policy: TTL for the previous close. Defaults to 24 hours.
            clock: Returns the current local time.
        """
        self._store = store
        self._source = source
        self._current_policy = current_policy or MarketHoursTTL()
        self._previous_policy = previous_policy or FixedTTL(timedelta(hours=24))
        self._clock = clock

    def _lookup(self, ticker: str, kind: PriceKind) -> float:
        if kind == "current":
            source_fn = self._source.current_quote
            policy = self._current_policy
        else:
            source_fn = self._source.previous_close
            policy = self._previous_policy

        def fetch() -> float:
            price = source_fn(ticker)
            # Quote APIs report unknown symbols as a zero price
            if price is None or price <= 0:
                raise PriceUnavailableError(ticker, kind)
            return float(price)

        def load(key: str) -> Optional[CachedValue[float]]:
            entry = self._store.get_cached_price(key, kind)
            return CachedValue(*entry) if entry else None

        def save(key: str, price: float, now: datetime) -> None:
            self._store.save_cached_price(key, kind, price, now)

        try:
            return cached_lookup(
                ticker,
                load=load,
                fetch=fetch,
                save=save,
                policy=policy,
                now=self._clock(),
                stale_fallback=True,
                label=f"{kind} price",
            )
        except PriceUnavailableError:
            raise
        except Exception as e:
            raise PriceUnavailableError(ticker, kind) from e

    def get_current(self, ticker: str) -> float:
        """Get the current price for a ticker.

        Raises:
            PriceUnavailableError: If the fetch failed and nothing was cached.
        """
        return self._lookup(ticker, "current")

    def get_previous(self, ticker: str) -> float:
        """Get the previous close for a ticker.

        Raises:
            PriceUnavailableError: If the fetch failed and nothing was cached.
        """
        return self._lookup(ticker, "previous")

    def get_both(self, ticker: str) -> PriceInfo:
        """Get current and previous prices together."""
        return PriceInfo(
            ticker=ticker,
            current_price=self.get_current(ticker),
            previous_close=self.get_previous(ticker),
        )

    def get_many(self, tickers: Iterable[str]) -> dict[str, float]:
        """Get current prices for several tickers.

        Tickers whose price cannot be obtained are left out of the result.
        """
        prices: dict[str, float] = {}
        for ticker in dict.fromkeys(tickers):
            try:
                prices[ticker] = self.get_current(ticker)
            except PriceUnavailableError as e:
                logger.error("Failed to get price for %s: %s", ticker, e)
        return prices

    def clear(self, ticker: str) -> None:
        self._store.delete_cached_price(ticker)
        logger.info("Cleared price cache for %s", ticker)

    def stats(self) -> dict:
        return self._store.price_cache_stats()
