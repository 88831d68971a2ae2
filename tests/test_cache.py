"""Property-based tests for the price, overview and analysis caches.

**Feature: signal-trading**
"""

import tempfile
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from conftest import (
    MARKET_OPEN,
    OFF_HOURS,
    FakeClock,
    FakeFundamentalsSource,
    FakeOracle,
    FakePriceSource,
)
from signaltrader.cache import (
    AnalysisCache,
    FixedTTL,
    MarketHoursTTL,
    OverviewCache,
    PriceCache,
    cached_lookup,
)
from signaltrader.cache.base import CachedValue
from signaltrader.db.store import DataStore
from signaltrader.errors import ExternalSourceError, PriceUnavailableError
from signaltrader.models import CompanyOverview, PriceInfo


def make_prices(store: DataStore, clock: FakeClock, prices=None) -> tuple[PriceCache, FakePriceSource]:
    source = FakePriceSource(prices or {"AAPL": 100.0}, previous={"AAPL": 98.0})
    return PriceCache(store, source, clock=clock), source


class TestMarketHoursPolicy:
    """
    **Feature: signal-trading, Property 5: Market Hours Window**

    The market is open for hours in [9, 16).
    """

    @given(hour=st.integers(min_value=0, max_value=23))
    @settings(max_examples=24)
    def test_window(self, hour: int):
        policy = MarketHoursTTL()
        now = datetime(2024, 3, 5, hour, 30)

        assert policy.is_market_hours(now) == (9 <= hour < 16)
        expected = timedelta(hours=1) if 9 <= hour < 16 else timedelta(hours=24)
        assert policy.ttl(now) == expected


class TestPriceFreshness:
    """
    **Feature: signal-trading, Property 6: Price Cache Freshness**

    A price written at T is served from cache at T+59min and refetched at
    T+61min during market hours; off hours it is fresh at T+23h and stale
    at T+25h.
    """

    def test_market_hours_boundary(self, temp_db: DataStore):
        clock = FakeClock(MARKET_OPEN)
        cache, source = make_prices(temp_db, clock)

        assert cache.get_current("AAPL") == 100.0
        source.prices["AAPL"] = 105.0

        clock.advance(minutes=59)
        assert cache.get_current("AAPL") == 100.0
        assert source.current_calls == 1

        clock.advance(minutes=2)
        assert cache.get_current("AAPL") == 105.0
        assert source.current_calls == 2

    def test_off_hours_boundary(self, temp_db: DataStore):
        clock = FakeClock(OFF_HOURS)
        cache, source = make_prices(temp_db, clock)

        cache.get_current("AAPL")
        source.prices["AAPL"] = 90.0

        # 23 hours later is 17:00 the next day, still off hours
        clock.advance(hours=23)
        assert cache.get_current("AAPL") == 100.0

        clock.advance(hours=2)
        # 19:00 next day, beyond 24 hours
        assert cache.get_current("AAPL") == 90.0
        assert source.current_calls == 2

    @given(minutes=st.integers(min_value=0, max_value=59))
    @settings(max_examples=30)
    def test_within_window_never_refetches(self, minutes: int):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = DataStore(Path(tmpdir) / "test.db")
            clock = FakeClock(MARKET_OPEN)
            cache, source = make_prices(store, clock)

            cache.get_current("AAPL")
            clock.advance(minutes=minutes)
            cache.get_current("AAPL")

            assert source.current_calls == 1

    def test_previous_close_expires_independently(self, temp_db: DataStore):
        clock = FakeClock(MARKET_OPEN)
        cache, source = make_prices(temp_db, clock)

        info = cache.get_both("AAPL")
        assert info == PriceInfo(ticker="AAPL", current_price=100.0, previous_close=98.0)

        clock.advance(hours=2)
        cache.get_both("AAPL")

        assert source.current_calls == 2
        assert source.previous_calls == 1


class TestPriceFailures:
    """
    **Feature: signal-trading, Property 7: Stale Price Fallback**

    A failed refresh returns the stale value when one exists and raises
    PriceUnavailableError otherwise.
    """

    def test_stale_value_used_on_failure(self, temp_db: DataStore):
        clock = FakeClock(MARKET_OPEN)
        cache, source = make_prices(temp_db, clock)
        cache.get_current("AAPL")

        clock.advance(hours=3)
        source.failing.add("AAPL")

        assert cache.get_current("AAPL") == 100.0
        # The stale entry keeps its original timestamp
        assert temp_db.get_cached_price("AAPL", "current")[1] == MARKET_OPEN

    def test_failure_without_cache_raises(self, temp_db: DataStore):
        cache, source = make_prices(temp_db, FakeClock())
        source.failing.add("AAPL")

        with pytest.raises(PriceUnavailableError) as exc:
            cache.get_current("AAPL")
        assert exc.value.ticker == "AAPL"

    def test_zero_price_is_a_failure(self, temp_db: DataStore):
        cache, _ = make_prices(temp_db, FakeClock(), prices={"AAPL": 100.0})

        with pytest.raises(PriceUnavailableError):
            cache.get_current("NOPE")
        assert temp_db.get_cached_price("NOPE", "current") is None

    def test_get_many_skips_failures(self, temp_db: DataStore):
        cache, source = make_prices(temp_db, FakeClock(), prices={"AAPL": 100.0, "MSFT": 300.0})
        source.failing.add("MSFT")

        assert cache.get_many(["AAPL", "MSFT", "AAPL"]) == {"AAPL": 100.0}
        assert source.current_calls == 2

    def test_clear_forces_refetch(self, temp_db: DataStore):
        cache, source = make_prices(temp_db, FakeClock())
        cache.get_current("AAPL")

        cache.clear("AAPL")
        cache.get_current("AAPL")

        assert source.current_calls == 2
        assert cache.stats()["total"] == 1


class TestCachedLookup:
    def test_fetch_error_propagates_without_fallback(self):
        store: dict = {"K": CachedValue("old", MARKET_OPEN - timedelta(days=2))}

        def fetch():
            raise ExternalSourceError("down")

        with pytest.raises(ExternalSourceError):
            cached_lookup(
                "K",
                load=store.get,
                fetch=fetch,
                save=lambda k, v, now: store.__setitem__(k, CachedValue(v, now)),
                policy=FixedTTL(timedelta(days=1)),
                now=MARKET_OPEN,
            )

    def test_miss_saves_with_now(self):
        store: dict = {}

        value = cached_lookup(
            "K",
            load=store.get,
            fetch=lambda: "new",
            save=lambda k, v, now: store.__setitem__(k, CachedValue(v, now)),
            policy=FixedTTL(timedelta(days=1)),
            now=MARKET_OPEN,
        )

        assert value == "new"
        assert store["K"].last_updated == MARKET_OPEN


class TestOverviewCache:
    """
    **Feature: signal-trading, Property 8: Overview Cache**

    Fundamentals are reused for 24 hours; prices are always re-read.
    """

    def _setup(self, store: DataStore, clock: FakeClock):
        prices, price_source = make_prices(store, clock)
        fundamentals = FakeFundamentalsSource()
        overviews = OverviewCache(store, prices, clock=clock)

        def fetch() -> CompanyOverview:
            return CompanyOverview(
                fundamentals=fundamentals.fetch_fundamentals("AAPL"),
                price=prices.get_both("AAPL"),
            )

        return overviews, fundamentals, price_source, fetch

    def test_hit_reuses_fundamentals_and_reads_price(self, temp_db: DataStore):
        clock = FakeClock(MARKET_OPEN)
        overviews, fundamentals, price_source, fetch = self._setup(temp_db, clock)

        first = overviews.get_or_fetch("AAPL", fetch)
        price_source.prices["AAPL"] = 110.0
        clock.advance(hours=2)
        second = overviews.get_or_fetch("AAPL", fetch)

        assert fundamentals.calls == ["AAPL"]
        assert first.fundamentals == second.fundamentals
        assert first.price.current_price == 100.0
        assert second.price.current_price == 110.0

    def test_expired_entry_refetched(self, temp_db: DataStore):
        clock = FakeClock(MARKET_OPEN)
        overviews, fundamentals, _, fetch = self._setup(temp_db, clock)

        overviews.get_or_fetch("AAPL", fetch)
        clock.advance(hours=25)
        overviews.get_or_fetch("AAPL", fetch)

        assert fundamentals.calls == ["AAPL", "AAPL"]

    def test_fetch_error_propagates(self, temp_db: DataStore):
        overviews, _, _, _ = self._setup(temp_db, FakeClock())

        def failing():
            raise ExternalSourceError("no overview")

        with pytest.raises(ExternalSourceError):
            overviews.get_or_fetch("AAPL", failing)
        assert temp_db.get_cached_overview("AAPL") is None


class TestAnalysisCache:
    """
    **Feature: signal-trading, Property 9: Analysis Pipeline**

    Analysis is generated by three chained calls and reused for 30 days.
    """

    def test_pipeline_order_and_chaining(self, temp_db: DataStore):
        oracle = FakeOracle()
        cache = AnalysisCache(temp_db, oracle, clock=FakeClock())

        analysis = cache.get_or_generate("AAPL", "biz", "risk", "mdna")

        assert oracle.names() == ["summarize_business", "summarize_risks", "analyze_filing"]
        assert oracle.calls[1] == ("summarize_risks", "risk", "overview of biz")
        assert oracle.calls[2] == ("analyze_filing", "mdna", "overview of biz", "risks of risk")
        assert analysis.full_analysis == "analysis of mdna"

    def test_reused_within_thirty_days(self, temp_db: DataStore):
        clock = FakeClock()
        oracle = FakeOracle()
        cache = AnalysisCache(temp_db, oracle, clock=clock)

        cache.get_or_generate("AAPL", "biz", "risk", "mdna")
        clock.advance(days=29)
        cache.get_or_generate("AAPL", "biz", "risk", "mdna")
        assert len(oracle.calls) == 3

        clock.advance(days=2)
        cache.get_or_generate("AAPL", "biz", "risk", "mdna")
        assert len(oracle.calls) == 6

    def test_failure_leaves_cache_empty(self, temp_db: DataStore):
        oracle = FakeOracle()
        oracle.failing.add("summarize_risks")
        cache = AnalysisCache(temp_db, oracle, clock=FakeClock())

        with pytest.raises(ExternalSourceError):
            cache.get_or_generate("AAPL", "biz", "risk", "mdna")
        assert temp_db.get_cached_analysis("AAPL") is None
        assert cache.stats() == {"total": 0, "expired": 0}
