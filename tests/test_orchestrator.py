"""Tests for the trading orchestrator.

**Feature: signal-trading**
"""

from datetime import timedelta

import pytest

from conftest import (
    MARKET_OPEN,
    FakeClock,
    FakeDocumentSource,
    FakeFundamentalsSource,
    FakeOracle,
    FakePriceSource,
    FakeSignalSource,
    FakeTickerExtractor,
    make_decision,
)
from signaltrader.cache import AnalysisCache, OverviewCache, PriceCache
from signaltrader.db.store import DataStore
from signaltrader.errors import ExternalSourceError
from signaltrader.models import Signal
from signaltrader.trading import (
    CooldownGate,
    InMemoryCooldownStore,
    Ledger,
    PositionLifecycle,
    TradingOrchestrator,
)
from signaltrader.trading.orchestrator import describe_decision


class Harness:
    """Orchestrator wired to in-memory fakes over a temporary database."""

    def __init__(self, store: DataStore, signals: list[Signal], decision=None, sentiment="bullish"):
        self.store = store
        self.clock = FakeClock(MARKET_OPEN)
        self.price_source = FakePriceSource({"AAPL": 100.0, "MSFT": 300.0, "TSLA": 200.0})
        self.prices = PriceCache(store, self.price_source, clock=self.clock)
        self.ledger = Ledger(store, starting_balance=10000.0)
        self.positions = PositionLifecycle(store, self.ledger, self.prices, clock=self.clock)
        self.oracle = FakeOracle(sentiment=sentiment, decision=decision or make_decision())
        self.signals = FakeSignalSource(signals)
        self.documents = FakeDocumentSource()
        self.fundamentals = FakeFundamentalsSource()
        self.gate = CooldownGate(InMemoryCooldownStore(), cooldown=timedelta(minutes=60), clock=self.clock)
        self.orchestrator = TradingOrchestrator(
            data_store=store,
            ledger=self.ledger,
            positions=self.positions,
            prices=self.prices,
            overviews=OverviewCache(store, self.prices, clock=self.clock),
            analyses=AnalysisCache(store, self.oracle, clock=self.clock),
            oracle=self.oracle,
            signal_source=self.signals,
            ticker_extractor=FakeTickerExtractor(),
            document_source=self.documents,
            fundamentals_source=self.fundamentals,
            cooldown_gate=self.gate,
            clock=self.clock,
        )


def signal(*tickers: str, title: str = "post") -> Signal:
    return Signal(title=title, body=" ".join(tickers))


class TestTradingRun:
    """
    **Feature: signal-trading, Property 16: One Trade Per Run**

    The first proposed trade is executed and ends the run: one position is
    opened and the ledger is debited by the invested amount.
    """

    def test_trade_executed(self, temp_db: DataStore):
        h = Harness(temp_db, [signal("AAPL", "MSFT")])

        result = h.orchestrator.run()

        assert result == "Bought AAPL"
        assert h.ledger.get_available() == pytest.approx(9000.0)
        open_positions = h.positions.list_open(h.clock().date())
        assert [p.ticker for p in open_positions] == ["AAPL"]
        assert open_positions[0].entry_price == 100.0
        assert "MSFT" not in h.documents.calls

    def test_decision_sees_available_cash(self, temp_db: DataStore):
        h = Harness(temp_db, [signal("AAPL")])
        h.ledger.set_available(4321.0)

        h.orchestrator.run()

        decide = [c for c in h.oracle.calls if c[0] == "decide"][0]
        assert decide[1] == 4321.0
        assert decide[2] == MARKET_OPEN.date()

    def test_no_signals_returns_none(self, temp_db: DataStore):
        h = Harness(temp_db, [])

        assert h.orchestrator.run() is None

    def test_signal_fetch_failure_returns_none(self, temp_db: DataStore):
        h = Harness(temp_db, [])
        h.signals.error = ExternalSourceError("feed down")

        assert h.orchestrator.run() is None

    def test_signal_without_tickers_skipped(self, temp_db: DataStore):
        h = Harness(temp_db, [signal(title="nothing here"), signal("MSFT")])

        h.orchestrator.run()

        assert h.documents.calls == ["MSFT"]

    def test_existing_position_skipped(self, temp_db: DataStore):
        h = Harness(temp_db, [signal("AAPL", "MSFT")])
        h.orchestrator.run()

        h.orchestrator.run()

        tickers = sorted(p.ticker for p in h.positions.list_open(h.clock().date()))
        assert tickers == ["AAPL", "MSFT"]
        assert h.documents.calls == ["AAPL", "MSFT"]

    def test_position_opened_during_run_not_duplicated(self, temp_db: DataStore, monkeypatch):
        h = Harness(temp_db, [signal("AAPL", "MSFT")])
        h.orchestrator.run()
        real_check = h.positions.has_open_position

        def stale_check(ticker, as_of, conn=None):
            # Outside the trade transaction the AAPL position is not yet visible
            if conn is None:
                return False
            return real_check(ticker, as_of, conn=conn)

        monkeypatch.setattr(h.positions, "has_open_position", stale_check)

        result = h.orchestrator.run()

        assert result == "Bought MSFT"
        tickers = sorted(p.ticker for p in h.positions.list_unclosed())
        assert tickers == ["AAPL", "MSFT"]
        assert h.ledger.get_available() == pytest.approx(8000.0)

    def test_missing_section_skipped(self, temp_db: DataStore):
        h = Harness(temp_db, [signal("AAPL", "MSFT")])
        h.documents.missing = {"AAPL": "mdna"}

        result = h.orchestrator.run()

        assert result == "Bought MSFT"
        assert h.oracle.calls[0] == ("summarize_business", "MSFT sells things.")

    def test_neutral_sentiment_skips_decision(self, temp_db: DataStore):
        h = Harness(temp_db, [signal("AAPL")], sentiment="neutral")

        assert h.orchestrator.run() is None
        assert "decide" not in h.oracle.names()
        assert h.ledger.get_available() == 10000.0

    def test_oracle_declines(self, temp_db: DataStore):
        h = Harness(temp_db, [signal("AAPL")])
        h.oracle.decision = None

        assert h.orchestrator.run() is None
        assert h.positions.list_unclosed() == []

    def test_ticker_error_moves_to_next_ticker(self, temp_db: DataStore):
        h = Harness(temp_db, [signal("AAPL", "MSFT")])
        h.oracle.sentiment_failing_for.add("AAPL")

        assert h.orchestrator.run() == "Bought MSFT"

    def test_insufficient_funds_is_no_trade(self, temp_db: DataStore):
        h = Harness(temp_db, [signal("AAPL")], decision=make_decision(amount=50000.0))

        assert h.orchestrator.run() is None
        assert h.ledger.get_available() == 10000.0
        assert h.positions.list_unclosed() == []

    def test_explanation_failure_falls_back(self, temp_db: DataStore):
        decision = make_decision()
        h = Harness(temp_db, [signal("AAPL")], decision=decision)
        h.oracle.failing.add("explain_trade")

        result = h.orchestrator.run()

        assert result == describe_decision(decision, "AAPL")
        assert len(h.positions.list_unclosed()) == 1

    def test_signal_and_ticker_caps(self, temp_db: DataStore):
        signals = [signal(f"T{i}A", f"T{i}B", f"T{i}C", f"T{i}D") for i in range(7)]
        h = Harness(temp_db, signals)
        h.oracle.decision = None

        h.orchestrator.run()

        assert len(h.documents.calls) == 5 * 3
        assert all(not t.endswith("D") for t in h.documents.calls)

    def test_sweep_runs_first(self, temp_db: DataStore):
        h = Harness(temp_db, [signal("AAPL")])
        h.orchestrator.run()
        h.price_source.prices["AAPL"] = 50.0
        h.clock.advance(hours=2)

        h.orchestrator.run()

        history = h.positions.history()
        assert [c.close_reason for c in history] == ["stop_loss"]
        # AAPL was reopened after the sweep freed it
        assert [p.ticker for p in h.positions.list_open(h.clock().date())] == ["AAPL"]

    def test_sweep_failure_aborts_run(self, temp_db: DataStore, monkeypatch):
        h = Harness(temp_db, [signal("AAPL")])

        def broken(*args, **kwargs):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(h.store, "get_unclosed_positions", broken)

        with pytest.raises(RuntimeError):
            h.orchestrator.run()
        assert h.signals.calls == 0


class TestUserRateLimit:
    """
    **Feature: signal-trading, Property 17: Rate-Limited Runs Are Inert**

    A rejected run reports the wait time and touches neither the ledger nor
    the positions.
    """

    def test_second_run_rejected(self, temp_db: DataStore):
        h = Harness(temp_db, [signal("AAPL")])

        first = h.orchestrator.run_for_user("alice")
        balance = h.ledger.get_available()
        positions = h.positions.list_unclosed()
        calls = h.signals.calls

        h.clock.advance(minutes=10)
        second = h.orchestrator.run_for_user("alice")

        assert first.status == "traded"
        assert first.render() == "Bought AAPL"
        assert second.status == "rate_limited"
        assert second.wait_minutes == 50
        assert second.render() == "You must wait 50 more minute(s) before running again."
        assert h.signals.calls == calls
        assert h.ledger.get_available() == balance
        assert h.positions.list_unclosed() == positions

    def test_no_trade_outcome(self, temp_db: DataStore):
        h = Harness(temp_db, [])

        outcome = h.orchestrator.run_for_user("bob")

        assert outcome.status == "no_trade"
        assert outcome.render() == "No trading opportunity found for now."


class TestPortfolioSnapshot:
    """
    **Feature: signal-trading, Property 18: Portfolio Valuation**

    Total value is cash plus marked-to-market positions; positions without
    a price are carried at cost.
    """

    def test_snapshot_values_positions(self, temp_db: DataStore):
        h = Harness(temp_db, [signal("AAPL")])
        h.orchestrator.run()
        h.price_source.prices["AAPL"] = 105.0
        h.clock.advance(hours=2)

        snapshot = h.orchestrator.get_portfolio_snapshot()

        assert snapshot.available_cash == pytest.approx(9000.0)
        # Long x2 from 100 to 105 is +10%
        assert snapshot.invested_value == pytest.approx(1100.0)
        assert snapshot.total_value == pytest.approx(10100.0)
        assert snapshot.total_pnl == pytest.approx(100.0)
        assert snapshot.total_pnl_percent == pytest.approx(1.0)

    def test_unpriced_position_valued_at_cost(self, temp_db: DataStore):
        h = Harness(temp_db, [signal("AAPL")])
        h.orchestrator.run()
        temp_db.delete_cached_price("AAPL")
        h.price_source.failing.add("AAPL")

        snapshot = h.orchestrator.get_portfolio_snapshot()

        assert snapshot.positions[0].price_available is False
        assert snapshot.positions[0].current_value == 1000.0
        assert snapshot.total_value == pytest.approx(10000.0)

    def test_review_closures(self, temp_db: DataStore):
        h = Harness(temp_db, [])

        assert h.orchestrator.review_closures([]) is None
