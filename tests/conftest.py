"""Shared fixtures and in-memory fakes of the external interfaces."""

import tempfile
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional

import pytest

from signaltrader.agents.oracle import Oracle
from signaltrader.db.store import DataStore
from signaltrader.errors import ExternalSourceError
from signaltrader.models import (
    ClosedPosition,
    CompanyFundamentals,
    CompanyOverview,
    FilingAnalysis,
    FilingSections,
    SentimentJudgment,
    Signal,
    TradeDecision,
)
from signaltrader.sources.base import (
    DocumentSource,
    FundamentalsSource,
    PriceSource,
    SignalSource,
    TickerExtractor,
)

# A weekday inside market hours
MARKET_OPEN = datetime(2024, 3, 5, 10, 0)
# Same day, after the close
OFF_HOURS = datetime(2024, 3, 5, 18, 0)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = MARKET_OPEN):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakePriceSource(PriceSource):
    def __init__(self, prices: Optional[dict[str, float]] = None, previous: Optional[dict[str, float]] = None):
        self.prices = dict(prices or {})
        self.previous = dict(previous or {})
        self.failing: set[str] = set()
        self.current_calls = 0
        self.previous_calls = 0

    def current_quote(self, ticker: str) -> float:
        self.current_calls += 1
        if ticker in self.failing:
            raise ExternalSourceError(f"quote service down for {ticker}")
        return self.prices.get(ticker, 0.0)

    def previous_close(self, ticker: str) -> float:
        self.previous_calls += 1
        if ticker in self.failing:
            raise ExternalSourceError(f"quote service down for {ticker}")
        return self.previous.get(ticker, self.prices.get(ticker, 0.0))


class FakeFundamentalsSource(FundamentalsSource):
    def __init__(self):
        self.calls: list[str] = []

    def fetch_fundamentals(self, ticker: str) -> CompanyFundamentals:
        self.calls.append(ticker)
        return CompanyFundamentals(symbol=ticker, name=f"{ticker} Inc", sector="Technology")


class FakeDocumentSource(DocumentSource):
    def __init__(self, missing: Optional[dict[str, str]] = None):
        self.missing = missing or {}
        self.calls: list[str] = []

    def fetch_sections(self, ticker: str) -> FilingSections:
        self.calls.append(ticker)
        sections = {
            "business": f"{ticker} sells things.",
            "risk_factors": f"{ticker} faces competition.",
            "mdna": f"{ticker} revenue grew.",
        }
        if ticker in self.missing:
            sections[self.missing[ticker]] = ""
        return FilingSections(**sections)


class FakeSignalSource(SignalSource):
    def __init__(self, signals: Optional[list[Signal]] = None, error: Optional[Exception] = None):
        self.signals = signals or []
        self.error = error
        self.calls = 0

    def fetch_candidates(self) -> list[Signal]:
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.signals)


class FakeTickerExtractor(TickerExtractor):
    """Returns the tickers listed in the signal body, one per word."""

    def extract(self, signal: Signal) -> list[str]:
        return signal.body.split()


class FakeOracle(Oracle):
    """Scripted oracle recording every call."""

    def __init__(self, sentiment: str = "bullish", decision: Optional[TradeDecision] = None):
        self.sentiment = sentiment
        self.decision = decision
        self.calls: list[tuple] = []
        self.failing: set[str] = set()
        self.sentiment_failing_for: set[str] = set()

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if name in self.failing:
            raise ExternalSourceError(f"{name} failed")

    def names(self) -> list[str]:
        return [c[0] for c in self.calls]

    def summarize_business(self, business: str) -> str:
        self._record("summarize_business", business)
        return f"overview of {business}"

    def summarize_risks(self, risk_factors: str, business_overview: str) -> str:
        self._record("summarize_risks", risk_factors, business_overview)
        return f"risks of {risk_factors}"

    def analyze_filing(self, mdna: str, business_overview: str, risk_overview: str) -> str:
        self._record("analyze_filing", mdna, business_overview, risk_overview)
        return f"analysis of {mdna}"

    def judge_sentiment(
        self, signal: Signal, analysis: FilingAnalysis, overview: CompanyOverview
    ) -> SentimentJudgment:
        self._record("judge_sentiment", overview.symbol)
        if overview.symbol in self.sentiment_failing_for:
            raise ExternalSourceError("sentiment failed")
        return SentimentJudgment(label=self.sentiment, reasoning="because")

    def decide(
        self, sentiment: SentimentJudgment, available_cash: float, today: date
    ) -> Optional[TradeDecision]:
        self._record("decide", available_cash, today)
        return self.decision

    def explain_trade(self, decision: TradeDecision, ticker: str) -> str:
        self._record("explain_trade", ticker)
        return f"Bought {ticker}"

    def review_closures(self, closed: list[ClosedPosition]) -> str:
        self._record("review_closures", len(closed))
        return "review"


def make_decision(
    amount: float = 1000.0,
    direction: str = "Long",
    leverage: int = 2,
    start: date = MARKET_OPEN.date(),
    days: int = 7,
    stop_loss: float = 10.0,
    take_profit: float = 20.0,
) -> TradeDecision:
    return TradeDecision(
        direction=direction,
        amount_to_invest=amount,
        leverage=leverage,
        start_date=start,
        end_date=start + timedelta(days=days),
        stop_loss_pct=stop_loss,
        take_profit_pct=take_profit,
        summary="Strong quarter",
        confidence=0.7,
    )


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        yield DataStore(db_path)


@pytest.fixture
def clock():
    return FakeClock()
