"""Trading orchestrator.

One run of the engine:

1. Sweep open positions and close those whose stop loss, take profit or
   target date triggered.
2. Scan recent signals for tickers and, per ticker, gather the filing
   analysis and company overview, ask the oracle for a sentiment and a
   decision.
3. Execute the first proposed trade and return its explanation.

Errors while scanning a signal or ticker are logged and the next one is
tried. A failed sweep aborts the run.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime
from typing import Optional

from signaltrader.agents.oracle import Oracle
from signaltrader.cache import AnalysisCache, OverviewCache, PriceCache
from signaltrader.cache.base import Clock
from signaltrader.db.store import DataStore
from signaltrader.errors import InsufficientFundsError
from signaltrader.models import (
    ClosedPosition,
    CompanyOverview,
    PortfolioSnapshot,
    RunOutcome,
    Signal,
    TradeDecision,
)
from signaltrader.sources.base import (
    DocumentSource,
    FundamentalsSource,
    SignalSource,
    TickerExtractor,
)
from signaltrader.trading.ledger import Ledger
from signaltrader.trading.portfolio import take_snapshot
from signaltrader.trading.positions import PositionLifecycle
from signaltrader.trading.ratelimit import CooldownGate, InMemoryCooldownStore

logger = logging.getLogger(__name__)


def describe_decision(decision: TradeDecision, ticker: str) -> str:
    """Plain description of a trade, used when no explanation is available."""
    return (
        f"Opened {decision.direction} on {ticker}: {decision.amount_to_invest:.2f} "
        f"at {decision.leverage}x until {decision.end_date.isoformat()}. "
        f"{decision.summary}"
    ).strip()


class TradingOrchestrator:
    """Drives sweeps and trading runs over the caches, ledger and positions."""

    def __init__(
        self,
        data_store: DataStore,
        ledger: Ledger,
        positions: PositionLifecycle,
        prices: PriceCache,
        overviews: OverviewCache,
        analyses: AnalysisCache,
        oracle: Oracle,
        signal_source: SignalSource,
        ticker_extractor: TickerExtractor,
        document_source: DocumentSource,
        fundamentals_source: FundamentalsSource,
        cooldown_gate: Optional[CooldownGate] = None,
        max_signals_per_run: int = 5,
        max_tickers_per_signal: int = 3,
        clock: Clock = datetime.now,
    ):
        """Initialize the orchestrator.

        Args:
            data_store: DataStore shared by the ledger and positions.
            ledger: Cash ledger.
            positions: Position lifecycle.
            prices: Price cache.
            overviews: Company overview cache.
            analyses: Filing analysis cache.
            oracle: Oracle used for sentiment, decisions and explanations.
            signal_source: Feed of candidate signals.
            ticker_extractor: Extracts tickers from a signal.
            document_source: Annual-report sections per ticker.
            fundamentals_source: Company fundamentals per ticker.
            cooldown_gate: Per-user rate limit. Defaults to an in-memory
                60 minute cooldown.
            max_signals_per_run: Signals examined per run.
            max_tickers_per_signal: Tickers examined per signal.
            clock: Returns the current local time.
        """
        self.data_store = data_store
        self.ledger = ledger
        self.positions = positions
        self.prices = prices
        self.overviews = overviews
        self.analyses = analyses
        self.oracle = oracle
        self.signal_source = signal_source
        self.ticker_extractor = ticker_extractor
        self.document_source = document_source
        self.fundamentals_source = fundamentals_source
        self.cooldown_gate = cooldown_gate or CooldownGate(InMemoryCooldownStore(), clock=clock)
        self.max_signals_per_run = max_signals_per_run
        self.max_tickers_per_signal = max_tickers_per_signal
        self._clock = clock

    # ==================== Sweep ====================

    def sweep_and_close(self, now: Optional[datetime] = None) -> list[ClosedPosition]:
        return self.positions.sweep_and_close(now or self._clock())

    def review_closures(self, closed: list[ClosedPosition]) -> Optional[str]:
        """Narrative review of closed positions, or None if there are none."""
        if not closed:
            return None
        return self.oracle.review_closures(closed)

    # ==================== Run ====================

    def run_for_user(self, user_id: str) -> RunOutcome:
        """Run the engine on behalf of a user, subject to the cooldown.

        A rejected call does not sweep, read the ledger or touch positions.

        Args:
            user_id: Invoking user.

        Returns:
            RunOutcome with status traded, no_trade or rate_limited.
        """
        wait_minutes = self.cooldown_gate.try_acquire(user_id)
        if wait_minutes:
            return RunOutcome(status="rate_limited", wait_minutes=wait_minutes)

        message = self.run()
        if message is None:
            return RunOutcome(status="no_trade")
        return RunOutcome(status="traded", message=message)

    def run(self) -> Optional[str]:
        """Sweep, scan signals and execute at most one trade.

        Returns:
            Explanation of the executed trade, or None if nothing was traded.
        """
        now = self._clock()
        today = now.date()

        self.sweep_and_close(now)

        try:
            signals = self.signal_source.fetch_candidates()
        except Exception as e:
            logger.error("Failed to fetch signals: %s", e)
            return None

        for signal in signals[: self.max_signals_per_run]:
            explanation = self._process_signal(signal, today)
            if explanation is not None:
                return explanation

        logger.info("No trading opportunity found")
        return None

    def _process_signal(self, signal: Signal, today: date) -> Optional[str]:
        logger.info("Processing signal: %s", signal.title)
        try:
            tickers = self.ticker_extractor.extract(signal)
        except Exception as e:
            logger.error("Ticker extraction failed for %r: %s", signal.title, e)
            return None

        if not tickers:
            logger.info("No tickers found in %r", signal.title)
            return None

        for ticker in tickers[: self.max_tickers_per_signal]:
            try:
                explanation = self._process_ticker(signal, ticker, today)
            except InsufficientFundsError as e:
                logger.warning("Rejected trade on %s: %s", ticker, e)
                continue
            except Exception:
                logger.exception("Error processing ticker %s", ticker)
                continue
            if explanation is not None:
                return explanation
        return None

    def fetch_overview(self, ticker: str) -> CompanyOverview:
        """Build a fresh overview from the fundamentals source and price cache."""
        return CompanyOverview(
            fundamentals=self.fundamentals_source.fetch_fundamentals(ticker),
            price=self.prices.get_both(ticker),
        )

    def _process_ticker(self, signal: Signal, ticker: str, today: date) -> Optional[str]:
        logger.info("Processing ticker: %s", ticker)

        if self.positions.has_open_position(ticker, today):
            logger.info("Active position already exists for %s, skipping", ticker)
            return None

        sections = self.document_source.fetch_sections(ticker)
        missing = sections.missing()
        if missing:
            logger.info("Missing filing sections for %s: %s", ticker, ", ".join(missing))
            return None

        with ThreadPoolExecutor(max_workers=2) as pool:
            analysis_future = pool.submit(
                self.analyses.get_or_generate,
                ticker,
                sections.business,
                sections.risk_factors,
                sections.mdna,
            )
            overview_future = pool.submit(
                self.overviews.get_or_fetch,
                ticker,
                lambda: self.fetch_overview(ticker),
            )
            analysis = analysis_future.result()
            overview = overview_future.result()

        sentiment = self.oracle.judge_sentiment(signal, analysis, overview)
        if sentiment.is_neutral:
            logger.info("Neutral sentiment for %s, no trade", ticker)
            return None

        decision = self.oracle.decide(sentiment, self.ledger.get_available(), today)
        if decision is None:
            logger.info("Oracle proposed no trade for %s", ticker)
            return None

        if not self._execute(decision, ticker, overview.price.current_price, today):
            return None
        return self._explain(decision, ticker)

    def _execute(
        self, decision: TradeDecision, ticker: str, entry_price: float, today: date
    ) -> bool:
        with self.data_store.transaction() as conn:
            if self.positions.has_open_position(ticker, today, conn=conn):
                logger.info("Position on %s opened concurrently, skipping", ticker)
                return False
            self.positions.open_position(decision, ticker, entry_price, conn=conn)
            self.ledger.debit(decision.amount_to_invest, conn=conn)
        logger.info("Successfully processed %s trade", ticker)
        return True

    def _explain(self, decision: TradeDecision, ticker: str) -> str:
        try:
            return self.oracle.explain_trade(decision, ticker)
        except Exception as e:
            logger.warning("Trade explanation failed for %s: %s", ticker, e)
            return describe_decision(decision, ticker)

    # ==================== Portfolio ====================

    def get_portfolio_snapshot(self) -> PortfolioSnapshot:
        """Value the account: cash plus open positions marked to market."""
        return take_snapshot(self.positions, self.prices, self.ledger)
