"""Position lifecycle: opening, sweeping and closing simulated trades.

A position moves one way, from open to closed, with one of four reasons:
stop_loss, take_profit, expired or manual. Closed rows are kept forever as
trade history.
"""

import logging
import sqlite3
from datetime import date, datetime
from typing import Optional

from signaltrader.cache.base import Clock
from signaltrader.cache.prices import PriceCache
from signaltrader.db.store import DataStore
from signaltrader.errors import PositionNotFoundError
from signaltrader.models import ClosedPosition, Position, TradeDecision, summarize_closures
from signaltrader.models.position import CloseReason
from signaltrader.trading.ledger import Ledger

logger = logging.getLogger(__name__)


def evaluate_triggers(
    position: Position, pnl_percent: float, today: date
) -> Optional[CloseReason]:
    """Decide whether a position should close.

    Triggers are checked in priority order: stop loss, take profit, expiry.

    Args:
        position: Open position.
        pnl_percent: Its current leveraged P&L percentage.
        today: Current date.

    Returns:
        The close reason, or None if the position stays open.
    """
    if pnl_percent <= -position.stop_loss_pct:
        return "stop_loss"
    if pnl_percent >= position.take_profit_pct:
        return "take_profit"
    if position.target_close_date < today:
        return "expired"
    return None


def to_closed_position(position: Position) -> ClosedPosition:
    """Summarize a closed position row."""
    if not position.closed:
        raise ValueError(f"Position {position.id} is still open")
    pnl_percent = position.pnl_percent(position.close_price)
    return ClosedPosition(
        id=position.id,
        ticker=position.ticker,
        direction=position.direction,
        amount_invested=position.amount_invested,
        entry_price=position.entry_price,
        close_price=position.close_price,
        leverage=position.leverage,
        pnl_percent=pnl_percent,
        pnl_amount=position.final_value - position.amount_invested,
        close_reason=position.close_reason,
        open_date=position.open_date,
        target_close_date=position.target_close_date,
        close_date=position.close_date,
        final_value=position.final_value,
    )


class PositionLifecycle:
    """CRUD and state transitions over persisted positions."""

    def __init__(
        self,
        data_store: DataStore,
        ledger: Ledger,
        prices: PriceCache,
        clock: Clock = datetime.now,
    ):
        self._data_store = data_store
        self._ledger = ledger
        self._prices = prices
        self._clock = clock

    # ==================== Queries ====================

    def get(self, position_id: int) -> Position:
        position = self._data_store.get_position(position_id)
        if position is None:
            raise PositionNotFoundError(f"No position with id {position_id}")
        return position

    def has_open_position(
        self, ticker: str, as_of: date, conn: Optional[sqlite3.Connection] = None
    ) -> bool:
        """True if an open, unexpired position exists for the ticker."""
        position = self._data_store.get_active_position_for_ticker(ticker, as_of, conn=conn)
        return position is not None

    def count_open(self, as_of: date) -> int:
        return self._data_store.count_active_positions(as_of)

    def list_open(self, as_of: date) -> list[Position]:
        return self._data_store.get_active_positions(as_of)

    def list_unclosed(self) -> list[Position]:
        """Open positions including those past their target date but not yet swept."""
        return self._data_store.get_unclosed_positions()

    def list_closed(self) -> list[Position]:
        return self._data_store.get_closed_positions()

    def history(self) -> list[ClosedPosition]:
        """Closed positions as trade summaries, most recent first."""
        return [to_closed_position(p) for p in self.list_closed()]

    def find_open(self, ticker: str, as_of: date) -> Position:
        position = self._data_store.get_active_position_for_ticker(ticker, as_of)
        if position is None:
            raise PositionNotFoundError(f"No open position for {ticker}")
        return position

    # ==================== Transitions ====================

    def open_position(
        self,
        decision: TradeDecision,
        ticker: str,
        entry_price: float,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Position:
        """Insert a new open position. The ledger is not touched.

        Args:
            decision: Validated trade decision.
            ticker: Ticker symbol.
            entry_price: Price at open.
            conn: Optional connection of an enclosing transaction.

        Returns:
            The stored position with its assigned ID.
        """
        position = Position(
            ticker=ticker,
            direction=decision.direction,
            amount_invested=decision.amount_to_invest,
            entry_price=entry_price,
            leverage=decision.leverage,
            open_date=decision.start_date,
            target_close_date=decision.end_date,
            stop_loss_pct=decision.stop_loss_pct,
            take_profit_pct=decision.take_profit_pct,
            confidence=decision.confidence,
            rationale=decision.summary,
        )
        position_id = self._data_store.insert_position(position, conn)
        logger.info(
            "Opened %s %s x%d: %.2f at %.2f",
            decision.direction,
            ticker,
            decision.leverage,
            decision.amount_to_invest,
            entry_price,
        )
        return position.model_copy(update={"id": position_id})

    def _close(
        self,
        position: Position,
        close_price: float,
        reason: CloseReason,
        close_date: date,
    ) -> Optional[ClosedPosition]:
        pnl_percent = position.pnl_percent(close_price)
        final_value = position.amount_invested * (1 + pnl_percent / 100)

        with self._data_store.transaction() as conn:
            transitioned = self._data_store.mark_position_closed(
                position.id,
                reason,
                close_price,
                close_date,
                final_value,
                conn=conn,
            )
            if not transitioned:
                logger.warning("Position %s was already closed, skipping", position.id)
                return None
            self._ledger.credit(final_value, conn=conn)

        closed = to_closed_position(
            position.model_copy(
                update={
                    "closed": True,
                    "close_reason": reason,
                    "close_price": close_price,
                    "close_date": close_date,
                    "final_value": final_value,
                }
            )
        )
        logger.info("Closed %s", closed)
        return closed

    def sweep_and_close(self, now: Optional[datetime] = None) -> list[ClosedPosition]:
        """Close every open position whose stop loss, take profit or expiry triggered.

        Positions whose current price cannot be obtained are left open.

        Args:
            now: Current time. Defaults to the lifecycle clock.

        Returns:
            The positions closed by this sweep.
        """
        today = (now or self._clock()).date()
        open_positions = self._data_store.get_unclosed_positions()
        if not open_positions:
            logger.info("No active positions to check")
            return []

        prices = self._prices.get_many(p.ticker for p in open_positions)
        closed: list[ClosedPosition] = []

        for position in open_positions:
            current_price = prices.get(position.ticker)
            if current_price is None:
                logger.warning(
                    "No current price available for %s, skipping", position.ticker
                )
                continue

            pnl_percent = position.pnl_percent(current_price)
            reason = evaluate_triggers(position, pnl_percent, today)
            if reason is None:
                continue

            logger.info(
                "%s triggered for %s at %.2f%%", reason, position.ticker, pnl_percent
            )
            result = self._close(position, current_price, reason, today)
            if result is not None:
                closed.append(result)

        if closed:
            summary = summarize_closures(closed)
            logger.info(
                "Sweep closed %d position(s): %d profitable, %d losses, total P&L %.2f",
                summary["count"],
                summary["profitable"],
                summary["losses"],
                summary["total_pnl"],
            )
        return closed

    def close_position(
        self,
        position_id: int,
        now: Optional[datetime] = None,
        reason: CloseReason = "manual",
    ) -> ClosedPosition:
        """Close a single position at the current price.

        Raises:
            PositionNotFoundError: If the position is missing or already closed.
            PriceUnavailableError: If no price can be obtained.
        """
        position = self.get(position_id)
        if position.closed:
            raise PositionNotFoundError(f"Position {position_id} is already closed")

        close_price = self._prices.get_current(position.ticker)
        closed = self._close(position, close_price, reason, (now or self._clock()).date())
        if closed is None:
            raise PositionNotFoundError(f"Position {position_id} is already closed")
        return closed
