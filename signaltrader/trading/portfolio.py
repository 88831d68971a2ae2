"""Portfolio valuation."""

from typing import Optional

from signaltrader.models import PortfolioSnapshot, Position, PositionSnapshot


def value_position(position: Position, current_price: Optional[float]) -> PositionSnapshot:
    """Mark one open position to market.

    A position without a price is carried at the amount invested.
    """
    if current_price is None:
        pnl_percent = None
        current_value = position.amount_invested
    else:
        pnl_percent = position.pnl_percent(current_price)
        current_value = position.amount_invested * (1 + pnl_percent / 100)

    return PositionSnapshot(
        id=position.id,
        ticker=position.ticker,
        direction=position.direction,
        leverage=position.leverage,
        amount_invested=position.amount_invested,
        entry_price=position.entry_price,
        current_price=current_price,
        pnl_percent=pnl_percent,
        current_value=current_value,
        stop_loss_pct=position.stop_loss_pct,
        take_profit_pct=position.take_profit_pct,
        target_close_date=position.target_close_date,
    )


def build_snapshot(
    positions: list[Position],
    prices: dict[str, float],
    available_cash: float,
    starting_balance: float,
) -> PortfolioSnapshot:
    """Value the whole account.

    Args:
        positions: Open positions.
        prices: Current price per ticker. Missing tickers are valued at cost.
        available_cash: Ledger balance.
        starting_balance: Initial balance the P&L is measured against.

    Returns:
        PortfolioSnapshot.
    """
    snapshots = [value_position(p, prices.get(p.ticker)) for p in positions]
    return PortfolioSnapshot(
        available_cash=available_cash,
        invested_value=sum(s.current_value for s in snapshots),
        starting_balance=starting_balance,
        positions=snapshots,
    )


def take_snapshot(positions, prices, ledger) -> PortfolioSnapshot:
    """Value every unclosed position at the current price.

    Args:
        positions: PositionLifecycle.
        prices: PriceCache.
        ledger: Ledger.
    """
    open_positions = positions.list_unclosed()
    current = prices.get_many(p.ticker for p in open_positions)
    return build_snapshot(
        open_positions,
        current,
        available_cash=ledger.get_available(),
        starting_balance=ledger.starting_balance,
    )
