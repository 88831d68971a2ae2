"""Position and ClosedPosition data models."""

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

Direction = Literal["Long", "Short"]
CloseReason = Literal["stop_loss", "take_profit", "expired", "manual"]

CLOSE_REASON_DESCRIPTIONS = {
    "stop_loss": "Stop Loss Triggered",
    "take_profit": "Take Profit Reached",
    "expired": "Position Expired",
    "manual": "Manually Closed",
}


def calculate_pnl_percent(
    direction: Direction,
    entry_price: float,
    current_price: float,
    leverage: int,
) -> float:
    """Calculate leveraged profit/loss percentage for a position.

    Args:
        direction: Trade direction (Long or Short).
        entry_price: Price at which the position was opened.
        current_price: Current market price.
        leverage: Leverage multiplier.

    Returns:
        Signed P&L percentage including the leverage effect.
    """
    if direction == "Long":
        return (current_price - entry_price) / entry_price * 100 * leverage
    return (entry_price - current_price) / entry_price * 100 * leverage


class Position(BaseModel):
    """Represents a simulated trade, open or closed."""

    id: Optional[int] = Field(default=None, description="Database ID")
    ticker: str = Field(..., min_length=1, description="Ticker symbol")
    direction: Direction = Field(..., description="Trade direction")
    amount_invested: float = Field(..., gt=0, description="Cash committed to the trade")
    entry_price: float = Field(..., gt=0, description="Price at open")
    leverage: int = Field(..., ge=1, le=10, description="Leverage multiplier")
    open_date: date = Field(..., description="Date the position was opened")
    target_close_date: date = Field(..., description="Date after which the position expires")
    stop_loss_pct: float = Field(..., gt=0, description="Stop loss threshold (%)")
    take_profit_pct: float = Field(..., gt=0, description="Take profit threshold (%)")
    confidence: float = Field(..., ge=0, le=1, description="Decision confidence")
    rationale: str = Field(default="", description="Decision summary")
    closed: bool = Field(default=False, description="Whether the position is closed")
    close_reason: Optional[CloseReason] = Field(default=None, description="Why it closed")
    close_price: Optional[float] = Field(default=None, ge=0, description="Price at close")
    close_date: Optional[date] = Field(default=None, description="Date of close")
    final_value: Optional[float] = Field(default=None, description="Value credited on close")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _close_reason_iff_closed(self) -> "Position":
        if self.closed and self.close_reason is None:
            raise ValueError("closed positions require a close_reason")
        if not self.closed and self.close_reason is not None:
            raise ValueError("open positions cannot carry a close_reason")
        return self

    def pnl_percent(self, current_price: float) -> float:
        """Leveraged P&L percentage at the given price."""
        return calculate_pnl_percent(
            self.direction, self.entry_price, current_price, self.leverage
        )

    def is_active(self, as_of: date) -> bool:
        """Open and not yet past its target close date."""
        return not self.closed and self.target_close_date >= as_of


class ClosedPosition(BaseModel):
    """Summary of a position closed by a sweep or manually."""

    id: int = Field(..., description="Position ID")
    ticker: str = Field(..., description="Ticker symbol")
    direction: Direction = Field(..., description="Trade direction")
    amount_invested: float = Field(..., description="Cash committed at open")
    entry_price: float = Field(..., description="Price at open")
    close_price: float = Field(..., description="Price at close")
    leverage: int = Field(..., description="Leverage multiplier")
    pnl_percent: float = Field(..., description="Leveraged P&L percentage")
    pnl_amount: float = Field(..., description="P&L in account currency")
    close_reason: CloseReason = Field(..., description="Why the position closed")
    open_date: date = Field(..., description="Date opened")
    target_close_date: date = Field(..., description="Planned close date")
    close_date: date = Field(..., description="Actual close date")
    final_value: float = Field(..., description="Value credited to the ledger")

    model_config = {"frozen": True}

    @property
    def is_profit(self) -> bool:
        return self.pnl_percent > 0

    @property
    def close_reason_description(self) -> str:
        return CLOSE_REASON_DESCRIPTIONS.get(self.close_reason, "Unknown")

    @property
    def formatted_pnl(self) -> str:
        sign = "+" if self.pnl_percent >= 0 else ""
        return f"{sign}{self.pnl_percent:.2f}% ({sign}${self.pnl_amount:.2f})"

    @property
    def duration_days(self) -> int:
        return (self.close_date - self.open_date).days

    def __str__(self) -> str:
        marker = "▲" if self.is_profit else "▼"
        return (
            f"{marker} {self.ticker} {self.direction} - {self.close_reason_description}: "
            f"{self.formatted_pnl} ({self.duration_days} days)"
        )


def summarize_closures(closed: list[ClosedPosition]) -> dict:
    """Aggregate a batch of closed positions.

    Args:
        closed: Positions closed in one sweep.

    Returns:
        Dictionary with count, profitable, losses and total_pnl.
    """
    profitable = sum(1 for c in closed if c.is_profit)
    return {
        "count": len(closed),
        "profitable": profitable,
        "losses": len(closed) - profitable,
        "total_pnl": sum(c.pnl_amount for c in closed),
    }
