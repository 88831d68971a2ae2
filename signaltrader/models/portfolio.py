"""Portfolio snapshot and run outcome models."""

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field

from signaltrader.models.position import Direction

# Fraction of a stop loss / take profit threshold at which a position is flagged
THRESHOLD_WARNING_RATIO = 0.8


class PositionSnapshot(BaseModel):
    """Valuation of one open position."""

    id: int = Field(..., description="Position ID")
    ticker: str = Field(..., description="Ticker symbol")
    direction: Direction = Field(..., description="Trade direction")
    leverage: int = Field(..., description="Leverage multiplier")
    amount_invested: float = Field(..., description="Cash committed at open")
    entry_price: float = Field(..., description="Price at open")
    current_price: Optional[float] = Field(default=None, description="Live price if available")
    pnl_percent: Optional[float] = Field(default=None, description="Leveraged P&L %")
    current_value: float = Field(..., description="Marked-to-market value")
    stop_loss_pct: float = Field(..., description="Stop loss threshold (%)")
    take_profit_pct: float = Field(..., description="Take profit threshold (%)")
    target_close_date: date = Field(..., description="Planned close date")

    model_config = {"frozen": True}

    @property
    def price_available(self) -> bool:
        return self.current_price is not None

    @property
    def near_stop_loss(self) -> bool:
        if self.pnl_percent is None:
            return False
        return self.pnl_percent <= -self.stop_loss_pct * THRESHOLD_WARNING_RATIO

    @property
    def near_take_profit(self) -> bool:
        if self.pnl_percent is None:
            return False
        return self.pnl_percent >= self.take_profit_pct * THRESHOLD_WARNING_RATIO


class PortfolioSnapshot(BaseModel):
    """Point-in-time valuation of the whole account."""

    available_cash: float = Field(..., description="Cash in the ledger")
    invested_value: float = Field(..., description="Marked-to-market value of open positions")
    starting_balance: float = Field(..., description="Initial account balance")
    positions: list[PositionSnapshot] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def total_value(self) -> float:
        return self.available_cash + self.invested_value

    @property
    def total_pnl(self) -> float:
        return self.total_value - self.starting_balance

    @property
    def total_pnl_percent(self) -> float:
        if self.starting_balance <= 0:
            return 0.0
        return self.total_pnl / self.starting_balance * 100


class RunOutcome(BaseModel):
    """Result of a user-invoked trading run."""

    status: Literal["traded", "no_trade", "rate_limited"] = Field(..., description="Run result")
    message: Optional[str] = Field(default=None, description="Trade explanation")
    wait_minutes: int = Field(default=0, ge=0, description="Minutes until the next allowed run")

    model_config = {"frozen": True}

    def render(self) -> str:
        """Human-readable text for the outcome."""
        if self.status == "rate_limited":
            return f"You must wait {self.wait_minutes} more minute(s) before running again."
        if self.status == "no_trade":
            return "No trading opportunity found for now."
        return self.message or ""
