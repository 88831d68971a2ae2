"""Data models for SignalTrader."""

from signaltrader.models.decision import SentimentJudgment, TradeDecision
from signaltrader.models.overview import CompanyFundamentals, CompanyOverview, PriceInfo
from signaltrader.models.portfolio import PortfolioSnapshot, PositionSnapshot, RunOutcome
from signaltrader.models.position import (
    ClosedPosition,
    Position,
    calculate_pnl_percent,
    summarize_closures,
)
from signaltrader.models.signal import FilingAnalysis, FilingSections, Signal

__all__ = [
    "ClosedPosition",
    "CompanyFundamentals",
    "CompanyOverview",
    "FilingAnalysis",
    "FilingSections",
    "PortfolioSnapshot",
    "Position",
    "PositionSnapshot",
    "PriceInfo",
    "RunOutcome",
    "SentimentJudgment",
    "Signal",
    "TradeDecision",
    "calculate_pnl_percent",
    "summarize_closures",
]
