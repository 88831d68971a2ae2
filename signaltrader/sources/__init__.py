"""External source interfaces for SignalTrader."""

from signaltrader.sources.base import (
    DocumentSource,
    FundamentalsSource,
    PriceSource,
    SignalSource,
    TickerExtractor,
)

__all__ = [
    "DocumentSource",
    "FundamentalsSource",
    "PriceSource",
    "SignalSource",
    "TickerExtractor",
]
