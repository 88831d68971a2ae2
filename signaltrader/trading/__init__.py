"""Trading engine: ledger, positions, rate limiting and orchestration."""

from signaltrader.trading.ledger import Ledger
from signaltrader.trading.orchestrator import TradingOrchestrator
from signaltrader.trading.portfolio import build_snapshot, take_snapshot
from signaltrader.trading.positions import PositionLifecycle, evaluate_triggers
from signaltrader.trading.ratelimit import (
    CooldownGate,
    CooldownStore,
    InMemoryCooldownStore,
    SqliteCooldownStore,
)

__all__ = [
    "CooldownGate",
    "CooldownStore",
    "InMemoryCooldownStore",
    "Ledger",
    "PositionLifecycle",
    "SqliteCooldownStore",
    "TradingOrchestrator",
    "build_snapshot",
    "take_snapshot",
    "evaluate_triggers",
]
