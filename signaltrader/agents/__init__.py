"""Oracle agents for SignalTrader.

This module provides the oracle that backs the trading engine:
- Oracle: interface for filing analysis, sentiment, decisions and explanations
- AgentOracle: OpenAI Agents SDK implementation
- AgentTickerExtractor / CashtagTickerExtractor: ticker extraction from signals
"""

from signaltrader.agents.base import create_agent, get_model, run_agent_sync
from signaltrader.agents.extractors import AgentTickerExtractor, CashtagTickerExtractor
from signaltrader.agents.oracle import AgentOracle, Oracle
from signaltrader.agents.parsing import (
    classify_sentiment,
    parse_decision,
    parse_sentiment,
    parse_ticker_list,
)

__all__ = [
    # Base utilities
    "create_agent",
    "run_agent_sync",
    "get_model",
    # Oracle
    "Oracle",
    "AgentOracle",
    "AgentTickerExtractor",
    "CashtagTickerExtractor",
    # Parsers
    "classify_sentiment",
    "parse_decision",
    "parse_sentiment",
    "parse_ticker_list",
]
