"""Ticker extractors for signals."""

import logging
import re
from typing import Optional

from signaltrader.agents.oracle import AgentOracle
from signaltrader.agents.parsing import parse_ticker_list
from signaltrader.models import Signal
from signaltrader.sources.base import TickerExtractor

logger = logging.getLogger(__name__)

# Uppercase words that look like tickers but rarely are
COMMON_WORDS = {
    "A", "I", "AI", "AM", "AN", "AND", "ARE", "CEO", "CFO", "DD", "EPS",
    "ETF", "FOR", "GDP", "IMO", "IPO", "IT", "OP", "PE", "SEC", "THE",
    "TLDR", "USA", "USD", "WSB", "YOLO", "BUY", "SELL", "CALL", "PUT",
}


class CashtagTickerExtractor(TickerExtractor):
    """Deterministic extractor based on ``$TICKER`` cashtags and uppercase words.

    Cashtags are trusted as-is. Bare uppercase words are only accepted when
    ``include_bare`` is set and they are not common words.
    """

    patterns = [
        r"\$([A-Za-z]{1,5})\b",  # "$AAPL"
        r"\b([A-Z]{2,5})\b",  # uppercase words 2-5 chars
    ]

    def __init__(self, include_bare: bool = False, known_symbols: Optional[set[str]] = None):
        self.include_bare = include_bare
        self.known_symbols = known_symbols

    def extract(self, signal: Signal) -> list[str]:
        text = f"{signal.title}\n{signal.body}"
        found: list[str] = []

        patterns = self.patterns if self.include_bare else self.patterns[:1]
        for pattern in patterns:
            for match in re.finditer(pattern, text):
                symbol = match.group(1).upper()
                if symbol in COMMON_WORDS or symbol in found:
                    continue
                if self.known_symbols is not None and symbol not in self.known_symbols:
                    continue
                found.append(symbol)
        return found


class AgentTickerExtractor(TickerExtractor):
    """Extractor that asks an agent for the tickers mentioned in a signal."""

    def __init__(self, oracle: AgentOracle):
        self._oracle = oracle

    def extract(self, signal: Signal) -> list[str]:
        tickers = parse_ticker_list(self._oracle.extract_tickers(signal))
        logger.debug("Tickers in %r: %s", signal.title, tickers)
        return tickers
