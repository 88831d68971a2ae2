"""Interfaces for the external data sources SignalTrader consumes.

Concrete implementations (RSS feeds, market data APIs, filing scrapers) live
outside this package and are wired in through the ``[sources]`` section of
the config file.
"""

from abc import ABC, abstractmethod

from signaltrader.models import CompanyFundamentals, FilingSections, Signal


class SignalSource(ABC):
    """Feed of discussion posts that may mention tickers."""

    @abstractmethod
    def fetch_candidates(self) -> list[Signal]:
        """Fetch candidate signals, newest first.

        Returns:
            List of signals. May be empty.
        """
        pass


class TickerExtractor(ABC):
    """Extracts ticker symbols mentioned in a signal."""

    @abstractmethod
    def extract(self, signal: Signal) -> list[str]:
        """Extract uppercase ticker symbols from a signal.

        Args:
            signal: Signal to inspect.

        Returns:
            Ticker symbols in order of appearance, or an empty list.
        """
        pass


class DocumentSource(ABC):
    """Source of annual-report sections."""

    @abstractmethod
    def fetch_sections(self, ticker: str) -> FilingSections:
        """Fetch the business, risk factors and MD&A sections for a ticker.

        Args:
            ticker: Ticker symbol.

        Returns:
            FilingSections. Missing sections are returned empty.
        """
        pass


class FundamentalsSource(ABC):
    """Source of company fundamentals."""

    @abstractmethod
    def fetch_fundamentals(self, ticker: str) -> CompanyFundamentals:
        """Fetch fundamentals for a ticker.

        Raises:
            ExternalSourceError: If no data is available.
        """
        pass


class PriceSource(ABC):
    """Source of market prices."""

    @abstractmethod
    def current_quote(self, ticker: str) -> float:
        """Latest traded price for a ticker."""
        pass

    @abstractmethod
    def previous_close(self, ticker: str) -> float:
        """Previous session's reference price for a ticker."""
        pass
