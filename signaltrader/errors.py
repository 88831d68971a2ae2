"""Exception types for SignalTrader."""


class SignalTraderError(Exception):
    """Base class for all SignalTrader errors."""


class ConfigurationError(SignalTraderError):
    """Raised when the configuration file or a configured source is invalid."""


class ExternalSourceError(SignalTraderError):
    """Raised when an external data source or oracle call fails."""


class PriceUnavailableError(ExternalSourceError):
    """Raised when no fresh or stale price exists for a ticker."""

    def __init__(self, ticker: str, field: str = "current"):
        super().__init__(f"No {field} price available for {ticker}")
        self.ticker = ticker
        self.field = field


class DecisionParseError(ExternalSourceError):
    """Raised when oracle output cannot be parsed into a valid decision."""


class InsufficientFundsError(SignalTraderError):
    """Raised when a trade would commit more cash than is available."""

    def __init__(self, required: float, available: float):
        super().__init__(
            f"Insufficient balance. Required: {required:.2f}, Available: {available:.2f}"
        )
        self.required = required
        self.available = available


class PositionNotFoundError(SignalTraderError):
    """Raised when a position ID or ticker has no matching open position."""
