"""SignalTrader - paper trading driven by discussion signals."""

__version__ = "0.1.0"
