"""CLI commands for SignalTrader.

This package provides the command-line interface for SignalTrader,
including trading runs, sweeps, portfolio, cache and ledger commands.
"""

from signaltrader.cli.main import cli, main

__all__ = ["cli", "main"]
