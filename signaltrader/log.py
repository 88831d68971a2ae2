"""Logging setup for the SignalTrader CLI."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(verbosity: int = 0, console: Console | None = None) -> None:
    """Route library logging through rich.

    Args:
        verbosity: 0 for warnings, 1 for info, 2 or more for debug.
        console: Optional console to write to (stderr by default).
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
