"""Cache commands for SignalTrader CLI."""

import click
from rich.console import Console
from rich.table import Table

from signaltrader.cli.main import get_components
from signaltrader.cli.run import error_panel
from signaltrader.errors import SignalTraderError

console = Console()


@click.group("cache")
def cache_group() -> None:
    """Inspect and clear the price, overview and analysis caches."""
    pass


@cache_group.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show entry counts per cache.

    \b
    Examples:
      signaltrader cache stats
    """
    components = get_components(ctx)

    try:
        prices = components.prices.stats()
        overviews = components.overviews.stats()
        analyses = components.analyses.stats()
    except SignalTraderError as e:
        console.print(error_panel(str(e)))
        raise SystemExit(1)

    table = Table(title="Cache Statistics", show_header=True, header_style="bold cyan")
    table.add_column("Cache", style="bold")
    table.add_column("Entries", justify="right")
    table.add_column("Expired", justify="right")
    table.add_column("With previous close", justify="right")

    table.add_row("Prices", str(prices["total"]), "-", str(prices["with_previous"]))
    table.add_row("Company overviews", str(overviews["total"]), str(overviews["expired"]), "-")
    table.add_row("Filing analyses", str(analyses["total"]), str(analyses["expired"]), "-")

    console.print(table)


@cache_group.command()
@click.argument("ticker")
@click.pass_context
def clear(ctx: click.Context, ticker: str) -> None:
    """Drop every cached entry for TICKER.

    \b
    Examples:
      signaltrader cache clear AAPL
    """
    components = get_components(ctx)
    ticker = ticker.upper()

    try:
        components.prices.clear(ticker)
        components.overviews.clear(ticker)
        components.analyses.clear(ticker)
    except SignalTraderError as e:
        console.print(error_panel(str(e)))
        raise SystemExit(1)

    console.print(f"[green]✓[/green] Cleared cached data for [bold]{ticker}[/bold]")
