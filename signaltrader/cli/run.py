"""Trading commands for SignalTrader CLI.

Handles trading runs, position sweeps and manual closes.
"""

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from signaltrader.cli.main import get_components
from signaltrader.errors import SignalTraderError

console = Console()


def error_panel(message: str) -> Panel:
    return Panel(
        f"[red]{escape(message)}[/red]",
        title="[bold red]Error[/bold red]",
        border_style="red",
    )


def closed_positions_table(closed: list, title: str) -> Table:
    """Build a table of closed positions."""
    table = Table(title=title, show_header=True, header_style="bold cyan")

    table.add_column("ID", justify="right", style="dim")
    table.add_column("Ticker", style="bold")
    table.add_column("Side")
    table.add_column("Lev", justify="right")
    table.add_column("Invested", justify="right")
    table.add_column("Entry", justify="right")
    table.add_column("Close", justify="right")
    table.add_column("P&L", justify="right")
    table.add_column("Reason")
    table.add_column("Closed", justify="right")

    for c in closed:
        color = "green" if c.is_profit else "red"
        table.add_row(
            str(c.id),
            c.ticker,
            c.direction,
            f"{c.leverage}x",
            f"${c.amount_invested:,.2f}",
            f"${c.entry_price:,.2f}",
            f"${c.close_price:,.2f}",
            f"[{color}]{c.formatted_pnl}[/{color}]",
            c.close_reason_description,
            c.close_date.isoformat(),
        )
    return table


@click.command()
@click.option("--user", "user_id", default=None, help="Run on behalf of a user (rate limited).")
@click.pass_context
def run(ctx: click.Context, user_id: str | None) -> None:
    """Sweep open positions, then look for one new trade.

    With --user the run is subject to the per-user cooldown.

    \b
    Examples:
      signaltrader run
      signaltrader run --user alice
    """
    components = get_components(ctx)

    try:
        orchestrator = components.orchestrator
        if user_id:
            outcome = orchestrator.run_for_user(user_id)
            text = outcome.render()
            style = {"traded": "green", "no_trade": "dim", "rate_limited": "yellow"}[outcome.status]
        else:
            explanation = orchestrator.run()
            text = explanation or "No trading opportunity found for now."
            style = "green" if explanation else "dim"
    except SignalTraderError as e:
        console.print(error_panel(str(e)))
        raise SystemExit(1)

    console.print(Panel(
        text,
        title="[bold cyan]Trading Run[/bold cyan]",
        border_style=style,
    ))


@click.command()
@click.option("--review", is_flag=True, default=False, help="Ask the oracle to review closures.")
@click.pass_context
def sweep(ctx: click.Context, review: bool) -> None:
    """Close positions whose stop loss, take profit or target date triggered.

    \b
    Examples:
      signaltrader sweep
      signaltrader sweep --review
    """
    components = get_components(ctx)

    try:
        closed = components.positions.sweep_and_close()
    except SignalTraderError as e:
        console.print(error_panel(str(e)))
        raise SystemExit(1)

    if not closed:
        console.print("[dim]No positions closed.[/dim]")
        return

    console.print(closed_positions_table(closed, "Closed Positions"))

    if review:
        try:
            text = components.oracle.review_closures(closed)
        except SignalTraderError as e:
            console.print(f"[yellow]Review unavailable: {e}[/yellow]")
            return
        console.print(Panel(text, title="[bold]Review[/bold]", border_style="cyan"))


@click.command()
@click.argument("ticker")
@click.pass_context
def close(ctx: click.Context, ticker: str) -> None:
    """Manually close the open position on TICKER at the current price.

    \b
    Examples:
      signaltrader close AAPL
    """
    from datetime import datetime

    components = get_components(ctx)
    positions = components.positions

    try:
        position = positions.find_open(ticker.upper(), datetime.now().date())
        closed = positions.close_position(position.id)
    except SignalTraderError as e:
        console.print(error_panel(str(e)))
        raise SystemExit(1)

    color = "green" if closed.is_profit else "red"
    console.print(Panel(
        f"Closed [bold]{closed.ticker}[/bold] {closed.direction} at ${closed.close_price:,.2f}\n"
        f"P&L: [{color}]{closed.formatted_pnl}[/{color}]\n"
        f"Returned to ledger: ${closed.final_value:,.2f}",
        title="[bold cyan]Position Closed[/bold cyan]",
        border_style=color,
    ))
