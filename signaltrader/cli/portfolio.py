"""Portfolio commands for SignalTrader CLI.

Handles the portfolio valuation and closed-position history.
"""

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from signaltrader.cli.main import get_components
from signaltrader.cli.run import closed_positions_table, error_panel
from signaltrader.errors import SignalTraderError
from signaltrader.models import PortfolioSnapshot, summarize_closures

console = Console()


def _signed(value: float, suffix: str = "") -> str:
    color = "green" if value >= 0 else "red"
    sign = "+" if value >= 0 else ""
    return f"[{color}]{sign}{value:,.2f}{suffix}[/{color}]"


def render_snapshot(snapshot: PortfolioSnapshot) -> None:
    """Print a portfolio snapshot as a summary panel and a positions table."""
    summary = (
        f"Available Cash:  ${snapshot.available_cash:,.2f}\n"
        f"Invested Value:  ${snapshot.invested_value:,.2f}\n"
        f"{'─' * 30}\n"
        f"[bold]Total Value:     ${snapshot.total_value:,.2f}[/bold]\n"
        f"Total P&L:       {_signed(snapshot.total_pnl)} "
        f"({_signed(snapshot.total_pnl_percent, '%')})"
    )
    console.print(Panel(
        summary,
        title="[bold cyan]Portfolio[/bold cyan]",
        border_style="cyan",
    ))

    if not snapshot.positions:
        console.print("[dim]No open positions[/dim]")
        return

    table = Table(title="Open Positions", show_header=True, header_style="bold cyan")

    table.add_column("Ticker", style="bold")
    table.add_column("Side")
    table.add_column("Lev", justify="right")
    table.add_column("Invested", justify="right")
    table.add_column("Entry", justify="right")
    table.add_column("Current", justify="right")
    table.add_column("P&L %", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("SL / TP", justify="right")
    table.add_column("Until", justify="right")

    for p in snapshot.positions:
        if p.price_available:
            current = f"${p.current_price:,.2f}"
            pnl = _signed(p.pnl_percent, "%")
        else:
            current = "[dim]n/a[/dim]"
            pnl = "[dim]n/a[/dim]"

        flag = ""
        if p.near_stop_loss:
            flag = " [red]⚠[/red]"
        elif p.near_take_profit:
            flag = " [green]★[/green]"

        table.add_row(
            p.ticker + flag,
            p.direction,
            f"{p.leverage}x",
            f"${p.amount_invested:,.2f}",
            f"${p.entry_price:,.2f}",
            current,
            pnl,
            f"${p.current_value:,.2f}",
            f"-{p.stop_loss_pct:g}% / +{p.take_profit_pct:g}%",
            p.target_close_date.isoformat(),
        )

    console.print(table)


@click.command()
@click.pass_context
def portfolio(ctx: click.Context) -> None:
    """Display cash, open positions and total P&L.

    Positions whose price is unavailable are valued at the amount invested.

    \b
    Examples:
      signaltrader portfolio
    """
    from signaltrader.trading.portfolio import take_snapshot

    components = get_components(ctx)
    try:
        snapshot = take_snapshot(components.positions, components.prices, components.ledger)
    except SignalTraderError as e:
        console.print(error_panel(str(e)))
        raise SystemExit(1)

    render_snapshot(snapshot)


@click.command()
@click.option("--limit", "-n", default=20, show_default=True, help="Number of trades to show.")
@click.pass_context
def history(ctx: click.Context, limit: int) -> None:
    """Display closed positions, most recent first.

    \b
    Examples:
      signaltrader history
      signaltrader history -n 50
    """
    from signaltrader.trading.positions import to_closed_position

    components = get_components(ctx)
    closed = [to_closed_position(p) for p in components.data_store.get_closed_positions()]

    if not closed:
        console.print(Panel(
            "[dim]No closed positions yet[/dim]",
            title="[bold]Trade History[/bold]",
            border_style="dim",
        ))
        return

    console.print(closed_positions_table(closed[:limit], "Trade History"))

    summary = summarize_closures(closed)
    console.print(
        f"\n[bold]Trades:[/bold] {summary['count']} | "
        f"[green]Wins: {summary['profitable']}[/green] | "
        f"[red]Losses: {summary['losses']}[/red] | "
        f"[bold]Realized P&L:[/bold] {_signed(summary['total_pnl'])}"
    )
