"""Ledger commands for SignalTrader CLI."""

from datetime import date

import click
from rich.console import Console
from rich.panel import Panel

from signaltrader.cli.main import get_components

console = Console()


@click.group("ledger")
def ledger_group() -> None:
    """Show or reset the simulated cash balance."""
    pass


@ledger_group.command()
@click.pass_context
def show(ctx: click.Context) -> None:
    """Display available cash.

    \b
    Examples:
      signaltrader ledger show
    """
    components = get_components(ctx)
    ledger = components.ledger

    available = ledger.get_available()
    open_count = components.data_store.count_active_positions(date.today())

    console.print(Panel(
        f"Available Cash:    [bold]${available:,.2f}[/bold]\n"
        f"Starting Balance:  ${ledger.starting_balance:,.2f}\n"
        f"Open Positions:    {open_count}",
        title="[bold cyan]Ledger[/bold cyan]",
        border_style="cyan",
    ))


@ledger_group.command()
@click.option("--confirm", is_flag=True, default=False, help="Skip the confirmation prompt.")
@click.pass_context
def reset(ctx: click.Context, confirm: bool) -> None:
    """Restore the starting balance.

    Open positions are left untouched.

    \b
    Examples:
      signaltrader ledger reset
      signaltrader ledger reset --confirm
    """
    ledger = get_components(ctx).ledger

    if not confirm and not click.confirm(
        f"Reset available cash to ${ledger.starting_balance:,.2f}?"
    ):
        console.print("[yellow]Reset cancelled[/yellow]")
        return

    ledger.reset()
    console.print(
        f"[green]✓[/green] Available cash reset to [bold]${ledger.starting_balance:,.2f}[/bold]"
    )
