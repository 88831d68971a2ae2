"""Main CLI entry point for SignalTrader.

This module provides the main click group and lazy loading
for heavy imports to improve startup time.
"""

from pathlib import Path
from typing import Optional

import click
from rich.console import Console

# Console for rich output
console = Console()


class LazyGroup(click.Group):
    """A click Group that lazily loads commands.

    This improves CLI startup time by only importing
    command modules when they are actually invoked.
    """

    def __init__(self, *args, lazy_subcommands: dict[str, str] | None = None, **kwargs):
        """Initialize the lazy group.

        Args:
            lazy_subcommands: Mapping of command names to module paths.
        """
        super().__init__(*args, **kwargs)
        self._lazy_subcommands = lazy_subcommands or {}

    def list_commands(self, ctx: click.Context) -> list[str]:
        """List all available commands."""
        base = super().list_commands(ctx)
        lazy = list(self._lazy_subcommands.keys())
        return sorted(set(base + lazy))

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        """Get a command by name, lazily loading if needed."""
        if cmd_name in self.commands:
            return self.commands[cmd_name]

        if cmd_name in self._lazy_subcommands:
            return self._lazy_load(cmd_name)

        return None

    def _lazy_load(self, cmd_name: str) -> click.Command:
        """Lazily load a command from its module path."""
        import importlib

        module_path = self._lazy_subcommands[cmd_name]
        module = importlib.import_module(module_path)

        attr = getattr(module, cmd_name, None)
        if attr is None:
            # Groups whose name clashes with a module-level helper use a suffix
            attr = getattr(module, f"{cmd_name}_group", None)
        if not isinstance(attr, click.Command):
            raise click.ClickException(f"Could not find command '{cmd_name}' in {module_path}")

        self.add_command(attr, cmd_name)
        return attr


# Define lazy subcommands mapping
LAZY_SUBCOMMANDS = {
    "run": "signaltrader.cli.run",
    "sweep": "signaltrader.cli.run",
    "close": "signaltrader.cli.run",
    "portfolio": "signaltrader.cli.portfolio",
    "history": "signaltrader.cli.portfolio",
    "cache": "signaltrader.cli.cache",
    "ledger": "signaltrader.cli.ledger",
}


CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


@click.group(cls=LazyGroup, lazy_subcommands=LAZY_SUBCOMMANDS, context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="signaltrader")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to config.toml (default: ~/.config/signaltrader/config.toml).",
)
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (-v, -vv).")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: int) -> None:
    """SignalTrader - paper trading driven by discussion signals.

    Scans recent posts for tickers, analyses the companies mentioned and
    opens simulated leveraged positions that close on stop loss, take
    profit or expiry.

    \b
    Quick Start:
      signaltrader run         # Sweep and look for a trade
      signaltrader portfolio   # View open positions
      signaltrader history     # View closed positions
    """
    from signaltrader.log import setup_logging

    setup_logging(verbose, console=Console(stderr=True))
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


def get_components(ctx: click.Context):
    """Load settings and return the shared component graph for this invocation."""
    from signaltrader.cli.factory import Components
    from signaltrader.config import load_settings
    from signaltrader.errors import ConfigurationError

    obj = ctx.ensure_object(dict)
    if "components" not in obj:
        try:
            settings = load_settings(obj.get("config_path"))
        except ConfigurationError as e:
            raise click.ClickException(str(e)) from e
        obj["components"] = Components(settings)
    return obj["components"]


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
