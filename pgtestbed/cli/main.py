"""Main CLI entry point for pgtestbed."""

import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ..core.errors import TestbedError
from ..core.log import configure_logging, get_logger

app = typer.Typer(
    name="pgtestbed",
    help="PostgreSQL extension test harness",
    no_args_is_help=True,
    rich_markup_mode="markdown",
)
console = Console()
logger = get_logger(__name__)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0, "--verbose", "-v", count=True, help="Increase verbosity level"
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
) -> None:
    """pgtestbed: run extension tests against a throwaway PostgreSQL."""
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file

    log_level = "DEBUG" if verbose >= 2 else "INFO" if verbose == 1 else "WARNING"
    configure_logging(level=log_level, enable_console=True)


@app.command()
def version() -> None:
    """Show version information."""
    from .. import __version__
    import psycopg

    table = Table(title="pgtestbed Version Information")
    table.add_column("Component", style="cyan")
    table.add_column("Version", style="green")
    table.add_row("pgtestbed", __version__)
    table.add_row("psycopg", psycopg.__version__)
    table.add_row("libpq", str(psycopg.pq.version()))
    console.print(table)


@app.command()
def config(ctx: typer.Context) -> None:
    """Show the resolved configuration."""
    from ..core.config import load_config

    try:
        current_config = load_config(config_file=ctx.obj.get("config_file"))
    except TestbedError as e:
        console.print(f"[red]Error getting configuration: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="pgtestbed Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for name, value in current_config.model_dump().items():
        if isinstance(value, list):
            value = " ".join(str(item) for item in value)
        table.add_row(name, "" if value is None else str(value))
    console.print(table)


@app.command("build-args")
def build_args() -> None:
    """Show the arguments of the parent build invocation and its features."""
    from ..core.build_detection import discover_parent_build_args, parse_feature_args

    args = discover_parent_build_args()
    if not args:
        console.print("[yellow]No parent `cargo test` invocation found[/yellow]")
        return
    try:
        features = parse_feature_args(args)
    except TestbedError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Parent Build Invocation")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Command line", " ".join(args))
    table.add_row("Features", " ".join(features.features))
    table.add_row("No default features", str(features.no_default_features))
    table.add_row("All features", str(features.all_features))
    console.print(table)


def cli_main() -> None:
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except (RuntimeError, OSError, ValueError, ImportError) as e:
        logger.error("Unexpected error: %s", e)
        console.print(f"[red]Unexpected error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    cli_main()
