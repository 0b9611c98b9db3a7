#!/usr/bin/env python3
"""
kvcache CLI Main Application

Typer-based command-line interface for inspecting and maintaining a
configured cache from the shell or cron.
"""

import logging
import sys
from typing import Annotated, Optional

import typer

from kvcache.cli import __version__
from kvcache.cli.commands import maintenance, store
from kvcache.cli.utils import CliState, build_cli_args, console

# Create main Typer application
app = typer.Typer(
    name="kvcache",
    help="Key-value cache with TTL expiration over memory, file, session and Redis drivers",
    context_settings={"help_option_names": ["-h", "--help"]},
    rich_markup_mode="rich",
    no_args_is_help=True,
)

# Add subcommands
app.add_typer(store.app, name="store", help="Read and write cache entries")
app.add_typer(maintenance.app, name="maint", help="Housekeeping, diagnostics and benchmarks")


def version_callback(value: bool):
    """Show version information."""
    if value:
        console.print(f"[bold cyan]kvcache[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def app_callback(
    ctx: typer.Context,
    config: Annotated[Optional[str], typer.Option("--config", "-c", help="Configuration file path (YAML or JSON)")] = None,
    driver: Annotated[Optional[str], typer.Option("--driver", "-d", help="Cache driver: array, memory, file, session, redis")] = None,
    path: Annotated[Optional[str], typer.Option("--path", help="Root directory for the file driver")] = None,
    prefix: Annotated[Optional[str], typer.Option("--prefix", help="Key prefix (namespace)")] = None,
    ttl: Annotated[Optional[int], typer.Option("--ttl", min=0, help="Default time-to-live in seconds")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", help="Log cache activity to stderr")] = False,
    version: Annotated[Optional[bool], typer.Option(
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version information and exit"
    )] = None,
):
    """
    kvcache - pluggable key-value cache

    [bold]Quick Start:[/bold]

    • Store a value: [cyan]kvcache store set greeting hello --ttl 60[/cyan]
    • Read it back: [cyan]kvcache store get greeting[/cyan]
    • Sweep expired files: [cyan]kvcache --path /var/cache/app maint clean-expired[/cyan]
    • Inspect the driver: [cyan]kvcache maint info[/cyan]
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
            stream=sys.stderr
        )

    state = CliState(
        config_file=config,
        overrides=build_cli_args(driver=driver, path=path, prefix=prefix, ttl=ttl),
    )
    ctx.obj = state
    ctx.call_on_close(state.close)


def main():
    """Entry point for the kvcache console script."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(1)


if __name__ == "__main__":
    main()
