"""
Store Command

Read, write and delete individual cache entries.
"""

import json
from typing import Annotated, Optional

import typer

from kvcache.cli.utils import confirm_action, console, get_manager, handle_cache_error, print_value
from kvcache.core.exceptions import CacheError

# Create the store sub-application
app = typer.Typer(
    name="store",
    help="Read and write cache entries",
    rich_markup_mode="rich",
    no_args_is_help=True,
)

_MISSING = object()


@app.command("get")
def store_get(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Cache key")],
    default: Annotated[Optional[str], typer.Option("--default", help="Printed when the key is missing or expired")] = None,
):
    """
    Print the value stored under KEY.

    Exits with status 1 when the key is missing and no --default is given.

    [bold cyan]Examples:[/bold cyan]

    • [green]kvcache store get user:1[/green]
    • [green]kvcache store get feature:flag --default off[/green]
    """
    try:
        value = get_manager(ctx).get(key, _MISSING)
    except CacheError as e:
        handle_cache_error(e)

    if value is _MISSING:
        if default is None:
            console.print(f"[yellow]Key not found: {key}[/yellow]")
            raise typer.Exit(1)
        value = default

    print_value(value)


@app.command("set")
def store_set(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Cache key")],
    value: Annotated[str, typer.Argument(help="Value to store")],
    ttl: Annotated[Optional[int], typer.Option("--ttl", "-t", min=0, help="Seconds to live (driver default when omitted)")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Parse VALUE as JSON before storing")] = False,
):
    """
    Store VALUE under KEY.

    [bold cyan]Examples:[/bold cyan]

    • [green]kvcache store set greeting hello --ttl 60[/green]
    • [green]kvcache store set user:1 '{"name": "Alice"}' --json[/green]
    """
    payload = value
    if as_json:
        try:
            payload = json.loads(value)
        except ValueError as e:
            raise typer.BadParameter(f"Invalid JSON: {e}", param_hint="VALUE")

    try:
        stored = get_manager(ctx).set(key, payload, ttl)
    except CacheError as e:
        handle_cache_error(e)

    if not stored:
        console.print(f"[red]Failed to store {key}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Stored[/green] {key}")


@app.command("delete")
def store_delete(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Cache key")],
):
    """Remove KEY from the cache (missing keys are not an error)."""
    try:
        deleted = get_manager(ctx).delete(key)
    except CacheError as e:
        handle_cache_error(e)

    if not deleted:
        console.print(f"[red]Failed to delete {key}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Deleted[/green] {key}")


@app.command("has")
def store_has(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Cache key")],
):
    """Print whether KEY holds a live value; exits with status 1 when it does not."""
    try:
        found = get_manager(ctx).has(key)
    except CacheError as e:
        handle_cache_error(e)

    console.print("true" if found else "false")
    if not found:
        raise typer.Exit(1)


@app.command("incr")
def store_incr(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Counter key")],
    by: Annotated[int, typer.Option("--by", help="Amount to add")] = 1,
):
    """Increment the counter at KEY and print the new value."""
    try:
        console.print(str(get_manager(ctx).increment(key, by)))
    except CacheError as e:
        handle_cache_error(e)


@app.command("decr")
def store_decr(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Counter key")],
    by: Annotated[int, typer.Option("--by", help="Amount to subtract")] = 1,
):
    """Decrement the counter at KEY and print the new value."""
    try:
        console.print(str(get_manager(ctx).decrement(key, by)))
    except CacheError as e:
        handle_cache_error(e)


@app.command("clear")
def store_clear(
    ctx: typer.Context,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip the confirmation prompt")] = False,
):
    """
    Remove every entry under the configured prefix (everything without one).

    [bold cyan]Examples:[/bold cyan]

    • [green]kvcache --prefix sessions: store clear --yes[/green]
    """
    try:
        manager = get_manager(ctx)
        config = manager.config
        scope = f"prefix {config.prefix!r}" if config.prefix else "ALL keys"

        if not yes and not confirm_action(f"Clear {scope} from the {config.driver} cache?"):
            console.print("[yellow]Aborted[/yellow]")
            raise typer.Exit(1)

        cleared = manager.clear()
    except CacheError as e:
        handle_cache_error(e)

    if not cleared:
        console.print("[red]Failed to clear cache[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Cleared[/green] {scope}")
