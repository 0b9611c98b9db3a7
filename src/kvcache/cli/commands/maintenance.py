"""
Maintenance Command

Housekeeping and diagnostics for a configured cache: sweeping expired
entries, describing the active driver and timing basic operations.
"""

import time
from typing import Annotated, Any, Dict, List, Tuple

import typer
from rich.table import Table

from kvcache.cli.utils import console, get_manager, handle_cache_error, print_config_summary, print_header
from kvcache.core.exceptions import CacheError

# Create the maintenance sub-application
app = typer.Typer(
    name="maint",
    help="Housekeeping, diagnostics and benchmarks",
    rich_markup_mode="rich",
    no_args_is_help=True,
)

BENCH_PREFIX = "kvcache-bench:"


@app.command("clean-expired")
def maint_clean_expired(ctx: typer.Context):
    """
    Remove expired entries from the configured driver.

    Meant to run periodically, e.g. from cron:

    • [green]kvcache --path /var/cache/app maint clean-expired[/green]
    """
    try:
        removed = get_manager(ctx).clean_expired()
    except CacheError as e:
        handle_cache_error(e)

    console.print(f"[green]Removed {removed} expired entries[/green]")


@app.command("info")
def maint_info(ctx: typer.Context):
    """Show the effective configuration and the active driver's statistics."""
    try:
        manager = get_manager(ctx)
        info = manager.driver().info()
    except CacheError as e:
        handle_cache_error(e)

    print_header("Cache Info", f"Driver: {info.get('driver', manager.config.driver)}")
    print_config_summary(manager.config)

    table = Table(title="Driver", show_header=False, border_style="cyan")
    table.add_column("Metric", style="cyan")
    table.add_column("Value")
    for name, value in _flatten(info):
        table.add_row(name, str(value))
    console.print(table)


@app.command("bench")
def maint_bench(
    ctx: typer.Context,
    iterations: Annotated[int, typer.Option("--iterations", "-n", min=1, help="Operations per benchmark")] = 1000,
):
    """
    Time set, get and remember against the configured driver.

    Benchmark keys use their own prefix and are deleted afterwards.
    """
    try:
        cache = get_manager(ctx).driver()
        results = _run_benchmarks(cache, iterations)
    except CacheError as e:
        handle_cache_error(e)

    print_header("Cache Benchmark", f"{cache.name} driver, {iterations} iterations")

    table = Table(border_style="cyan")
    table.add_column("Operation", style="cyan")
    table.add_column("Total (ms)", justify="right")
    table.add_column("Per op (µs)", justify="right")
    table.add_column("Ops/sec", justify="right")

    for operation, elapsed in results:
        per_op = elapsed / iterations
        table.add_row(
            operation,
            f"{elapsed * 1000:.2f}",
            f"{per_op * 1_000_000:.1f}",
            f"{iterations / elapsed:,.0f}" if elapsed > 0 else "-"
        )

    console.print(table)


def _run_benchmarks(cache, iterations: int) -> List[Tuple[str, float]]:
    keys = [f"{BENCH_PREFIX}{i}" for i in range(iterations)]
    payload = {"id": 0, "name": "benchmark", "tags": ["a", "b", "c"]}
    results = []

    try:
        start = time.perf_counter()
        for i, key in enumerate(keys):
            cache.set(key, dict(payload, id=i), 300)
        results.append(("set", time.perf_counter() - start))

        start = time.perf_counter()
        for key in keys:
            cache.get(key)
        results.append(("get", time.perf_counter() - start))

        start = time.perf_counter()
        for key in keys:
            cache.remember(key, 300, lambda: payload)
        results.append(("remember (hit)", time.perf_counter() - start))
    finally:
        cache.delete_many(keys)

    return results


def _flatten(data: Dict[str, Any], parent: str = "") -> List[Tuple[str, Any]]:
    rows = []
    for key, value in data.items():
        name = f"{parent}.{key}" if parent else key
        if isinstance(value, dict):
            rows.extend(_flatten(value, name))
        elif isinstance(value, float):
            rows.append((name, f"{value:.3f}"))
        else:
            rows.append((name, value))
    return rows
