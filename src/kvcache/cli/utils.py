"""
CLI Utilities

Shared helpers for CLI commands: console output, value formatting, error
panels and lazy access to the configured cache manager.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from kvcache.core.cache.manager import CacheManager
from kvcache.core.config import CacheConfig, ConfigManager
from kvcache.core.exceptions import CacheError

console = Console()
error_console = Console(stderr=True)


@dataclass
class CliState:
    """Global options captured by the root callback; the manager is built on first use."""
    config_file: Optional[str] = None
    overrides: Dict[str, Any] = field(default_factory=dict)
    _manager: Optional[CacheManager] = None

    @property
    def manager(self) -> CacheManager:
        if self._manager is None:
            self._manager = CacheManager(load_config_from_cli(self.config_file, self.overrides))
        return self._manager

    def close(self) -> None:
        if self._manager is not None:
            self._manager.close()
            self._manager = None


def build_cli_args(**kwargs: Any) -> Dict[str, Any]:
    """Keep only the options the user actually passed."""
    return {key: value for key, value in kwargs.items() if value is not None}


def load_config_from_cli(config_file: Optional[str] = None, cli_args: Optional[Dict[str, Any]] = None) -> CacheConfig:
    """
    Load configuration with CLI options taking precedence.

    Raises:
        typer.Exit: If configuration is invalid
    """
    try:
        return ConfigManager(config_file=config_file).load_config(overrides=cli_args)
    except CacheError as e:
        handle_cache_error(e)


def get_manager(ctx: typer.Context) -> CacheManager:
    """Cache manager for the current invocation."""
    state = ctx.find_root().obj
    if not isinstance(state, CliState):
        state = CliState()
        ctx.find_root().obj = state
    return state.manager


def format_value(value: Any) -> str:
    """Render a cached value for the terminal: strings raw, everything else as JSON when possible."""
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        return repr(value)


def print_value(value: Any) -> None:
    console.print(Text(format_value(value)), soft_wrap=True)


def print_header(title: str, subtitle: Optional[str] = None) -> None:
    """Print a formatted header for CLI output."""
    if subtitle:
        header_text = f"[bold cyan]{title}[/bold cyan]\n[dim]{subtitle}[/dim]"
    else:
        header_text = f"[bold cyan]{title}[/bold cyan]"

    console.print(Panel(header_text, border_style="cyan"))


def print_config_summary(config: CacheConfig) -> None:
    """Print the settings relevant to the configured driver."""
    table = Table(title="Configuration", show_header=False, border_style="green")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Driver", config.driver)
    table.add_row("Prefix", repr(config.prefix))
    table.add_row("Default TTL", "never expires" if config.ttl is None else f"{config.ttl}s")

    if config.driver == "file":
        table.add_row("Path", str(config.path))
        table.add_row("Memory limit", str(config.memory_limit))
    elif config.driver == "redis":
        table.add_row("Server", f"{config.host}:{config.port}/{config.database}")
    elif config.driver == "session":
        table.add_row("Session key", config.session_key)

    console.print(table)


def confirm_action(message: str, default: bool = False) -> bool:
    """Ask for user confirmation with rich formatting."""
    return typer.confirm(message, default=default)


def handle_cache_error(err: CacheError) -> None:
    """Print a CacheError (message, code and suggestions) and exit with status 1."""
    error_console.print()
    error_console.print(Panel(
        Text(err.get_user_message()),
        title=f"[bold red]Error {err.error_code.value}: {err.error_code.name}[/bold red]",
        border_style="red",
        expand=False
    ))

    raise typer.Exit(code=1)
