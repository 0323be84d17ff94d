"""Shared Rich console utilities for sonic.

Provides a global Rich console instance and helpers for consistent
output formatting across all CLI commands.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from rich.console import Console
from rich.status import Status

# Global console instance (initialized in CLI)
_console: Console | None = None


def get_console() -> Console:
    """Get the global Rich console instance.

    Falls back to a default stdout console when the CLI has not set one.
    """
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global Rich console instance."""
    global _console
    _console = console


@contextmanager
def status(message: str, spinner: str = "dots") -> Iterator[Status]:
    """Create a Rich Status context for showing ongoing requests.

    Example:
        with status("Recognizing..."):
            result = asyncio.run(...)
    """
    with get_console().status(message, spinner=spinner) as st:
        yield st


def print(*args: Any, **kwargs: Any) -> None:
    """Print to the global console."""
    get_console().print(*args, **kwargs)


def print_error(message: str) -> None:
    """Print an error message in red."""
    get_console().print(f"[red]Error: {message}[/red]")


def print_warning(message: str) -> None:
    """Print a warning message in yellow."""
    get_console().print(f"[yellow]Warning: {message}[/yellow]")


def print_success(message: str) -> None:
    """Print a success message in green."""
    get_console().print(f"[green]{message}[/green]")
