"""
Utility functions for CLI commands.

This module provides helpers for formatted console output.
"""

from typing import Any

import click
from rich.console import Console
from rich.table import Table

console = Console()


def echo_success(message: str) -> None:
    """Print success message in green."""
    click.secho(f"✓ {message}", fg="green")


def echo_error(message: str) -> None:
    """Print error message in red."""
    click.secho(f"✗ {message}", fg="red", err=True)


def echo_warning(message: str) -> None:
    """Print warning message in yellow."""
    click.secho(f"⚠ {message}", fg="yellow")


def echo_info(message: str) -> None:
    """Print info message in blue."""
    click.secho(f"ℹ {message}", fg="blue")


def format_count(count: int) -> str:
    """Format large numbers with thousands separator."""
    return f"{count:,}"


def print_table(
    title: str,
    columns: list[str],
    rows: list[list[Any]],
    show_header: bool = True,
) -> None:
    """
    Print a formatted table using rich.

    Args:
        title: Table title
        columns: Column headers
        rows: List of row data
        show_header: Whether to show header row
    """
    table = Table(title=title, show_header=show_header)

    for col in columns:
        table.add_column(col)

    for row in rows:
        table.add_row(*[str(cell) for cell in row])

    console.print(table)


def print_stats(stats: dict[str, Any], title: str = "Statistics") -> None:
    """Print import statistics in a formatted table."""
    rows = []
    for key, value in stats.items():
        if isinstance(value, int) and not isinstance(value, bool):
            value = format_count(value)
        rows.append([key.replace("_", " ").title(), "-" if value is None else value])
    print_table(title, ["Metric", "Value"], rows)
