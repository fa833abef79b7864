"""Shared formatting and file utilities for commands."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable

from rich.console import Console
from rich.table import Table

# Shared console instance
console = Console()


def format_hash(value: str, length: int = 16) -> str:
    """
    Shorten a hex digest or address for display.

    Args:
        value: Hex string or address
        length: Total visible characters (default: 16)

    Returns:
        Formatted value like "3fa9c2...81d0"
    """
    if not value:
        return "N/A"
    if len(value) <= length:
        return value
    return f"{value[:length - 6]}...{value[-4:]}"


def format_amount(amount: int, decimals: int = 8) -> str:
    """Format a zatoshi-denominated amount with its decimal point."""
    whole, frac = divmod(amount, 10**decimals)
    return f"{whole}.{frac:0{decimals}d}"


def save_json_output(
    data: Dict[str, Any],
    filename: str,
    output_dir: str = "output",
    print_path: bool = True,
) -> str:
    """
    Save data to a JSON file with automatic directory creation.

    Args:
        data: Data to save
        filename: Output filename (can include subdirectories)
        output_dir: Base output directory (default: 'output')
        print_path: Whether to print the saved file path

    Returns:
        Full path to saved file
    """
    output_path = Path(output_dir)
    filepath = output_path / filename
    filepath.parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, "w") as f:
        json.dump(data, f, indent=2)

    if print_path:
        console.print(f"[cyan]Data saved to:[/cyan] {filepath}")

    return str(filepath)


def generate_timestamped_filename(prefix: str, extension: str = "json") -> str:
    """
    Generate a filename with timestamp.

    Args:
        prefix: Filename prefix
        extension: File extension (without dot)

    Returns:
        Filename like "prefix_20240315_123456.json"
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"{prefix}_{timestamp}.{extension}"


def create_counts_table(counts: Iterable[Any]) -> Table:
    """
    Build a Rich table of audited totals.

    Args:
        counts: CountResult items in candidate order
    """
    counts = list(counts)
    total = sum(c.amount for c in counts)

    table = Table(show_header=True, header_style="bold cyan", box=None)
    table.add_column("#", width=3, justify="right")
    table.add_column("Choice")
    table.add_column("Votes", justify="right")
    table.add_column("Share", width=8, justify="right")
    for i, c in enumerate(counts):
        share = f"{100 * c.amount / total:.1f}%" if total else "-"
        table.add_row(str(i), c.choice, format_amount(c.amount), share)
    return table


def create_votes_table(votes: Iterable[Any]) -> Table:
    table = Table(show_header=True, header_style="bold cyan", box=None)
    table.add_column("ID", width=4, justify="right")
    table.add_column("Ballot")
    table.add_column("Address")
    table.add_column("Amount", justify="right")
    for v in votes:
        table.add_row(
            str(v.id), format_hash(v.hash), format_hash(v.address, 24), format_amount(v.amount)
        )
    return table
