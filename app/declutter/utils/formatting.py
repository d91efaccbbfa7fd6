"""Rich console formatting utilities.

Provides consistent formatting for CLI output using Rich.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from declutter.core.theme import get_theme

if TYPE_CHECKING:
    from declutter.models.item import CleanableItem


def _detect_color_system() -> str | None:
    """Detect the best color system for the current terminal.

    Returns "truecolor" for interactive terminals to enable full hex color support,
    None otherwise to let Rich auto-detect.
    """
    if sys.stdout.isatty():
        return "truecolor"
    return None


# Shared console instances (theme loaded once at import)
console = Console(theme=get_theme(), color_system=_detect_color_system())
err_console = Console(theme=get_theme(), stderr=True, color_system=_detect_color_system())


def format_size(size_bytes: int | None) -> str:
    """Format a byte count as a human-readable string.

    Args:
        size_bytes: Size in bytes.

    Returns:
        Size such as "512 B", "1.5 KB" or "2.0 GB".
    """
    if not size_bytes:
        return "0 B"
    size = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if abs(size) < 1024 or unit == "TB":
            return f"{int(size)} B" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def safety_style(score: int) -> str:
    """Theme style for a safety score."""
    if score > 70:
        return "safety.high"
    if score > 25:
        return "safety.medium"
    return "safety.low"


def create_items_table(title: str = "Cleanable Items") -> Table:
    """Create a pre-configured table for displaying cleanable items.

    Args:
        title: Table title.

    Returns:
        Rich Table configured for item display.
    """
    table = Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
        row_styles=["", "on grey7"],
    )
    table.add_column("Path", style="item.path", overflow="fold")
    table.add_column("Category", style="muted")
    table.add_column("Size", style="size", justify="right")
    table.add_column("Safety", justify="right")
    table.add_column("Warning", style="warning", overflow="ellipsis")
    return table


def format_item_row(item: CleanableItem) -> tuple[str, str, str, str, str]:
    """Format an item as a table row with proper styling.

    Args:
        item: The item to format.

    Returns:
        Tuple of (path, category, size, safety, warning) with Rich markup.
    """
    style = safety_style(item.safety_score)
    return (
        item.path,
        item.category.value,
        format_size(item.size),
        f"[{style}]{item.safety_score}[/]",
        item.warning or "",
    )


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]{message}[/]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[warning]Warning:[/] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[error]Error:[/] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]{message}[/]")
