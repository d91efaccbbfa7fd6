"""History command for viewing past clean runs.

This module provides the `declutter history` command for viewing
what previous clean runs deleted and how much space they freed.
"""

import json
from typing import Annotated

import typer
from rich.table import Table

from declutter.core.state import StateManager
from declutter.models.history import HistoryEntry
from declutter.utils.formatting import console, format_size, print_info

app = typer.Typer(
    name="history",
    help="View history of clean runs.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def history(
    ctx: typer.Context,
    limit: Annotated[
        int,
        typer.Option(
            "--limit",
            "-n",
            help="Maximum number of entries to show.",
        ),
    ] = 20,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """Show history of clean runs, newest first.

    Examples:
        declutter history              # Show last 20 entries
        declutter history -n 50        # Show last 50 entries
        declutter history --json       # JSON output for scripting
    """
    if ctx.invoked_subcommand is not None:
        return

    state = StateManager()
    entries = state.get_history(limit=limit)

    if not entries:
        print_info("No history entries found.")
        return

    if json_output:
        console.print_json(json.dumps([entry.to_dict() for entry in entries]))
        return

    _print_table(entries)
    console.print(f"\n[dim]Total freed across all runs: {format_size(state.total_freed())}[/dim]")


def _print_table(entries: list[HistoryEntry]) -> None:
    """Print history as Rich table.

    Args:
        entries: List of history entries to display.
    """
    table = Table(title="Clean History")
    table.add_column("ID", style="dim")
    table.add_column("Timestamp", style="info")
    table.add_column("Categories")
    table.add_column("Deleted", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Freed", style="size", justify="right")

    for entry in entries:
        failed = f"[error]{len(entry.failed)}[/]" if entry.failed else "0"
        table.add_row(
            entry.id,
            entry.timestamp[:19].replace("T", " "),
            ", ".join(entry.categories) or "-",
            str(len(entry.deleted)),
            failed,
            format_size(entry.freed_bytes),
        )

    console.print(table)
