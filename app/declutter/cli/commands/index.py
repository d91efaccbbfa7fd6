"""Index maintenance commands.

Build, update, inspect and clear the incremental file index.
"""

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from declutter.cli.types import build_indexer, get_cli_config
from declutter.core.errors import IndexerError
from declutter.utils.formatting import console, format_size, print_error, print_info, print_success

app = typer.Typer(
    help="Manage the incremental file index.",
    no_args_is_help=True,
)


@app.command()
def build(
    ctx: typer.Context,
    roots: Annotated[
        list[Path],
        typer.Argument(help="Directories to index."),
    ],
) -> None:
    """Run a full index scan of one or more directories."""
    indexer = build_indexer(get_cli_config(ctx))
    try:
        stats = indexer.full_scan([root.expanduser() for root in roots])
    except IndexerError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    print_success(
        f"Indexed {stats.files} files ({format_size(stats.total_size)}) "
        f"and {stats.directories} directories in {stats.elapsed:.2f}s."
    )


@app.command()
def update(ctx: typer.Context) -> None:
    """Re-check recently indexed entries and apply pending changes."""
    indexer = build_indexer(get_cli_config(ctx))
    try:
        result = indexer.perform_incremental_update()
    except IndexerError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    if not result.has_changes:
        print_info("Index is up to date.")
        return
    print_success(
        f"{len(result.added)} added, {len(result.modified)} modified, {len(result.removed)} removed."
    )


@app.command()
def status(ctx: typer.Context) -> None:
    """Show index statistics."""
    indexer = build_indexer(get_cli_config(ctx))
    stats = indexer.get_statistics()
    saved = indexer.last_saved

    table = Table(title="Index Status", show_header=False, border_style="border")
    table.add_column("Key", style="bold")
    table.add_column("Value")
    table.add_row("Location", str(indexer.store.directory))
    table.add_row("Files", str(stats.files))
    table.add_row("Directories", str(stats.directories))
    table.add_row("Indexed size", format_size(stats.total_size))
    table.add_row("Last saved", saved.isoformat(timespec="seconds") if saved else "never")
    console.print(table)


@app.command()
def clear(
    ctx: typer.Context,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Delete every index entry and the persisted index files."""
    if not yes and not typer.confirm("Clear the file index?", default=False):
        print_info("Aborted.")
        raise typer.Exit(code=0)

    indexer = build_indexer(get_cli_config(ctx))
    indexer.clear()
    print_success("Index cleared.")
