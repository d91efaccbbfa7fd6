"""Scan command implementation.

Scans the selected categories and lists cleanable items with their
safety scores.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Annotated, Any

import typer

from declutter.cli.types import build_engine, get_cli_config, resolve_categories
from declutter.core.errors import DeclutterError
from declutter.models.item import Category, CleanableItem
from declutter.models.results import ScanResults
from declutter.utils.formatting import (
    console,
    create_items_table,
    format_item_row,
    format_size,
    print_error,
    print_info,
    print_success,
    print_warning,
)

app = typer.Typer(
    help="Scan for cleanable items.",
    invoke_without_command=True,
)


class OutputFormat(str, Enum):
    """Output format options."""

    TABLE = "table"
    JSON = "json"


@app.callback(invoke_without_command=True)
def scan_items(
    ctx: typer.Context,
    categories: Annotated[
        list[Category] | None,
        typer.Option(
            "--category",
            "-c",
            help="Category to scan (repeatable). Default: safe categories.",
            case_sensitive=False,
        ),
    ] = None,
    output_format: Annotated[
        OutputFormat,
        typer.Option(
            "--format",
            "-f",
            help="Output format: table or json.",
            case_sensitive=False,
        ),
    ] = OutputFormat.TABLE,
    export_path: Annotated[
        Path | None,
        typer.Option(
            "--export",
            "-e",
            help="Export scan results to JSON file.",
        ),
    ] = None,
    limit: Annotated[
        int | None,
        typer.Option(
            "--limit",
            "-n",
            help="Limit number of items to display.",
        ),
    ] = None,
) -> None:
    """Scan and display cleanable items, largest first.

    Examples:
        declutter scan                      # Scan the safe categories
        declutter scan -c cache -c logs     # Scan caches and logs only
        declutter scan --format json        # Output as JSON
        declutter scan --export scan.json   # Export to JSON file
    """
    if ctx.invoked_subcommand is not None:
        return

    config = get_cli_config(ctx)
    engine = build_engine(config)

    try:
        results = engine.scan(resolve_categories(categories))
    except DeclutterError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    for report in results.phases:
        if report.error:
            print_warning(f"Phase '{report.name}' {report.status.value}: {report.error}")

    items = sorted(results.items, key=lambda i: i.size, reverse=True)

    if export_path is not None:
        _export_results(results, export_path)

    if not items:
        print_success("Nothing to clean. No items found.")
        return

    display_items = items[:limit] if limit else items

    if output_format == OutputFormat.JSON:
        console.print_json(json.dumps([_item_to_dict(i) for i in display_items]))
        return

    table = create_items_table()
    for item in display_items:
        table.add_row(*format_item_row(item))
    console.print(table)

    console.print(
        f"\n[dim]Found {len(items)} items ({format_size(results.total_size)} total, "
        f"{format_size(results.safe_total_size)} safe to delete)[/dim]"
    )
    if limit and len(display_items) < len(items):
        console.print(f"[dim](showing {len(display_items)} of {len(items)}, limited to {limit})[/dim]")
    if results.duplicates:
        wasted = sum(group.wasted_space for group in results.duplicates)
        print_info(f"{len(results.duplicates)} duplicate groups waste {format_size(wasted)}.")


def _item_to_dict(item: CleanableItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "path": item.path,
        "name": item.name,
        "category": item.category.value,
        "size": item.size,
        "safety_score": item.safety_score,
        "last_modified": item.last_modified.isoformat() if item.last_modified else None,
        "last_accessed": item.last_accessed.isoformat() if item.last_accessed else None,
        "warning": item.warning,
        "explanation": item.explanation,
    }


def _export_results(results: ScanResults, export_path: Path) -> None:
    """Export scan results to a JSON file."""
    export_path = export_path.resolve()
    if export_path.is_dir():
        print_error(f"Export path is a directory: {export_path}")
        raise typer.Exit(code=1)

    data = {
        "timestamp": results.timestamp.isoformat(),
        "total_size": results.total_size,
        "items": [_item_to_dict(item) for item in results.items],
        "duplicates": [
            {
                "key": group.key,
                "paths": [member.path for member in group.items],
                "wasted_space": group.wasted_space,
            }
            for group in results.duplicates
        ],
        "phases": [
            {
                "name": report.name,
                "status": report.status.value,
                "elapsed": report.elapsed,
                "error": report.error,
            }
            for report in results.phases
        ],
    }
    try:
        export_path.parent.mkdir(parents=True, exist_ok=True)
        export_path.write_text(json.dumps(data, indent=2))
        print_info(f"Results exported to {export_path}")
    except OSError as e:
        print_error(f"Failed to export: {e}")
        raise typer.Exit(code=1) from e
