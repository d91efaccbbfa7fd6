"""Clean command implementation.

Scans the selected categories, then deletes the items that are safe to
delete after confirmation. Runs are recorded in the history file.
"""

from typing import Annotated

import typer
from rich.table import Table

from declutter.cli.types import build_engine, get_cli_config, resolve_categories
from declutter.core.errors import DeclutterError, OperationTimeoutError
from declutter.models.item import Category, CleanableItem
from declutter.models.results import CleanResult
from declutter.risk.rules import is_critical_path
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
    help="Delete items that are safe to remove.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def clean_items(
    ctx: typer.Context,
    categories: Annotated[
        list[Category] | None,
        typer.Option(
            "--category",
            "-c",
            help="Category to clean (repeatable). Default: safe categories.",
            case_sensitive=False,
        ),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Show what would be deleted."),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
    min_safety: Annotated[
        int | None,
        typer.Option(
            "--min-safety",
            min=0,
            max=100,
            help="Minimum safety score to delete (default: configured threshold).",
        ),
    ] = None,
) -> None:
    """Scan, then delete items that are safe to delete.

    Items carrying a risk warning are never selected.

    Examples:
        declutter clean --dry-run           # Preview
        declutter clean -c cache -y         # Clean caches without prompting
        declutter clean --min-safety 85     # Only the safest items
    """
    if ctx.invoked_subcommand is not None:
        return

    config = get_cli_config(ctx)
    if dry_run:
        config = config.model_copy(update={"dry_run": True})
    engine = build_engine(config)

    try:
        results = engine.scan(resolve_categories(categories))
    except DeclutterError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    threshold = min_safety if min_safety is not None else config.effective_safe_threshold + 1
    selected = _select_items(results.items, threshold)
    if not selected:
        print_success("Nothing to clean. No items met the safety threshold.")
        return

    _print_plan(selected, config.dry_run)

    if not config.dry_run and not yes:
        confirmed = typer.confirm(
            f"\nProceed with deleting {len(selected)} item(s) ({format_size(sum(i.size for i in selected))})?",
            default=False,
        )
        if not confirmed:
            print_info("Aborted.")
            raise typer.Exit(code=0)

    try:
        result = engine.clean(selected)
    except OperationTimeoutError as e:
        if e.partial_result is not None:
            _print_result(e.partial_result)
        print_error(str(e))
        raise typer.Exit(code=1) from e
    except DeclutterError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    _print_result(result)

    if not result.success:
        raise typer.Exit(code=1)


def _select_items(items: list[CleanableItem], threshold: int) -> list[CleanableItem]:
    """Pick items at or above the threshold with no warning."""
    selected = [
        item
        for item in items
        if item.safety_score >= threshold and item.warning is None and not is_critical_path(item.path)
    ]
    selected.sort(key=lambda i: i.size, reverse=True)
    return selected


def _print_plan(items: list[CleanableItem], dry_run: bool) -> None:
    """Display planned deletions."""
    table = create_items_table("Planned Deletions (dry-run)" if dry_run else "Planned Deletions")
    for item in items:
        table.add_row(*format_item_row(item))
    console.print(table)


def _print_result(result: CleanResult) -> None:
    """Display deletion results."""
    if result.failed_items:
        table = Table(title="Failed Deletions", show_lines=False)
        table.add_column("Path", style="bold")
        table.add_column("Reason", style="dim")
        for failure in result.failed_items:
            table.add_row(failure.item.path, failure.reason)
        console.print(table)

    freed = format_size(result.freed_space)
    if result.dry_run:
        print_info(f"Dry-run: {len(result.deleted_items)} item(s) would be deleted, freeing {freed}.")
    elif result.failed_items:
        print_warning(f"{len(result.deleted_items)} deleted, {len(result.failed_items)} failed ({freed} freed)")
    else:
        print_success(f"Deleted {len(result.deleted_items)} item(s), freed {freed}.")
