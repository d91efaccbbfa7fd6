"""Recommend command implementation.

Scans and prints the cleaning recommendation buckets.
"""

from typing import Annotated

import typer
from rich.table import Table

from declutter.cli.types import build_engine, get_cli_config, resolve_categories
from declutter.core.errors import DeclutterError
from declutter.models.item import Category
from declutter.utils.formatting import console, format_size, print_error, print_success

app = typer.Typer(
    help="Show cleaning recommendations.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def recommend(
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
) -> None:
    """Scan and group items into recommendation buckets."""
    if ctx.invoked_subcommand is not None:
        return

    engine = build_engine(get_cli_config(ctx))
    try:
        engine.scan(resolve_categories(categories))
        recommendations = engine.get_recommendations()
    except DeclutterError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    if not recommendations:
        print_success("Nothing to recommend.")
        return

    table = Table(
        title="Cleaning Recommendations",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Recommendation", style="bold")
    table.add_column("Items", justify="right")
    table.add_column("Space", style="size", justify="right")
    table.add_column("Confidence", justify="right")
    table.add_column("Description", style="muted")

    for rec in recommendations:
        table.add_row(
            rec.title,
            str(len(rec.items)),
            format_size(rec.potential_space),
            f"{rec.confidence:.0%}",
            rec.description,
        )
    console.print(table)
