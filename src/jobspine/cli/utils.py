"""
CLI utility helpers - output formatting and error reporting.
"""

from __future__ import annotations

import json
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from jobspine.errors import JobSpineError

console = Console()
err_console = Console(stderr=True)


def output_rows(rows: list[dict[str, Any]], *, as_json: bool = False, title: str = "") -> None:
    """Render a list of flat dicts as JSON or a Rich table."""
    if as_json:
        console.print_json(json.dumps(rows, default=str))
        return

    if not rows:
        console.print("[dim]No items.[/dim]")
        return

    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in rows[0]:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*(str(v) for v in row.values()))
    console.print(table)


def fail(error: JobSpineError) -> None:
    """Print a jobspine error and exit with status 1."""
    err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {error.message}")
    context = error.context.to_dict()
    for k, v in context.items():
        err_console.print(f"  [cyan]{k}[/cyan]: {v}")
    raise typer.Exit(code=1) from error
