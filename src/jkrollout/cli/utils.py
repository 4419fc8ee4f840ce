"""
CLI utility helpers: output formatting and error reporting.

stdout carries only command output (kernel paths, JSON documents, rendered
batch scripts) so it can be captured by automation; errors and logs go to
stderr. With ``--json`` the error document is printed to stdout instead.
"""

from __future__ import annotations

import json
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from jkrollout.core.errors import RolloutError, exit_code_for
from jkrollout.core.result import Err, Ok, Result

T = TypeVar("T")

console = Console()
err_console = Console(stderr=True)


# ── Result handling ──────────────────────────────────────────────────────


def unwrap_or_exit(result: Result[T], *, as_json: bool = False) -> T:
    """Return the Ok value, or report the error and exit with its code."""
    match result:
        case Ok(value):
            return value
        case Err(error):
            report_error(error, as_json=as_json)
            raise typer.Exit(code=exit_code_for(error))


def report_error(error: Exception, *, as_json: bool = False) -> None:
    """One-line classification plus the captured diagnostic."""
    if as_json:
        emit_json(Err(error).to_dict())
        return

    if isinstance(error, RolloutError):
        label = error.category.value
        line = error.summary()
        diagnostic = error.diagnostic
    else:
        label = "INTERNAL"
        line = f"{type(error).__name__}: {error}"
        diagnostic = None

    err_console.print(f"[bold red]Error[/bold red] ({label}): {escape(line)}")
    if diagnostic:
        err_console.print(escape(diagnostic), style="dim", highlight=False)


# ── Output helpers ───────────────────────────────────────────────────────


def emit_json(payload: Any) -> None:
    """Print a JSON document to stdout, unwrapped."""
    typer.echo(json.dumps(payload, indent=2, default=str))


def print_table(rows: list[dict[str, Any]], *, title: str = "", columns: list[str] | None = None) -> None:
    """Render a list of dicts as a Rich table."""
    if not rows:
        console.print("[dim]No items.[/dim]")
        return
    columns = columns or list(rows[0])
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in columns:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*(escape(str(row.get(col, ""))) for col in columns))
    console.print(table)


def print_dict(data: dict[str, Any], *, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {escape(str(v))}")
