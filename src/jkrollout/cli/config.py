"""
CLI: ``jkrollout config``, inspect the resolved settings.
"""

from __future__ import annotations

import typer

from jkrollout.cli.utils import emit_json, print_dict
from jkrollout.core.settings import get_settings

app = typer.Typer(no_args_is_help=True)


@app.command("show")
def show_config(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json, env"),
) -> None:
    """Show the settings in effect (defaults, .env and JKROLLOUT_* variables)."""
    settings = get_settings()
    data = settings.model_dump(mode="json")

    if format == "json":
        emit_json(data)
        return

    if format == "env":
        for key, value in sorted(data.items()):
            if isinstance(value, list):
                value = ",".join(value)
            typer.echo(f"JKROLLOUT_{key.upper()}={'' if value is None else value}")
        return

    print_dict(data, title="Settings")
