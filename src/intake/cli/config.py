"""
CLI: ``intake config``: show the effective configuration.
"""

from __future__ import annotations

from enum import Enum

import typer
from pydantic import SecretStr
from rich.table import Table

from intake.cli.utils import console, print_json
from intake.core.settings import IntakeSettings

REDACTED = "********"


def effective_settings(settings: IntakeSettings) -> dict[str, object]:
    """Settings as plain values with secrets redacted."""
    values: dict[str, object] = {}
    for name in type(settings).model_fields:
        value = getattr(settings, name)
        if isinstance(value, SecretStr):
            value = REDACTED
        elif isinstance(value, Enum):
            value = value.value
        values[name] = value
    return values


def show_config(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json, env"),
) -> None:
    """Show the effective configuration (secrets redacted)."""
    values = effective_settings(IntakeSettings())

    if format == "json":
        print_json(values)
        return

    if format == "env":
        for key, value in sorted(values.items()):
            if value is not None:
                console.print(f"INTAKE_{key.upper()}={value}", markup=False, highlight=False)
        return

    table = Table(title="intake-core settings")
    table.add_column("Setting")
    table.add_column("Value")
    for key, value in sorted(values.items()):
        table.add_row(key, "[dim]unset[/dim]" if value is None else str(value))
    console.print(table)
