"""
CLI utility helpers: output formatting and admin API access.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import typer
from rich.console import Console
from rich.table import Table

from intake.api.middleware.admin_auth import ADMIN_HEADER

console = Console()
err_console = Console(stderr=True)


# ── Admin API helper ─────────────────────────────────────────────────────


def admin_request(
    method: str,
    url: str,
    admin_key: str | None,
    *,
    timeout: float = 120.0,
) -> dict[str, Any]:
    """Call an admin endpoint of a running intake server and return its JSON body."""
    headers = {ADMIN_HEADER: admin_key} if admin_key else {}
    try:
        response = httpx.request(method, url, headers=headers, timeout=timeout)
    except httpx.HTTPError as e:
        err_console.print(f"[bold red]Error[/bold red]: cannot reach {url}: {e}")
        raise typer.Exit(code=1) from e

    if response.status_code >= 400:
        try:
            detail = response.json().get("detail", response.text)
        except ValueError:
            detail = response.text
        err_console.print(f"[bold red]Error[/bold red] ({response.status_code}): {detail}")
        raise typer.Exit(code=1)
    return response.json()


# ── Output helpers ───────────────────────────────────────────────────────


def print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def render_table(title: str, columns: list[str], rows: list[list[Any]]) -> None:
    """Render rows as a rich table, or a dim note when empty."""
    if not rows:
        console.print(f"[dim]{title}: nothing to show[/dim]")
        return
    table = Table(title=title, show_lines=False)
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*("" if value is None else str(value) for value in row))
    console.print(table)
