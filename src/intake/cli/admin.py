"""
CLI: ``intake sweep`` / ``intake queue`` / ``intake circuits``: operator commands.

All three talk to a running server's admin endpoints; the admin key is read
from ``--admin-key`` or ``INTAKE_ADMIN_API_KEY``.
"""

from __future__ import annotations

import typer

from intake.cli.utils import admin_request, console, print_json, render_table

DEFAULT_URL = "http://localhost:12100/api/v1"

UrlOption = typer.Option(DEFAULT_URL, "--url", "-u", envvar="INTAKE_API_URL", help="API base URL")
AdminKeyOption = typer.Option(None, "--admin-key", "-k", envvar="INTAKE_ADMIN_API_KEY", help="Admin key")
JsonOption = typer.Option(False, "--json")


def sweep(
    url: str = UrlOption,
    admin_key: str | None = AdminKeyOption,
    json_out: bool = JsonOption,
) -> None:
    """Run one recovery sweep pass on a running server."""
    body = admin_request("POST", f"{url.rstrip('/')}/recovery/sweep", admin_key)
    if json_out:
        print_json(body)
        return

    summary = body["summary"]
    console.print(
        f"[bold]Sweep[/bold]: {summary['total']} processed, "
        f"[green]{summary['succeeded']} recovered[/green], "
        f"[red]{summary['failed']} still failing[/red]"
    )
    render_table(
        "Sweep results",
        ["ID", "Recovered", "Retried", "Remaining errors"],
        [
            [
                r["id"],
                "yes" if r["success"] else "no",
                ", ".join(r["retried_stages"]),
                "; ".join(f"{k}: {v}" for k, v in r["remaining_errors"].items()),
            ]
            for r in body["results"]
        ],
    )


def queue(
    url: str = UrlOption,
    admin_key: str | None = AdminKeyOption,
    status: str | None = typer.Option(None, "--status", "-s", help="pending|retrying|partial|failed"),
    json_out: bool = JsonOption,
) -> None:
    """Show submission queue statistics and records."""
    endpoint = f"{url.rstrip('/')}/recovery/queue"
    if status:
        endpoint += f"?status={status}"
    body = admin_request("GET", endpoint, admin_key)
    if json_out:
        print_json(body)
        return

    stats = body["stats"]
    console.print(
        f"[bold]Queue[/bold]: {stats['total']}/{stats['max_size']} "
        f"(pending {stats['pending']}, retrying {stats['retrying']}, "
        f"partial {stats['partial']}, failed {stats['failed']}, retryable {stats['retryable']})"
    )
    render_table(
        "Queued submissions",
        ["ID", "Status", "Title", "Retries", "Errors"],
        [
            [
                s["id"],
                s["status"],
                s["title"],
                f"{s['retry_count']}/{s['max_retries']}",
                ", ".join(sorted(s["errors"])),
            ]
            for s in body["submissions"]
        ],
    )


def circuits(
    url: str = UrlOption,
    admin_key: str | None = AdminKeyOption,
    json_out: bool = JsonOption,
) -> None:
    """Show provider circuit breaker states."""
    body = admin_request("GET", f"{url.rstrip('/')}/circuits", admin_key)
    if json_out:
        print_json(body)
        return

    colors = {"closed": "green", "half_open": "yellow", "open": "red"}
    render_table(
        "Circuits",
        ["Service", "State", "Failures", "Retry in (s)", "Rejected"],
        [
            [
                c["service"],
                f"[{colors[c['state']]}]{c['state']}[/]",
                c["consecutive_failures"],
                c["retry_in"] or "",
                c["stats"]["rejected_requests"],
            ]
            for c in body["circuits"]
        ],
    )
