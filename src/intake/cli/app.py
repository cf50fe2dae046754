"""
Root Typer application for the intake CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from intake import __version__
from intake.cli.admin import circuits, queue, sweep
from intake.cli.config import show_config
from intake.cli.serve import serve

app = Typer(
    name="intake",
    help="intake-core: bug report intake with rate limiting, circuit breakers and recovery.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("intake-core")
        except PackageNotFoundError:
            v = __version__
        typer.echo(f"intake-core {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """intake-core CLI: run the API server and operate the recovery queue."""


app.command("serve")(serve)
app.command("sweep")(sweep)
app.command("queue")(queue)
app.command("circuits")(circuits)
app.command("config")(show_config)


if __name__ == "__main__":
    app()
