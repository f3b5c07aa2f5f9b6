"""rowlink CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from rowlink.cli.ingest import ingest_cmd
from rowlink.cli.init import init_cmd
from rowlink.cli.match import match_cmd
from rowlink.cli.run import run_cmd
from rowlink.cli.status import status_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("rowlink")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"rowlink {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="rowlink",
    help=(
        "rowlink — embed two CSV datasets and link each target to its nearest source.\n\n"
        "  rowlink ingest  Embed sources, then targets, into the store.\n"
        "  rowlink match   Link every unmatched target to its nearest same-namespace source."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """rowlink — embed two CSV datasets and link each target to its nearest source."""


app.command("init")(init_cmd)
app.command("ingest")(ingest_cmd)
app.command("match")(match_cmd)
app.command("run")(run_cmd)
app.command("status")(status_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed rowlink version."""
    typer.echo(f"rowlink {_installed_version()}")


if __name__ == "__main__":
    app()
