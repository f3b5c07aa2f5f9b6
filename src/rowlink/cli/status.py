"""rowlink status command.

Shows store overview: embedding model, row counts, match progress, and a
per-namespace breakdown.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from rowlink.cli.errors import err_no_db
from rowlink.cli.ingest import load_cli_config
from rowlink.db.connection import Database
from rowlink.db.models import DatasetKind, NamespaceStats
from rowlink.db.repository import Repository

console = Console()


def status_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to .rowlink.db."),
    ] = None,
) -> None:
    """Show row counts, match progress, and per-namespace statistics."""
    cfg = load_cli_config(db=db)
    db_path = Path(cfg.database.path)

    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    with Database(db_path) as conn:
        repo = Repository(conn)
        _show_store_panel(db_path, repo)
        _show_namespace_table(repo.namespace_stats())


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------


def _show_store_panel(db_path: Path, repo: Repository) -> None:
    size_mb = db_path.stat().st_size / (1024 * 1024)
    sources = repo.count_rows(DatasetKind.SOURCES)
    targets = repo.count_rows(DatasetKind.TARGETS)
    unmatched = repo.count_unmatched_targets()
    matchable = repo.count_matchable_targets()
    matched = targets - unmatched

    model = repo.embedding_model()
    model_line = f"{model[0]} ({model[1]} dims)" if model else "[dim](nothing ingested yet)[/]"

    lines = [
        f"Database:  {db_path} ({size_mb:.1f} MB)",
        f"Model:     {model_line}",
        f"Sources: [bold]{sources:,}[/]  |  Targets: [bold]{targets:,}[/]",
    ]
    if targets:
        lines.append(
            f"Matched:   [green]{matched:,}[/] ({matched / targets:.1%})  |  "
            f"Unmatched: [yellow]{unmatched:,}[/] ({matchable:,} matchable)"
        )
    console.print(Panel("\n".join(lines), title="[bold]Store[/]", expand=False))


def _show_namespace_table(stats: list[NamespaceStats]) -> None:
    if not stats:
        console.print(
            Panel(
                "[dim]No rows yet.[/]\n"
                "  Run:  rowlink ingest",
                title="[bold]Namespaces[/]",
                expand=False,
            )
        )
        return

    table = Table(padding=(0, 1))
    table.add_column("Namespace", style="bold")
    table.add_column("Sources", justify="right")
    table.add_column("Targets", justify="right")
    table.add_column("Matched", justify="right")
    table.add_column("Avg similarity", justify="right")

    for ns in stats:
        matched = f"{ns.matched:,}"
        if ns.targets and not ns.sources:
            matched = f"[yellow]{matched} (no sources)[/]"
        avg = f"{ns.avg_similarity:.3f}" if ns.avg_similarity is not None else "[dim]—[/]"
        table.add_row(ns.namespace, f"{ns.sources:,}", f"{ns.targets:,}", matched, avg)

    console.print(Panel(table, title="[bold]Namespaces[/]", expand=False))
