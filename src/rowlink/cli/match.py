"""rowlink match — link every unmatched target to its nearest source.

Safe to interrupt and rerun: matched targets are never selected again and
never overwritten.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from rowlink.cli.errors import err_match_failed, err_no_db
from rowlink.cli.ingest import load_cli_config
from rowlink.config import RowlinkConfig
from rowlink.db.connection import Database
from rowlink.db.repository import Repository
from rowlink.match.matcher import Matcher, MatchReport, MatchRound

console = Console()


def match_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to .rowlink.db."),
    ] = None,
    batch_size: Annotated[
        int | None,
        typer.Option("--batch-size", help="Targets matched per round."),
    ] = None,
    no_tune: Annotated[
        bool,
        typer.Option("--no-tune", help="Skip SQLite session tuning before matching."),
    ] = False,
) -> None:
    """Assign each unmatched target its most similar source in the same namespace."""
    cfg = load_cli_config(db=db, match_batch_size=batch_size)
    if no_tune:
        cfg.match.tune_session = False

    db_path = Path(cfg.database.path)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    with Database(db_path) as conn:
        run_match(Repository(conn), cfg)


def run_match(repo: Repository, cfg: RowlinkConfig) -> MatchReport:
    """Run the Matcher with console progress; exit 1 if the store fails."""
    console.print("[MATCH] Starting similarity computation...")
    matcher = Matcher(
        repo,
        batch_size=cfg.match.batch_size,
        tune=cfg.match.tune_session,
        cache_size_mb=cfg.match.cache_size_mb,
        on_round=_print_round,
    )
    try:
        report = matcher.run()
    except sqlite3.Error as exc:
        console.print(err_match_failed(exc))
        raise typer.Exit(1) from None

    if report.total == 0:
        console.print("[MATCH] No targets to process")
        return report

    console.print(f"[MATCH] Completed! Processed: {report.processed}")
    if report.unmatched:
        console.print(
            f"[MATCH] [yellow]{report.unmatched} targets remain unmatched "
            "(no source in their namespace)[/]"
        )
    return report


def _print_round(round_: MatchRound) -> None:
    if round_.number == 1:
        console.print(f"[MATCH] Total: {round_.total}")
    console.print(
        f"[MATCH] {round_.processed}/{round_.total} ({round_.progress:.1f}%) - "
        f"{round_.elapsed:.2f}s, {round_.rate:.1f}/s"
    )
