"""rowlink run — ingest both datasets, then match."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from rowlink.cli.ingest import build_embedder, load_cli_config, run_ingest
from rowlink.cli.match import run_match
from rowlink.db.connection import Database
from rowlink.db.models import DatasetKind
from rowlink.db.repository import Repository


def run_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to .rowlink.db (created if missing)."),
    ] = None,
    skip_match: Annotated[
        bool,
        typer.Option("--skip-match", help="Only ingest; do not run the matcher."),
    ] = False,
) -> None:
    """Run the full pipeline: ingest sources, ingest targets, then match."""
    cfg = load_cli_config(db=db)
    embedder = build_embedder(cfg)

    with Database(cfg.database.path) as conn:
        repo = Repository(conn)
        run_ingest(repo, embedder, cfg, [DatasetKind.SOURCES, DatasetKind.TARGETS])
        if not skip_match:
            run_match(repo, cfg)
