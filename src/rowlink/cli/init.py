"""rowlink init — create the store and a project config.

Creates:
  .rowlink.db     — empty store with sources/targets schema
  rowlink.yaml    — commented project config (left alone if present)
Appends .rowlink.db and quarantine/ to an existing .gitignore.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from rowlink.config import PROJECT_CONFIG_NAME, write_project_config
from rowlink.db.connection import Database
from rowlink.db.migrations import current_version

console = Console()

_DEFAULT_PROJECT_DIR = Path(".")
_DB_NAME = ".rowlink.db"


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = _DEFAULT_PROJECT_DIR,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Store path (default: <project_dir>/.rowlink.db)."),
    ] = None,
) -> None:
    """Create the rowlink store (idempotent) and a rowlink.yaml template."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)
    db_path = db if db is not None else project_dir / _DB_NAME

    console.print(f"\n[bold]Initializing rowlink in {project_dir} …[/]\n")

    existed = db_path.exists()
    with Database(db_path) as conn:
        version = current_version(conn)
    state = "schema up to date" if existed else "created"
    console.print(f"  [green]✓[/] {db_path} ({state}, schema v{version})")

    written = write_project_config(project_dir)
    if written:
        console.print(f"  [green]✓[/] {PROJECT_CONFIG_NAME}")
    else:
        console.print(f"  [dim]↷ {PROJECT_CONFIG_NAME} already exists — left unchanged[/]")

    _update_gitignore(project_dir)

    console.print("\nNext steps:")
    console.print("  1. Edit rowlink.yaml (value columns, namespace column, files)")
    console.print("  2. export ROWLINK_EMBEDDING_API_KEY=...")
    console.print("  3. rowlink ingest      (embed sources, then targets)")
    console.print("  4. rowlink match       (link targets to nearest sources)")
    console.print("  5. rowlink status")


def _update_gitignore(project_dir: Path) -> None:
    """Add rowlink entries to .gitignore if it already exists."""
    gitignore = project_dir / ".gitignore"
    entries = [_DB_NAME, "quarantine/"]

    if gitignore.exists():
        existing = gitignore.read_text(encoding="utf-8")
        to_add = [e for e in entries if e not in existing]
        if to_add:
            with gitignore.open("a", encoding="utf-8") as f:
                f.write("\n# rowlink\n")
                for entry in to_add:
                    f.write(f"{entry}\n")
            console.print("  [green]✓[/] .gitignore (updated with rowlink entries)")
