"""rowlink ingest — load source/target CSV files into the store.

Sources are always loaded before targets. Each dataset kind gets its own
IngestionPipeline (and embedding cache). Batch failures are quarantined and
reported; they never stop the run.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from rowlink.cli.errors import (
    err_config,
    err_embedding_model_mismatch,
    err_files_need_kind,
    err_no_api_key,
    warn_missing_file,
    warn_missing_value_column,
    warn_quarantined,
    warn_read_failed,
)
from rowlink.config import ConfigError, RowlinkConfig, load_config, validate_config
from rowlink.db.connection import Database
from rowlink.db.models import DatasetKind
from rowlink.db.repository import Repository, StoreMismatchError
from rowlink.ingest.embedder import Embedder, EmbeddingConfig, MissingApiKeyError, validate_api_key
from rowlink.ingest.pipeline import (
    BatchResult,
    EmbeddingCountMismatch,
    FileReport,
    IngestionPipeline,
)

console = Console()


class KindChoice(str, Enum):
    sources = "sources"
    targets = "targets"
    all = "all"

    def kinds(self) -> list[DatasetKind]:
        if self is KindChoice.all:
            return [DatasetKind.SOURCES, DatasetKind.TARGETS]
        return [DatasetKind(self.value)]


def ingest_cmd(
    kind: Annotated[
        KindChoice,
        typer.Option("--kind", "-k", help="Dataset kind to load (sources first when 'all')."),
    ] = KindChoice.all,
    file: Annotated[
        list[Path] | None,
        typer.Option("--file", "-f", help="CSV file to load instead of the configured ones (repeatable)."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to .rowlink.db (created if missing)."),
    ] = None,
    batch_size: Annotated[
        int | None,
        typer.Option("--batch-size", help="Valid rows per ingestion batch."),
    ] = None,
    skip_rows: Annotated[
        int | None,
        typer.Option("--skip-rows", help="Leading lines to skip before the CSV header."),
    ] = None,
) -> None:
    """Embed CSV rows and store them as sources / targets."""
    if file and kind is KindChoice.all:
        console.print(err_files_need_kind())
        raise typer.Exit(1)

    cfg = load_cli_config(db=db, ingest_batch_size=batch_size, skip_rows=skip_rows)
    embedder = build_embedder(cfg)

    with Database(cfg.database.path) as conn:
        run_ingest(Repository(conn), embedder, cfg, kind.kinds(), files=file)


# ------------------------------------------------------------------
# Shared helpers (also used by `rowlink run`)
# ------------------------------------------------------------------


def load_cli_config(
    db: Path | None = None,
    ingest_batch_size: int | None = None,
    skip_rows: int | None = None,
    match_batch_size: int | None = None,
) -> RowlinkConfig:
    """Load config and apply CLI flag overrides; exit 1 on invalid values."""
    try:
        cfg = load_config()
        if db is not None:
            cfg.database.path = str(db)
        if ingest_batch_size is not None:
            cfg.ingest.batch_size = ingest_batch_size
        if skip_rows is not None:
            cfg.ingest.skip_rows = skip_rows
        if match_batch_size is not None:
            cfg.match.batch_size = match_batch_size
        return validate_config(cfg)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from None


def build_embedder(cfg: RowlinkConfig) -> Embedder:
    """Create the embedder and fail fast if no API key is available."""
    embedder = Embedder(
        EmbeddingConfig(
            model=cfg.embedding.model,
            dimensions=cfg.embedding.dimensions,
            api_base=cfg.embedding.api_base,
            batch_size=cfg.embedding.batch_size,
            num_retries=cfg.embedding.num_retries,
            timeout=cfg.embedding.timeout,
        )
    )
    try:
        validate_api_key(embedder.model, embedder.api_key, cfg.embedding.api_base)
    except MissingApiKeyError as exc:
        console.print(err_no_api_key(exc.provider, exc.env_var))
        raise typer.Exit(1) from None
    return embedder


def run_ingest(
    repo: Repository,
    embedder: Embedder,
    cfg: RowlinkConfig,
    kinds: list[DatasetKind],
    files: list[Path] | None = None,
) -> list[FileReport]:
    """Ingest every requested kind in order and print progress."""
    try:
        repo.ensure_embedding_model(embedder.model, embedder.dimensions)
    except StoreMismatchError as exc:
        console.print(
            err_embedding_model_mismatch(exc.db_model, exc.db_dims, exc.model, exc.dims)
        )
        raise typer.Exit(1) from None

    reports: list[FileReport] = []
    for kind in kinds:
        dataset = cfg.ingest.dataset(kind)
        paths = list(files) if files else [Path(f) for f in dataset.files]
        pipeline = IngestionPipeline(
            repo,
            embedder,
            kind,
            value_column=dataset.value_column,
            namespace_column=cfg.ingest.namespace_column,
            batch_size=cfg.ingest.batch_size,
            skip_rows=cfg.ingest.skip_rows,
            quarantine_dir=Path(cfg.ingest.quarantine_dir),
            on_batch=lambda result, label=kind.label: _print_batch(label, result),
        )
        for path in paths:
            console.print(f"[{kind.label}] Start loading from {path}")
            report = pipeline.ingest_file(path)
            _print_file_report(kind, dataset.value_column, report)
            reports.append(report)

        cache = pipeline.cache
        if cache.lookups:
            console.print(
                f"[{kind.label}] [dim]Cache: {cache.hits} memory · {cache.store_hits} store · "
                f"{cache.misses} embedded ({cache.hit_ratio:.1%} reused)[/]"
            )
    return reports


# ------------------------------------------------------------------
# Console output
# ------------------------------------------------------------------


def _print_batch(label: str, result: BatchResult) -> None:
    if result.ok:
        console.print(
            f"[{label}] Batch {result.batch_number} ({result.row_count} rows) "
            f"[dim]cache {result.cache_hits} · store {result.store_hits} · "
            f"embedded {result.embedded}[/]"
        )
    elif isinstance(result.error, EmbeddingCountMismatch):
        console.print(
            f"[{label}] [magenta]✗ Batch {result.batch_number} contract violation "
            f"({result.row_count} rows):[/] {result.error}"
        )
    else:
        console.print(
            f"[{label}] [red]✗ Batch {result.batch_number} failed "
            f"({result.row_count} rows):[/] {result.error}"
        )


def _print_file_report(kind: DatasetKind, value_column: str, report: FileReport) -> None:
    label = kind.label
    if not report.exists:
        console.print(warn_missing_file(label, str(report.path)))
        return
    if report.missing_value_column and report.total_rows:
        console.print(warn_missing_value_column(label, str(report.path), value_column))
    if report.error:
        console.print(warn_read_failed(label, str(report.path), report.error))

    console.print(
        f"[{label}] [green]✓[/] {report.persisted_rows}/{report.valid_rows} valid rows stored "
        f"[dim]({report.skipped_rows} blank skipped, {report.batches} batches)[/]"
    )
    if report.malformed_rows:
        console.print(
            f"[{label}] [yellow]⚠ {report.malformed_rows} lines had more fields than the header[/]"
        )
    if report.failures:
        console.print(
            warn_quarantined(
                label,
                report.failed_rows,
                str(report.quarantine_csv),
                str(report.quarantine_log),
            )
        )
