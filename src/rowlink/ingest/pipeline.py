"""Ingestion pipeline — CSV rows → resolved embeddings → store.

Per file:
1. Stream rows, dropping those whose value cell is missing or blank.
2. Group valid rows into fixed-size batches, preserving file order.
3. Resolve one embedding per row: cache → store point lookup → one batched
   embedder call for whatever is left. New vectors go into the cache.
4. Insert the whole batch in one transaction.
5. Any exception in 3-4 fails the batch: its rows are quarantined and the
   next batch proceeds. A failed batch leaves nothing behind in the store.
6. Lines with too many fields are quarantined as batch 0. An undecodable or
   unparseable file is reported with its read error and the run moves on.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from rowlink.db.models import DEFAULT_NAMESPACE, DatasetKind, NewRow
from rowlink.db.repository import Repository
from rowlink.ingest.cache import EmbeddingCache
from rowlink.ingest.embedder import Embedder
from rowlink.ingest.quarantine import BatchFailure, Quarantine, describe_error
from rowlink.ingest.reader import (
    READ_ERRORS,
    Row,
    batched,
    is_valid,
    normalize,
    read_columns,
    read_rows,
)


class EmbeddingCountMismatch(RuntimeError):
    """Rows and resolved embeddings disagree in number after resolution."""


class EmbeddingDimensionError(RuntimeError):
    """A vector does not have the configured embedding dimension."""


class ZeroEmbeddingError(RuntimeError):
    """A vector has zero norm, so no cosine distance can be computed from it."""


class MalformedLineError(ValueError):
    """CSV lines that have more fields than the header."""


@dataclass
class BatchResult:
    """Outcome of one batch, passed to the ``on_batch`` callback."""

    file_name: str
    batch_number: int
    row_count: int
    cache_hits: int = 0
    store_hits: int = 0
    embedded: int = 0
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class FileReport:
    path: Path
    exists: bool = True
    missing_value_column: bool = False
    total_rows: int = 0
    skipped_rows: int = 0
    malformed_rows: int = 0
    persisted_rows: int = 0
    batches: int = 0
    failures: list[BatchFailure] = field(default_factory=list)
    quarantine_csv: Path | None = None
    quarantine_log: Path | None = None
    error: str | None = None

    @property
    def valid_rows(self) -> int:
        return self.total_rows - self.skipped_rows

    @property
    def failed_rows(self) -> int:
        return sum(f.row_count for f in self.failures)


@dataclass
class _Resolution:
    embeddings: list[list[float]]
    cache_hits: int
    store_hits: int
    embedded: int


class IngestionPipeline:
    """Load CSV files of one dataset kind into the store.

    Args:
        repo: Open Repository.
        embedder: Embedding client; its ``dimensions`` is enforced on every vector.
        kind: Which table rows are written to.
        value_column: Column whose (trimmed) text is embedded.
        namespace_column: Partition column; ``None`` puts every row in ``default``.
        batch_size: Valid rows per batch.
        skip_rows: Leading file lines skipped before the header.
        quarantine_dir: Where failed-batch artifacts are written.
        cache: Embedding cache; a fresh one is created when omitted.
        on_batch: Called after every batch, successful or not.
    """

    def __init__(
        self,
        repo: Repository,
        embedder: Embedder,
        kind: DatasetKind,
        value_column: str,
        namespace_column: str | None = None,
        batch_size: int = 1_000,
        skip_rows: int = 0,
        quarantine_dir: Path | str = Path("quarantine"),
        cache: EmbeddingCache | None = None,
        on_batch: Callable[[BatchResult], None] | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if skip_rows < 0:
            raise ValueError("skip_rows must be >= 0")
        self._repo = repo
        self._embedder = embedder
        self.kind = kind
        self.value_column = value_column
        self.namespace_column = namespace_column
        self.batch_size = batch_size
        self.skip_rows = skip_rows
        self.quarantine_dir = Path(quarantine_dir)
        self.cache = cache if cache is not None else EmbeddingCache()
        self._on_batch = on_batch

    def ingest(self, paths: list[Path]) -> list[FileReport]:
        """Ingest every file in order. Missing files are reported, not raised."""
        return [self.ingest_file(Path(p)) for p in paths]

    def ingest_file(self, path: Path) -> FileReport:
        """Ingest one CSV file; every valid row ends up persisted xor quarantined.

        Lines with more fields than the header are quarantined together after
        the last batch, under batch number 0. A file that cannot be decoded or
        parsed stops at that point: batches already formed are processed and
        the read error is set on the report.
        """
        path = Path(path)
        report = FileReport(path=path)
        if not path.is_file():
            report.exists = False
            return report

        quarantine = Quarantine(self.quarantine_dir / self.kind.value, path)
        try:
            columns = read_columns(path, self.skip_rows)
        except READ_ERRORS as exc:
            report.error = describe_error(exc)
            return report
        report.missing_value_column = self.value_column not in columns

        malformed: list[Row] = []

        def _on_bad_line(fields: list[str]) -> None:
            report.total_rows += 1
            malformed.append(_fit_to_header(fields, columns))

        def _valid_rows():
            try:
                for row in read_rows(path, self.skip_rows, on_bad_line=_on_bad_line):
                    report.total_rows += 1
                    if is_valid(row, self.value_column):
                        yield row
                    else:
                        report.skipped_rows += 1
            except READ_ERRORS as exc:
                report.error = describe_error(exc)

        for number, batch in enumerate(batched(_valid_rows(), self.batch_size), start=1):
            report.batches = number
            result = BatchResult(file_name=path.name, batch_number=number, row_count=len(batch))
            try:
                resolved = self._resolve(batch)
                result.cache_hits = resolved.cache_hits
                result.store_hits = resolved.store_hits
                result.embedded = resolved.embedded
                report.persisted_rows += self._insert(batch, resolved.embeddings)
            except Exception as exc:
                result.error = exc
                report.failures.append(quarantine.record(number, batch, exc))
            if self._on_batch is not None:
                self._on_batch(result)

        if malformed:
            report.malformed_rows = len(malformed)
            error = MalformedLineError(
                f"{len(malformed)} lines have more fields than the {len(columns)}-column header"
            )
            report.failures.append(quarantine.record(0, malformed, error))

        if report.failures:
            report.quarantine_csv = quarantine.csv_path
            report.quarantine_log = quarantine.log_path
        return report

    # ------------------------------------------------------------------
    # Embedding resolution
    # ------------------------------------------------------------------

    def _resolve(self, batch: list[Row]) -> _Resolution:
        """Return one embedding per row of *batch*, in row order.

        Counts are per row: rows sharing a value that was embedded in this
        batch count once as embedded and otherwise as cache hits, so the three
        counts always add up to the batch size.
        """
        values = [normalize(row.get(self.value_column)) for row in batch]
        occurrences = Counter(values)
        resolved: dict[str, list[float]] = {}
        pending: list[str] = []
        cache_hits = store_hits = 0

        for value, count in occurrences.items():
            vector = self.cache.get(value)
            if vector is not None:
                cache_hits += count
                resolved[value] = vector
                continue
            vector = self._repo.get_embedding(self.kind, value)
            if vector is not None:
                store_hits += count
                self.cache.put(value, vector)
                resolved[value] = vector
                continue
            pending.append(value)

        if pending:
            vectors = self._embedder.embed(pending)
            if len(vectors) != len(pending):
                raise EmbeddingCountMismatch(
                    f"embedder returned {len(vectors)} vectors for {len(pending)} values"
                )
            for value, vector in zip(pending, vectors):
                self._check_vector(vector)
                self.cache.put(value, vector)
                resolved[value] = vector
            cache_hits += sum(occurrences[v] - 1 for v in pending)

        self.cache.hits += cache_hits
        self.cache.store_hits += store_hits
        self.cache.misses += len(pending)
        return _Resolution([resolved[v] for v in values], cache_hits, store_hits, len(pending))

    def _check_vector(self, vector: list[float]) -> None:
        expected = self._embedder.dimensions
        if len(vector) != expected:
            raise EmbeddingDimensionError(
                f"embedding has {len(vector)} dimensions, expected {expected}"
            )
        if not any(vector):
            raise ZeroEmbeddingError("embedding is an all-zero vector")

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _insert(self, batch: list[Row], embeddings: list[list[float]]) -> int:
        rows = [
            NewRow(
                namespace=self._namespace_of(row),
                data=row,
                value=normalize(row.get(self.value_column)),
                embedding=embedding,
            )
            for row, embedding in zip(batch, embeddings)
        ]
        return self._repo.add_rows(self.kind, rows)

    def _namespace_of(self, row: Row) -> str:
        if not self.namespace_column:
            return DEFAULT_NAMESPACE
        return normalize(row.get(self.namespace_column)) or DEFAULT_NAMESPACE


def _fit_to_header(fields: list[str], columns: list[str]) -> Row:
    """Map an over-long line onto the header; surplus fields stay in the last column."""
    if not columns:
        return {}
    width = len(columns)
    head = fields[: width - 1]
    tail = ",".join(fields[width - 1 :])
    return dict(zip(columns, [*head, tail]))
