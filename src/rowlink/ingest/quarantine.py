"""Quarantine artifacts for failed ingestion batches.

Per input file that has at least one failed batch:
  <dir>/<stem>.failed.csv   — every row of every failed batch, original columns
  <dir>/<stem>.failed.json  — JSON array of per-batch failure entries

Both are appended to as batches fail, so a crash mid-file keeps what was
already recorded.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import pandas as pd

from rowlink.ingest.reader import Row


@dataclass
class BatchFailure:
    """Metadata describing one failed batch."""

    file_name: str
    batch_number: int
    row_count: int
    error: str
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "fileName": self.file_name,
            "batchNumber": self.batch_number,
            "rowCount": self.row_count,
            "error": self.error,
            "timestamp": self.timestamp,
        }


def describe_error(exc: BaseException) -> str:
    """Format *exc* as ``ExcType: message``."""
    message = str(exc).strip()
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


class Quarantine:
    """Writes the failed-row CSV and failure log for one input file.

    Args:
        directory: Where artifacts are written (created on first failure).
        source_path: The CSV file whose batches are being quarantined.
    """

    def __init__(self, directory: Path, source_path: Path) -> None:
        self.directory = Path(directory)
        self.source_path = Path(source_path)
        self.failures: list[BatchFailure] = []
        self._columns: list[str] | None = None

    @property
    def csv_path(self) -> Path:
        return self.directory / f"{self.source_path.stem}.failed.csv"

    @property
    def log_path(self) -> Path:
        return self.directory / f"{self.source_path.stem}.failed.json"

    @property
    def row_count(self) -> int:
        return sum(f.row_count for f in self.failures)

    def record(self, batch_number: int, rows: list[Row], exc: BaseException) -> BatchFailure:
        """Append *rows* to the CSV and a failure entry to the log."""
        failure = BatchFailure(
            file_name=self.source_path.name,
            batch_number=batch_number,
            row_count=len(rows),
            error=describe_error(exc),
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        self.directory.mkdir(parents=True, exist_ok=True)
        self._append_rows(rows)
        self.failures.append(failure)
        self.log_path.write_text(
            json.dumps([f.to_dict() for f in self.failures], indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        return failure

    def _append_rows(self, rows: list[Row]) -> None:
        first = self._columns is None
        if first:
            self._columns = list(rows[0].keys()) if rows else []
        frame = pd.DataFrame(rows, columns=self._columns)
        frame.to_csv(
            self.csv_path,
            mode="w" if first else "a",
            header=first,
            index=False,
            encoding="utf-8",
        )
