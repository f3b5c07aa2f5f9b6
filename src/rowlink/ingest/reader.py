"""CSV reading, row validity filtering, and fixed-size batching.

Every cell is read as a string (no type inference) so the raw row can be
stored verbatim. Files are streamed in chunks; memory stays bounded by the
chunk size no matter how large the input is.
"""

from __future__ import annotations

import csv
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path

import pandas as pd

Row = dict[str, str | None]

# Raised while decoding or tokenizing; the rest of the file cannot be read.
READ_ERRORS: tuple[type[Exception], ...] = (
    pd.errors.ParserError,
    csv.Error,
    UnicodeDecodeError,
)

_READ_CHUNK_ROWS = 10_000


def read_columns(path: Path, skip_rows: int = 0) -> list[str]:
    """Return the header of *path* (after skipping *skip_rows* leading lines)."""
    try:
        frame = pd.read_csv(
            path,
            dtype=str,
            keep_default_na=False,
            skiprows=skip_rows,
            nrows=0,
            encoding="utf-8",
        )
    except pd.errors.EmptyDataError:
        return []
    return [str(c) for c in frame.columns]


def read_rows(
    path: Path,
    skip_rows: int = 0,
    chunk_rows: int = _READ_CHUNK_ROWS,
    on_bad_line: Callable[[list[str]], None] | None = None,
) -> Iterator[Row]:
    """Yield every data row of *path* as an ordered column → value mapping.

    Empty cells are ``""``; cells missing from short rows are ``None``.
    Lines with more fields than the header are passed to *on_bad_line* as
    their split fields and then dropped. Without a callback they raise
    ``pd.errors.ParserError``.
    """
    options: dict = {}
    if on_bad_line is not None:
        # Callable on_bad_lines is only supported by the python engine
        options = {"engine": "python", "on_bad_lines": on_bad_line}
    try:
        reader = pd.read_csv(
            path,
            dtype=str,
            keep_default_na=False,
            skiprows=skip_rows,
            chunksize=chunk_rows,
            encoding="utf-8",
            **options,
        )
    except pd.errors.EmptyDataError:
        return
    with reader:
        for frame in reader:
            for record in frame.to_dict(orient="records"):
                yield {str(k): (None if pd.isna(v) else str(v)) for k, v in record.items()}


def normalize(cell: str | None) -> str:
    """Normalized form of a cell: surrounding whitespace trimmed, None → ``""``."""
    return cell.strip() if cell is not None else ""


def is_valid(row: Row, value_column: str) -> bool:
    """A row is valid iff its value cell is present and non-blank."""
    return normalize(row.get(value_column)) != ""


def batched(rows: Iterable[Row], size: int) -> Iterator[list[Row]]:
    """Group *rows* into lists of *size* (last may be shorter), order preserved."""
    if size < 1:
        raise ValueError("size must be >= 1")
    batch: list[Row] = []
    for row in rows:
        batch.append(row)
        if len(batch) == size:
            yield batch
            batch = []
    if batch:
        yield batch
