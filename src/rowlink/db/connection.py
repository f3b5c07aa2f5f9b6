"""Store connection: SQLite file, sqlite-vec functions, rowlink schema."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec

from rowlink.db.schema import initialize


class Database:
    """Per-project rowlink store.

    ``connect()`` gives a bare connection with sqlite-vec loaded; ``open()``
    also brings the schema up to date. Used as a context manager it yields an
    opened connection and closes it on exit, including on ``typer.Exit``.

    Args:
        db_path: Store file, created (with parent directories) if missing.
        timeout: Seconds to wait on a locked store before raising.
    """

    def __init__(self, db_path: Path | str, timeout: float = 30.0) -> None:
        self.db_path = Path(db_path)
        self.timeout = timeout
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        conn.enable_load_extension(True)
        sqlite_vec.load(conn)
        conn.enable_load_extension(False)
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    def open(self) -> sqlite3.Connection:
        """Connect and run pending migrations."""
        conn = self.connect()
        initialize(conn)
        return conn

    def __enter__(self) -> sqlite3.Connection:
        self._conn = self.open()
        return self._conn

    def __exit__(self, *args: object) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
