"""Forward-only migration runner for the rowlink store schema."""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

# Embeddings are float32 blobs in sqlite-vec's native layout.
_V1_SQL = """
CREATE TABLE IF NOT EXISTS sources (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    namespace   TEXT NOT NULL DEFAULT 'default',
    data        TEXT NOT NULL,
    value       TEXT NOT NULL,
    embedding   BLOB NOT NULL CHECK (typeof(embedding) = 'blob'),
    created_at  DATETIME NOT NULL DEFAULT (datetime('now')),
    UNIQUE (id, namespace)
);

CREATE INDEX IF NOT EXISTS idx_sources_namespace ON sources(namespace);
CREATE INDEX IF NOT EXISTS idx_sources_value ON sources(value);

CREATE TABLE IF NOT EXISTS targets (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    namespace           TEXT NOT NULL DEFAULT 'default',
    data                TEXT NOT NULL,
    value               TEXT NOT NULL,
    embedding           BLOB NOT NULL CHECK (typeof(embedding) = 'blob'),
    matched_source_id   INTEGER,
    similarity          REAL CHECK (similarity >= 0 AND similarity <= 1),
    created_at          DATETIME NOT NULL DEFAULT (datetime('now')),
    CHECK ((matched_source_id IS NULL) = (similarity IS NULL)),
    FOREIGN KEY (matched_source_id, namespace) REFERENCES sources(id, namespace)
);

CREATE INDEX IF NOT EXISTS idx_targets_namespace ON targets(namespace);
CREATE INDEX IF NOT EXISTS idx_targets_value ON targets(value);
CREATE INDEX IF NOT EXISTS idx_targets_matched_source_id ON targets(matched_source_id);

CREATE TABLE IF NOT EXISTS store_meta (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL
);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]


def current_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied migration version (0 for a fresh database)."""
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] if row[0] is not None else 0


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    current = current_version(conn)

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()
