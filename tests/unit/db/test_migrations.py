"""Tests for the forward-only migration runner."""

from __future__ import annotations

import sqlite3

import pytest
import sqlite_vec

from rowlink.db.connection import Database
from rowlink.db.migrations import MIGRATIONS, current_version, run_migrations


def _fresh_conn(tmp_path):
    """Open a new connection without running migrations."""
    return Database(tmp_path / "test.db").connect()


def _table_exists(conn, name: str) -> bool:
    return conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (name,)
    ).fetchone() is not None


def _index_names(conn, table: str) -> set[str]:
    return {r[1] for r in conn.execute(f"PRAGMA index_list({table})").fetchall()}


# --- Bootstrap ---

def test_run_migrations_creates_schema_version(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert _table_exists(conn, "schema_version")
    conn.close()


def test_run_migrations_records_version(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert current_version(conn) == MIGRATIONS[-1][0]
    conn.close()


def test_run_migrations_idempotent(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    run_migrations(conn)
    count = conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    assert count == len(MIGRATIONS)
    conn.close()


# --- Tables and indexes ---

@pytest.mark.parametrize("table", ["sources", "targets", "store_meta"])
def test_run_migrations_creates_tables(tmp_path, table):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert _table_exists(conn, table)
    conn.close()


def test_namespace_and_value_indexes(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert {"idx_sources_namespace", "idx_sources_value"} <= _index_names(conn, "sources")
    assert {
        "idx_targets_namespace",
        "idx_targets_value",
        "idx_targets_matched_source_id",
    } <= _index_names(conn, "targets")
    conn.close()


# --- Constraints ---

def _insert(conn, table, namespace="A", **extra):
    cols = ["namespace", "data", "value", "embedding", *extra]
    params = [namespace, "{}", "v", sqlite_vec.serialize_float32([0.1, 0.2]), *extra.values()]
    cur = conn.execute(
        f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({', '.join('?' * len(cols))})",
        params,
    )
    return cur.lastrowid


def test_similarity_requires_match(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    with pytest.raises(sqlite3.IntegrityError):
        _insert(conn, "targets", similarity=0.5)
    conn.close()


def test_similarity_range_checked(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    source_id = _insert(conn, "sources")
    with pytest.raises(sqlite3.IntegrityError):
        _insert(conn, "targets", matched_source_id=source_id, similarity=1.5)
    conn.close()


def test_match_must_stay_in_namespace(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    source_id = _insert(conn, "sources", namespace="A")
    with pytest.raises(sqlite3.IntegrityError):
        _insert(conn, "targets", namespace="B", matched_source_id=source_id, similarity=0.5)
    conn.close()


def test_match_within_namespace_accepted(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    source_id = _insert(conn, "sources", namespace="A")
    _insert(conn, "targets", namespace="A", matched_source_id=source_id, similarity=0.5)
    conn.close()


def test_embedding_must_be_blob(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(
            "INSERT INTO sources (namespace, data, value, embedding) VALUES ('A', '{}', 'v', '[0.1]')"
        )
    conn.close()
