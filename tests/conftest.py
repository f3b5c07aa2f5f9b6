"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from rowlink.db.connection import Database
from rowlink.db.repository import Repository


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".rowlink.db")
    conn = db.open()
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)
