"""Tests for rowlink init command."""

from __future__ import annotations

from pathlib import Path

import yaml
from typer.testing import CliRunner

from rowlink.cli.main import app
from rowlink.db.migrations import current_version
from rowlink.db.connection import Database

runner = CliRunner()


def _init(tmp_path: Path, *extra: str):
    return runner.invoke(app, ["init", str(tmp_path), *extra])


def test_init_creates_database(tmp_path: Path) -> None:
    result = _init(tmp_path)
    assert result.exit_code == 0, result.output
    db_path = tmp_path / ".rowlink.db"
    assert db_path.exists()
    conn = Database(db_path).connect()
    try:
        assert current_version(conn) >= 1
    finally:
        conn.close()


def test_init_writes_project_config(tmp_path: Path) -> None:
    _init(tmp_path)
    data = yaml.safe_load((tmp_path / "rowlink.yaml").read_text(encoding="utf-8"))
    assert data["embedding"]["dimensions"] == 1024
    assert data["ingest"]["sources"]["files"] == ["sources.csv"]


def test_init_config_has_no_api_keys(tmp_path: Path) -> None:
    _init(tmp_path)
    data = yaml.safe_load((tmp_path / "rowlink.yaml").read_text(encoding="utf-8"))
    assert "api_key" not in data["embedding"]


def test_init_keeps_existing_config(tmp_path: Path) -> None:
    (tmp_path / "rowlink.yaml").write_text("match:\n  batch_size: 5\n", encoding="utf-8")
    result = _init(tmp_path)
    assert result.exit_code == 0, result.output
    assert "already exists" in result.output
    assert (tmp_path / "rowlink.yaml").read_text(encoding="utf-8") == "match:\n  batch_size: 5\n"


def test_init_is_idempotent(tmp_path: Path) -> None:
    _init(tmp_path)
    result = _init(tmp_path)
    assert result.exit_code == 0, result.output
    assert "schema up to date" in result.output


def test_init_custom_db_path(tmp_path: Path) -> None:
    db_path = tmp_path / "data" / "store.db"
    result = _init(tmp_path, "--db", str(db_path))
    assert result.exit_code == 0, result.output
    assert db_path.exists()
    assert not (tmp_path / ".rowlink.db").exists()


def test_init_updates_existing_gitignore(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("*.pyc\n", encoding="utf-8")
    _init(tmp_path)
    content = (tmp_path / ".gitignore").read_text(encoding="utf-8")
    assert ".rowlink.db" in content
    assert "quarantine/" in content
    assert content.startswith("*.pyc\n")


def test_init_gitignore_not_duplicated(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("*.pyc\n", encoding="utf-8")
    _init(tmp_path)
    _init(tmp_path)
    content = (tmp_path / ".gitignore").read_text(encoding="utf-8")
    assert content.count(".rowlink.db") == 1


def test_init_without_gitignore_creates_none(tmp_path: Path) -> None:
    _init(tmp_path)
    assert not (tmp_path / ".gitignore").exists()
