"""Tests for rowlink CLI error message builders."""

from __future__ import annotations

from rowlink.cli.errors import (
    err_config,
    err_embedding_model_mismatch,
    err_files_need_kind,
    err_match_failed,
    err_no_api_key,
    err_no_db,
    warn_missing_file,
    warn_missing_value_column,
    warn_quarantined,
)


def test_err_no_api_key_names_both_env_vars() -> None:
    msg = err_no_api_key("openai", "OPENAI_API_KEY")
    assert "'openai'" in msg
    assert "ROWLINK_EMBEDDING_API_KEY" in msg
    assert "OPENAI_API_KEY" in msg


def test_err_no_db_suggests_init() -> None:
    msg = err_no_db("data/store.db")
    assert "data/store.db" in msg
    assert "rowlink init" in msg


def test_err_config_includes_message() -> None:
    assert "ingest.batch_size must be >= 1" in err_config("ingest.batch_size must be >= 1, got 0")


def test_err_embedding_model_mismatch() -> None:
    msg = err_embedding_model_mismatch("openai/a", 1024, "openai/b", 768)
    assert "openai/a (1024 dims)" in msg
    assert "openai/b (768 dims)" in msg


def test_err_files_need_kind() -> None:
    assert "--kind sources" in err_files_need_kind()


def test_err_match_failed_says_rerun() -> None:
    msg = err_match_failed(RuntimeError("database is locked"))
    assert "database is locked" in msg
    assert "rowlink match" in msg


def test_warn_missing_file() -> None:
    assert warn_missing_file("SOURCES", "a.csv") == (
        "[SOURCES] [yellow]File a.csv does not exist, skipping[/]"
    )


def test_warn_missing_value_column_points_at_config_key() -> None:
    msg = warn_missing_value_column("TARGETS", "t.csv", "name")
    assert "'name'" in msg
    assert "ingest.targets.value_column" in msg


def test_warn_quarantined_gives_reingest_command() -> None:
    msg = warn_quarantined("SOURCES", 3, "q/s.failed.csv", "q/s.failed.json")
    assert "3 rows quarantined" in msg
    assert "rowlink ingest --kind sources --skip-rows 0 --file q/s.failed.csv" in msg
    assert "q/s.failed.json" in msg
