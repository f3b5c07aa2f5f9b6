"""Fixtures for CLI tests: an isolated project directory and a fake provider."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

VECTORS: dict[str, list[float]] = {
    "cat": [1.0, 0.0, 0.0],
    "dog": [0.0, 1.0, 0.0],
    "kitten": [0.9, 0.1, 0.0],
    "puppy": [0.1, 0.9, 0.0],
}

PROJECT_YAML = """\
embedding:
  model: openai/text-embedding-3-small
  dimensions: 3
ingest:
  namespace_column: ns
  sources:
    files: [sources.csv]
    value_column: text
  targets:
    files: [targets.csv]
    value_column: text
"""


def fake_embedding(**kwargs) -> MagicMock:
    response = MagicMock()
    response.data = [
        {"embedding": VECTORS.get(v, [float(len(v)), 1.0, 1.0])} for v in kwargs["input"]
    ]
    return response


@pytest.fixture
def project(tmp_path: Path, monkeypatch) -> Path:
    """Empty project dir as CWD with rowlink.yaml, no global config, and a test key."""
    for name in list(os.environ):
        if name.startswith("ROWLINK_"):
            monkeypatch.delenv(name)
    monkeypatch.setenv("ROWLINK_EMBEDDING_API_KEY", "sk-test")
    monkeypatch.setattr("rowlink.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    monkeypatch.chdir(tmp_path)
    (tmp_path / "rowlink.yaml").write_text(PROJECT_YAML, encoding="utf-8")
    return tmp_path


@pytest.fixture
def embedding_mock():
    with patch(
        "rowlink.ingest.embedder.litellm.embedding", side_effect=fake_embedding
    ) as mock_e:
        yield mock_e
