"""Tests for the LiteLLM embedding client."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from rowlink.ingest.embedder import (
    API_KEY_ENV,
    Embedder,
    EmbeddingConfig,
    MissingApiKeyError,
    provider_of,
    validate_api_key,
)


def _response(vectors: list[list[float]]) -> MagicMock:
    response = MagicMock()
    response.data = [{"embedding": v} for v in vectors]
    return response


def _echo_embedding(**kwargs):
    """Fake litellm.embedding: one 3-d vector per input, derived from its length."""
    return _response([[float(len(v)), 0.0, 1.0] for v in kwargs["input"]])


@pytest.fixture(autouse=True)
def _no_rowlink_key(monkeypatch):
    monkeypatch.delenv(API_KEY_ENV, raising=False)


# ------------------------------------------------------------------
# Provider / key validation
# ------------------------------------------------------------------

@pytest.mark.parametrize("model,provider", [
    ("openai/text-embedding-3-small", "openai"),
    ("Cohere/embed-english-v3.0", "cohere"),
    ("text-embedding-3-small", "openai"),
    ("ollama/nomic-embed-text", "ollama"),
])
def test_provider_of(model, provider):
    assert provider_of(model) == provider


def test_validate_api_key_raises_if_missing(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(MissingApiKeyError) as exc_info:
        validate_api_key("openai/text-embedding-3-small")
    assert exc_info.value.provider == "openai"
    assert exc_info.value.env_var == "OPENAI_API_KEY"


def test_validate_api_key_passes_if_set(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key")
    validate_api_key("openai/text-embedding-3-small")


def test_validate_api_key_explicit_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    validate_api_key("openai/text-embedding-3-small", api_key="sk-explicit")


def test_validate_api_key_custom_base_needs_no_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    validate_api_key("openai/bge-m3", api_base="http://localhost:8080/v1")


def test_validate_api_key_local_provider():
    validate_api_key("ollama/nomic-embed-text")


def test_validate_api_key_unknown_provider(monkeypatch):
    monkeypatch.delenv("ACME_API_KEY", raising=False)
    with pytest.raises(MissingApiKeyError, match="ACME_API_KEY"):
        validate_api_key("acme/embed-1")


# ------------------------------------------------------------------
# Embedder
# ------------------------------------------------------------------

def test_embedder_defaults():
    embedder = Embedder()
    assert embedder.model == "openai/text-embedding-3-small"
    assert embedder.dimensions == 1024


def test_embedder_reads_key_from_env(monkeypatch):
    monkeypatch.setenv(API_KEY_ENV, "sk-rowlink")
    assert Embedder().api_key == "sk-rowlink"


def test_embedder_does_not_mutate_config(monkeypatch):
    monkeypatch.setenv(API_KEY_ENV, "sk-rowlink")
    cfg = EmbeddingConfig()
    embedder = Embedder(cfg)
    assert embedder.api_key == "sk-rowlink"
    assert cfg.api_key is None


def test_embed_empty_makes_no_call():
    with patch("rowlink.ingest.embedder.litellm.embedding") as mock_e:
        assert Embedder(EmbeddingConfig(api_key="k")).embed([]) == []
    mock_e.assert_not_called()


def test_embed_returns_one_vector_per_value_in_order():
    embedder = Embedder(EmbeddingConfig(api_key="k", dimensions=3))
    with patch("rowlink.ingest.embedder.litellm.embedding", side_effect=_echo_embedding):
        vectors = embedder.embed(["a", "bbb", "cc"])
    assert vectors == [[1.0, 0.0, 1.0], [3.0, 0.0, 1.0], [2.0, 0.0, 1.0]]


def test_embed_splits_into_provider_batches():
    embedder = Embedder(EmbeddingConfig(api_key="k", batch_size=2))
    with patch("rowlink.ingest.embedder.litellm.embedding", side_effect=_echo_embedding) as mock_e:
        vectors = embedder.embed(["a", "b", "c", "d", "e"])
    assert len(vectors) == 5
    assert [c.kwargs["input"] for c in mock_e.call_args_list] == [["a", "b"], ["c", "d"], ["e"]]


def test_embed_passes_request_limits():
    cfg = EmbeddingConfig(
        model="openai/bge-m3",
        api_key="sk-x",
        api_base="http://localhost:8080/v1",
        num_retries=3,
        timeout=5.0,
    )
    with patch(
        "rowlink.ingest.embedder.litellm.embedding", return_value=_response([[0.0]])
    ) as mock_e:
        Embedder(cfg).embed(["x"])
    kwargs = mock_e.call_args.kwargs
    assert kwargs["model"] == "openai/bge-m3"
    assert kwargs["num_retries"] == 3
    assert kwargs["timeout"] == 5.0
    assert kwargs["api_base"] == "http://localhost:8080/v1"
    assert kwargs["api_key"] == "sk-x"


def test_embed_requests_configured_dimensions():
    with patch(
        "rowlink.ingest.embedder.litellm.embedding", return_value=_response([[0.0]])
    ) as mock_e:
        Embedder(EmbeddingConfig(api_key="k")).embed(["x"])
        Embedder(EmbeddingConfig(api_key="k", dimensions=256)).embed(["y"])
    assert [c.kwargs["dimensions"] for c in mock_e.call_args_list] == [1024, 256]


def test_embed_omits_unset_endpoint(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    with patch(
        "rowlink.ingest.embedder.litellm.embedding", return_value=_response([[0.0]])
    ) as mock_e:
        Embedder().embed(["x"])
    assert "api_base" not in mock_e.call_args.kwargs
    assert "api_key" not in mock_e.call_args.kwargs


def test_embed_missing_key_raises_before_request(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with patch("rowlink.ingest.embedder.litellm.embedding") as mock_e:
        with pytest.raises(MissingApiKeyError):
            Embedder().embed(["x"])
    mock_e.assert_not_called()


def test_embed_propagates_provider_error():
    embedder = Embedder(EmbeddingConfig(api_key="k"))
    with patch(
        "rowlink.ingest.embedder.litellm.embedding", side_effect=RuntimeError("rate limited")
    ):
        with pytest.raises(RuntimeError, match="rate limited"):
            embedder.embed(["x"])
