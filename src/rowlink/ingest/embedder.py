"""LiteLLM embedding client with timeout, bounded retry, and API key validation.

All embedding calls route through :class:`Embedder`. Large inputs are split
into provider requests of at most ``batch_size`` values; callers see a single
``embed()`` call returning one vector per input value, in input order.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace

import litellm

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]

API_KEY_ENV = "ROWLINK_EMBEDDING_API_KEY"

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "voyage": "VOYAGE_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "huggingface": None,
}


class MissingApiKeyError(EnvironmentError):
    """No API key is available for the embedding provider."""

    def __init__(self, provider: str, env_var: str) -> None:
        super().__init__(
            f"API key not found for provider '{provider}'. "
            f"Set {API_KEY_ENV} or the {env_var} environment variable."
        )
        self.provider = provider
        self.env_var = env_var


def provider_of(model: str) -> str:
    """Return the LiteLLM provider prefix of *model* (``openai`` if none)."""
    return model.split("/")[0].lower() if "/" in model else "openai"


def validate_api_key(model: str, api_key: str | None = None, api_base: str | None = None) -> None:
    """Check that a key is available for *model*.

    An explicit *api_key* always satisfies the check. A custom *api_base*
    without a key is allowed (self-hosted OpenAI-compatible servers).

    Raises:
        MissingApiKeyError: If the provider's key env var is missing.
    """
    if api_key or api_base:
        return
    provider = provider_of(model)
    env_var = _PROVIDER_ENV.get(provider, f"{provider.upper()}_API_KEY")
    if env_var is None:
        return
    if not os.getenv(env_var):
        raise MissingApiKeyError(provider, env_var)


@dataclass
class EmbeddingConfig:
    """Configuration for embedding generation."""

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1024
    api_base: str | None = None
    api_key: str | None = None
    batch_size: int = 256
    num_retries: int = 1
    timeout: float = 60.0


class Embedder:
    """Turn lists of text values into fixed-dimension vectors via LiteLLM.

    Args:
        config: Model, provider endpoint, and request limits.
    """

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        config = config or EmbeddingConfig()
        if config.api_key is None:
            config = replace(config, api_key=os.environ.get(API_KEY_ENV) or None)
        self._config = config
        self._validated = False

    @property
    def model(self) -> str:
        return self._config.model

    @property
    def dimensions(self) -> int:
        return self._config.dimensions

    @property
    def api_key(self) -> str | None:
        return self._config.api_key

    def embed(self, values: list[str]) -> list[list[float]]:
        """Embed *values*; returns one vector per value, same order.

        Raises:
            MissingApiKeyError: On the first call if no key is configured.
            litellm.exceptions.APIError: On persistent provider failure after retries.
        """
        if not values:
            return []
        if not self._validated:
            validate_api_key(self._config.model, self._config.api_key, self._config.api_base)
            self._validated = True

        size = self._config.batch_size
        vectors: list[list[float]] = []
        for start in range(0, len(values), size):
            vectors.extend(self._request(values[start : start + size]))
        return vectors

    def _request(self, values: list[str]) -> list[list[float]]:
        kwargs: dict = {
            "model": self._config.model,
            "input": values,
            "dimensions": self._config.dimensions,
            "num_retries": self._config.num_retries,
            "timeout": self._config.timeout,
        }
        if self._config.api_base:
            kwargs["api_base"] = self._config.api_base
        if self._config.api_key:
            kwargs["api_key"] = self._config.api_key
        response = litellm.embedding(**kwargs)
        return [item["embedding"] for item in response.data]
