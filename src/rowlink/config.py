"""rowlink configuration loader.

Priority (high → low):
  1. CLI flags           (applied by the caller, not in this module)
  2. Environment variables  (ROWLINK_*)
  3. Per-project rowlink.yaml  (current directory)
  4. Global ~/.rowlink/config.yaml  (model defaults only, no API keys)
  5. Hardcoded defaults

Config files must never contain API keys; use ROWLINK_EMBEDDING_API_KEY or the
provider's own environment variable instead.
All YAML reads use yaml.safe_load(), never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from rowlink.db.models import DatasetKind

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".rowlink"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
PROJECT_CONFIG_NAME: str = "rowlink.yaml"

# Does NOT match legitimate keys like batch_size, max_tokens, value_column.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(["database", "embedding", "ingest", "match"])

_SUPPORTED_DISTANCES: frozenset[str] = frozenset(["cosine"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file or env var contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class DatabaseCfg:
    """Store location (rowlink.yaml: database:)."""

    path: str = ".rowlink.db"


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (rowlink.yaml: embedding:).

    Attributes:
        model: LiteLLM model string, e.g. ``openai/text-embedding-3-small``.
        dimensions: Fixed vector length every stored embedding must have.
        api_base: Base URL of an OpenAI-compatible provider (optional).
        batch_size: Maximum values sent in one provider request.
        num_retries: Bounded retry count for transient provider errors.
        timeout: Per-request timeout in seconds.
    """

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1024
    api_base: str | None = None
    batch_size: int = 256
    num_retries: int = 1
    timeout: float = 60.0


@dataclass
class DatasetCfg:
    """Input files and embedded column for one dataset kind."""

    files: list[str] = field(default_factory=list)
    value_column: str = "value"


@dataclass
class IngestCfg:
    """Ingestion pipeline configuration (rowlink.yaml: ingest:)."""

    namespace_column: str | None = None
    skip_rows: int = 0
    batch_size: int = 1_000
    quarantine_dir: str = "quarantine"
    sources: DatasetCfg = field(default_factory=lambda: DatasetCfg(files=["sources.csv"]))
    targets: DatasetCfg = field(default_factory=lambda: DatasetCfg(files=["targets.csv"]))

    def dataset(self, kind: DatasetKind) -> DatasetCfg:
        return self.sources if kind is DatasetKind.SOURCES else self.targets


@dataclass
class MatchCfg:
    """Matcher configuration (rowlink.yaml: match:)."""

    batch_size: int = 10_000
    tune_session: bool = True
    cache_size_mb: int = 1_024
    distance: str = "cosine"


@dataclass
class RowlinkConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    database: DatabaseCfg = field(default_factory=DatabaseCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    ingest: IngestCfg = field(default_factory=IngestCfg)
    match: MatchCfg = field(default_factory=MatchCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export ROWLINK_EMBEDDING_API_KEY=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: RowlinkConfig) -> None:
    """Raise ConfigError on values the pipeline cannot run with."""
    positives = {
        "embedding.dimensions": cfg.embedding.dimensions,
        "embedding.batch_size": cfg.embedding.batch_size,
        "ingest.batch_size": cfg.ingest.batch_size,
        "match.batch_size": cfg.match.batch_size,
    }
    for name, value in positives.items():
        if value < 1:
            raise ConfigError(f"{name} must be >= 1, got {value}")
    if cfg.ingest.skip_rows < 0:
        raise ConfigError(f"ingest.skip_rows must be >= 0, got {cfg.ingest.skip_rows}")
    if cfg.embedding.num_retries < 0:
        raise ConfigError(
            f"embedding.num_retries must be >= 0, got {cfg.embedding.num_retries}"
        )
    if cfg.match.distance not in _SUPPORTED_DISTANCES:
        raise ConfigError(
            f"match.distance '{cfg.match.distance}' is not supported "
            f"(supported: {', '.join(sorted(_SUPPORTED_DISTANCES))})"
        )
    for kind in DatasetKind:
        if not cfg.ingest.dataset(kind).value_column.strip():
            raise ConfigError(f"ingest.{kind.value}.value_column must not be empty")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _as_list(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return [str(x) for x in raw]
    return [str(raw)]


def _parse_dataset(raw: dict[str, Any], defaults: DatasetCfg) -> DatasetCfg:
    return DatasetCfg(
        files=_as_list(raw["files"]) if "files" in raw else list(defaults.files),
        value_column=str(raw.get("value_column", defaults.value_column)),
    )


def _cfg_from_dict(data: dict[str, Any]) -> RowlinkConfig:
    """Build a *RowlinkConfig* from a merged raw YAML dict."""
    cfg = RowlinkConfig()

    try:
        if "database" in data:
            d = data["database"] or {}
            cfg.database = DatabaseCfg(path=str(d.get("path", cfg.database.path)))

        if "embedding" in data:
            e = data["embedding"] or {}
            cfg.embedding = EmbeddingCfg(
                model=str(e.get("model", cfg.embedding.model)),
                dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
                api_base=e.get("api_base") or cfg.embedding.api_base,
                batch_size=int(e.get("batch_size", cfg.embedding.batch_size)),
                num_retries=int(e.get("num_retries", cfg.embedding.num_retries)),
                timeout=float(e.get("timeout", cfg.embedding.timeout)),
            )

        if "ingest" in data:
            i = data["ingest"] or {}
            cfg.ingest = IngestCfg(
                namespace_column=i.get("namespace_column") or cfg.ingest.namespace_column,
                skip_rows=int(i.get("skip_rows", cfg.ingest.skip_rows)),
                batch_size=int(i.get("batch_size", cfg.ingest.batch_size)),
                quarantine_dir=str(i.get("quarantine_dir", cfg.ingest.quarantine_dir)),
                sources=_parse_dataset(i.get("sources") or {}, cfg.ingest.sources),
                targets=_parse_dataset(i.get("targets") or {}, cfg.ingest.targets),
            )

        if "match" in data:
            m = data["match"] or {}
            cfg.match = MatchCfg(
                batch_size=int(m.get("batch_size", cfg.match.batch_size)),
                tune_session=bool(m.get("tune_session", cfg.match.tune_session)),
                cache_size_mb=int(m.get("cache_size_mb", cfg.match.cache_size_mb)),
                distance=str(m.get("distance", cfg.match.distance)).lower(),
            )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    return cfg


def _env_int(name: str) -> int | None:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got '{raw}'") from None


def _apply_env_overrides(cfg: RowlinkConfig) -> RowlinkConfig:
    """Apply ROWLINK_* environment variable overrides."""
    if path := os.environ.get("ROWLINK_DB"):
        cfg.database.path = path
    if model := os.environ.get("ROWLINK_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if api_base := os.environ.get("ROWLINK_EMBEDDING_API_BASE"):
        cfg.embedding.api_base = api_base
    if (dims := _env_int("ROWLINK_EMBEDDING_DIMENSIONS")) is not None:
        cfg.embedding.dimensions = dims
    if column := os.environ.get("ROWLINK_NAMESPACE_COLUMN"):
        cfg.ingest.namespace_column = column
    if column := os.environ.get("ROWLINK_SOURCE_COLUMN"):
        cfg.ingest.sources.value_column = column
    if column := os.environ.get("ROWLINK_TARGET_COLUMN"):
        cfg.ingest.targets.value_column = column
    if (skip := _env_int("ROWLINK_SKIP_ROWS")) is not None:
        cfg.ingest.skip_rows = skip
    if (size := _env_int("ROWLINK_INGEST_BATCH_SIZE")) is not None:
        cfg.ingest.batch_size = size
    if (size := _env_int("ROWLINK_MATCH_BATCH_SIZE")) is not None:
        cfg.match.batch_size = size
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> RowlinkConfig:
    """Load and return a merged *RowlinkConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *rowlink.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If a config file contains API-key-like fields or any
            value is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    for path in (global_path, search_dir / PROJECT_CONFIG_NAME):
        if path.exists():
            raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
            if not isinstance(raw, dict):
                raise ConfigError(f"Config '{path}' must be a YAML mapping.")
            _check_no_api_keys(raw, path)
            _warn_unknown_keys(raw, path)
            merged = _deep_merge(merged, raw)

    cfg = _apply_env_overrides(_cfg_from_dict(merged))
    _validate(cfg)
    return cfg


def validate_config(cfg: RowlinkConfig) -> RowlinkConfig:
    """Re-run range validation after CLI flag overrides; returns *cfg*."""
    _validate(cfg)
    return cfg


def write_project_config(project_dir: Path) -> Path | None:
    """Write a commented ``rowlink.yaml`` template if none exists.

    Returns:
        The path written, or None if a config already existed.
    """
    target = project_dir / PROJECT_CONFIG_NAME
    if target.exists():
        return None
    content = (
        "# rowlink project configuration.\n"
        "# NEVER store API keys here — use environment variables:\n"
        "#   export ROWLINK_EMBEDDING_API_KEY=...\n"
        "\n"
        "database:\n"
        "  path: .rowlink.db\n"
        "\n"
        "embedding:\n"
        "  model: openai/text-embedding-3-small\n"
        "  dimensions: 1024\n"
        "  # api_base: https://my-provider.example/v1\n"
        "\n"
        "ingest:\n"
        "  # namespace_column: category\n"
        "  skip_rows: 0\n"
        "  batch_size: 1000\n"
        "  quarantine_dir: quarantine\n"
        "  sources:\n"
        "    files: [sources.csv]\n"
        "    value_column: value\n"
        "  targets:\n"
        "    files: [targets.csv]\n"
        "    value_column: value\n"
        "\n"
        "match:\n"
        "  batch_size: 10000\n"
    )
    target.write_text(content, encoding="utf-8")
    return target
