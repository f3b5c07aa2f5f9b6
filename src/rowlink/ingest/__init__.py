"""rowlink ingest pipeline — CSV reading, embedding cache, embedder client, quarantine."""

from rowlink.ingest.cache import EmbeddingCache
from rowlink.ingest.embedder import Embedder, EmbeddingConfig
from rowlink.ingest.pipeline import (
    BatchResult,
    EmbeddingCountMismatch,
    EmbeddingDimensionError,
    FileReport,
    IngestionPipeline,
    MalformedLineError,
    ZeroEmbeddingError,
)
from rowlink.ingest.quarantine import BatchFailure, Quarantine

__all__ = [
    "BatchFailure",
    "BatchResult",
    "Embedder",
    "EmbeddingCache",
    "EmbeddingConfig",
    "EmbeddingCountMismatch",
    "EmbeddingDimensionError",
    "FileReport",
    "IngestionPipeline",
    "MalformedLineError",
    "Quarantine",
    "ZeroEmbeddingError",
]
