"""In-process embedding cache keyed by normalized value."""

from __future__ import annotations


class EmbeddingCache:
    """Value → embedding mapping for the lifetime of one pipeline run.

    Unbounded and never evicted. Use one instance per dataset kind: values are
    only looked up in the table they were written to.

    Counters are maintained by the pipeline. ``hits`` (served from memory) and
    ``store_hits`` (found in the store, then cached) count rows; ``misses``
    counts values sent to the embedder.
    """

    def __init__(self) -> None:
        self._vectors: dict[str, list[float]] = {}
        self.hits = 0
        self.store_hits = 0
        self.misses = 0

    def __contains__(self, value: object) -> bool:
        return value in self._vectors

    def __len__(self) -> int:
        return len(self._vectors)

    def get(self, value: str) -> list[float] | None:
        return self._vectors.get(value)

    def put(self, value: str, vector: list[float]) -> None:
        self._vectors[value] = vector

    @property
    def lookups(self) -> int:
        return self.hits + self.store_hits + self.misses

    @property
    def hit_ratio(self) -> float:
        """Share of lookups that avoided an embedder call (0.0 when unused)."""
        total = self.lookups
        return (self.hits + self.store_hits) / total if total else 0.0
