"""Domain models for the rowlink store."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum

DEFAULT_NAMESPACE = "default"


class DatasetKind(str, Enum):
    """The two dataset kinds; each maps to one table of the same name."""

    SOURCES = "sources"
    TARGETS = "targets"

    @property
    def table(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        """Console prefix, e.g. ``SOURCES``."""
        return self.value.upper()


@dataclass
class NewRow:
    """A validated CSV row with its resolved embedding, ready for insert."""

    namespace: str
    data: dict[str, str]
    value: str
    embedding: list[float]

    @property
    def data_json(self) -> str:
        return json.dumps(self.data, ensure_ascii=False)


@dataclass
class StoredRow:
    id: int
    namespace: str
    value: str
    embedding: list[float]
    data: dict[str, str] = field(default_factory=dict)
    matched_source_id: int | None = None  # targets only
    similarity: float | None = None  # targets only

    @property
    def is_matched(self) -> bool:
        return self.matched_source_id is not None


@dataclass
class MatchCandidate:
    """Nearest same-namespace source for one target."""

    target_id: int
    source_id: int
    distance: float

    @property
    def similarity(self) -> float:
        """``1 - cosine distance``, clamped to [0, 1]."""
        return max(0.0, min(1.0, 1.0 - self.distance))


@dataclass
class NamespaceStats:
    namespace: str
    sources: int = 0
    targets: int = 0
    matched: int = 0
    avg_similarity: float | None = None

    @property
    def unmatched(self) -> int:
        return self.targets - self.matched
