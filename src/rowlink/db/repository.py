"""Repository pattern for all rowlink store operations.

Single interface for: dataset rows (sources/targets), embedding point lookups,
nearest-source search, match assignment, and store metadata. Vector distance
is computed by sqlite-vec's ``vec_distance_cosine()``.
"""

from __future__ import annotations

import json
import sqlite3

import sqlite_vec

from rowlink.db.models import (
    DatasetKind,
    MatchCandidate,
    NamespaceStats,
    NewRow,
    StoredRow,
)

_META_MODEL = "embedding_model"
_META_DIMENSIONS = "embedding_dimensions"


class StoreMismatchError(RuntimeError):
    """The store holds embeddings from a different model or dimension."""

    def __init__(self, db_model: str, db_dims: int, model: str, dims: int) -> None:
        super().__init__(
            f"store uses {db_model} ({db_dims} dims), config has {model} ({dims} dims)"
        )
        self.db_model = db_model
        self.db_dims = db_dims
        self.model = model
        self.dims = dims


_NEAREST_SQL = """
SELECT target_id, source_id, distance FROM (
    SELECT target_id, source_id, distance,
           ROW_NUMBER() OVER (
               PARTITION BY target_id ORDER BY distance, source_id
           ) AS rn
    FROM (
        SELECT t.id AS target_id,
               s.id AS source_id,
               vec_distance_cosine(t.embedding, s.embedding) AS distance
        FROM targets t
        JOIN sources s ON s.namespace = t.namespace
        WHERE t.id IN (SELECT value FROM json_each(?))
    )
    WHERE distance IS NOT NULL
)
WHERE rn = 1
ORDER BY target_id
"""


class Repository:
    """Data access layer for the rowlink store.

    Wraps an open sqlite3.Connection (sqlite-vec loaded, schema initialised
    via rowlink.db.schema.initialize). The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------

    def add_row(self, kind: DatasetKind, row: NewRow) -> int:
        """Insert one row and return its store-assigned id."""
        cur = self._conn.execute(
            f"INSERT INTO {kind.table} (namespace, data, value, embedding) VALUES (?, ?, ?, ?)",
            _row_params(row),
        )
        self._conn.commit()
        return cur.lastrowid

    def add_rows(self, kind: DatasetKind, rows: list[NewRow]) -> int:
        """Insert *rows* in a single transaction. All or nothing.

        Returns:
            Number of rows inserted.
        """
        if not rows:
            return 0
        with self._conn:
            self._conn.executemany(
                f"INSERT INTO {kind.table} (namespace, data, value, embedding) VALUES (?, ?, ?, ?)",
                [_row_params(r) for r in rows],
            )
        return len(rows)

    def get_row(self, kind: DatasetKind, row_id: int) -> StoredRow | None:
        """Return a stored row by id, or None if not found."""
        extra = ", matched_source_id, similarity" if kind is DatasetKind.TARGETS else ""
        row = self._conn.execute(
            f"SELECT id, namespace, data, value, vec_to_json(embedding) AS embedding{extra} "
            f"FROM {kind.table} WHERE id = ?",
            (row_id,),
        ).fetchone()
        return _to_stored_row(row) if row else None

    def get_embedding(self, kind: DatasetKind, value: str) -> list[float] | None:
        """Point lookup: embedding of any stored row whose value equals *value*.

        Uses the plain index on ``value``. Returns None if no such row exists.
        """
        row = self._conn.execute(
            f"SELECT vec_to_json(embedding) FROM {kind.table} WHERE value = ? LIMIT 1",
            (value,),
        ).fetchone()
        return json.loads(row[0]) if row else None

    def count_rows(self, kind: DatasetKind, namespace: str | None = None) -> int:
        """Return the number of rows in *kind*'s table, optionally per namespace."""
        if namespace is None:
            return self._conn.execute(f"SELECT COUNT(*) FROM {kind.table}").fetchone()[0]
        return self._conn.execute(
            f"SELECT COUNT(*) FROM {kind.table} WHERE namespace = ?", (namespace,)
        ).fetchone()[0]

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def count_unmatched_targets(self) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM targets WHERE matched_source_id IS NULL"
        ).fetchone()[0]

    def count_matchable_targets(self) -> int:
        """Unmatched targets whose namespace holds at least one source."""
        return self._conn.execute(
            """
            SELECT COUNT(*) FROM targets t
            WHERE t.matched_source_id IS NULL
              AND EXISTS (SELECT 1 FROM sources s WHERE s.namespace = t.namespace)
            """
        ).fetchone()[0]

    def select_unmatched_targets(self, limit: int) -> list[int]:
        """Return up to *limit* unmatched target ids, lowest id first.

        Targets in a namespace without any source are skipped; they can never
        be matched and would otherwise occupy every slot of a batch.
        """
        rows = self._conn.execute(
            """
            SELECT t.id FROM targets t
            WHERE t.matched_source_id IS NULL
              AND EXISTS (SELECT 1 FROM sources s WHERE s.namespace = t.namespace)
            ORDER BY t.id
            LIMIT ?
            """,
            (limit,),
        ).fetchall()
        return [r[0] for r in rows]

    def nearest_sources(self, target_ids: list[int]) -> list[MatchCandidate]:
        """Nearest same-namespace source per target by cosine distance.

        Exactly one candidate per target that has any source in its namespace.
        Zero-norm vectors have no cosine distance and never match.
        Equidistant sources are broken by the lowest source id.
        """
        if not target_ids:
            return []
        rows = self._conn.execute(_NEAREST_SQL, (json.dumps(target_ids),)).fetchall()
        return [
            MatchCandidate(
                target_id=r["target_id"],
                source_id=r["source_id"],
                distance=r["distance"],
            )
            for r in rows
        ]

    def apply_matches(self, candidates: list[MatchCandidate]) -> int:
        """Set matched_source_id + similarity for every candidate in one transaction.

        Already-matched targets are left untouched.

        Returns:
            Number of targets updated.
        """
        if not candidates:
            return 0
        with self._conn:
            cur = self._conn.executemany(
                """
                UPDATE targets
                SET matched_source_id = ?, similarity = ?
                WHERE id = ? AND matched_source_id IS NULL
                """,
                [(c.source_id, c.similarity, c.target_id) for c in candidates],
            )
        return cur.rowcount

    def tune_for_matching(self, cache_size_mb: int = 1024) -> None:
        """Enlarge the page cache and keep temp sorts in memory for this session."""
        self._conn.execute(f"PRAGMA cache_size = {-int(cache_size_mb) * 1024}")
        self._conn.execute("PRAGMA temp_store = MEMORY")
        self._conn.execute(f"PRAGMA mmap_size = {int(cache_size_mb) * 1024 * 1024}")

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def namespace_stats(self) -> list[NamespaceStats]:
        """Per-namespace source/target/match counts, ordered by namespace."""
        stats: dict[str, NamespaceStats] = {}
        for r in self._conn.execute(
            "SELECT namespace, COUNT(*) FROM sources GROUP BY namespace"
        ).fetchall():
            stats[r[0]] = NamespaceStats(namespace=r[0], sources=r[1])
        for r in self._conn.execute(
            """
            SELECT namespace, COUNT(*), COUNT(matched_source_id), AVG(similarity)
            FROM targets GROUP BY namespace
            """
        ).fetchall():
            ns = stats.setdefault(r[0], NamespaceStats(namespace=r[0]))
            ns.targets = r[1]
            ns.matched = r[2]
            ns.avg_similarity = r[3]
        return [stats[k] for k in sorted(stats)]

    # ------------------------------------------------------------------
    # Store metadata
    # ------------------------------------------------------------------

    def get_meta(self, key: str) -> str | None:
        row = self._conn.execute(
            "SELECT value FROM store_meta WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set_meta(self, key: str, value: str) -> None:
        self._conn.execute(
            """
            INSERT INTO store_meta (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            (key, value),
        )
        self._conn.commit()

    def embedding_model(self) -> tuple[str, int] | None:
        """(model, dimensions) the store was populated with, or None if empty."""
        model = self.get_meta(_META_MODEL)
        dims = self.get_meta(_META_DIMENSIONS)
        if model is None or dims is None:
            return None
        return model, int(dims)

    def ensure_embedding_model(self, model: str, dimensions: int) -> None:
        """Record *model*/*dimensions* on first use; refuse a different pair later.

        Raises:
            StoreMismatchError: If the store was populated with another model
                or dimension.
        """
        stored_model = self.get_meta(_META_MODEL)
        stored_dims = self.get_meta(_META_DIMENSIONS)
        if stored_model is None or stored_dims is None:
            self.set_meta(_META_MODEL, model)
            self.set_meta(_META_DIMENSIONS, str(dimensions))
            return
        if stored_model != model or int(stored_dims) != dimensions:
            raise StoreMismatchError(stored_model, int(stored_dims), model, dimensions)


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_params(row: NewRow) -> tuple:
    return (
        row.namespace,
        row.data_json,
        row.value,
        sqlite_vec.serialize_float32(row.embedding),
    )


def _to_stored_row(row: sqlite3.Row) -> StoredRow:
    keys = row.keys()
    return StoredRow(
        id=row["id"],
        namespace=row["namespace"],
        data=json.loads(row["data"]),
        value=row["value"],
        embedding=json.loads(row["embedding"]),
        matched_source_id=row["matched_source_id"] if "matched_source_id" in keys else None,
        similarity=row["similarity"] if "similarity" in keys else None,
    )
