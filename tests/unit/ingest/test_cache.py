"""Tests for EmbeddingCache."""

from __future__ import annotations

from rowlink.ingest.cache import EmbeddingCache


def test_empty_cache():
    cache = EmbeddingCache()
    assert len(cache) == 0
    assert "cat" not in cache
    assert cache.get("cat") is None
    assert cache.hit_ratio == 0.0


def test_put_then_get():
    cache = EmbeddingCache()
    cache.put("cat", [0.1, 0.2])
    assert "cat" in cache
    assert cache.get("cat") == [0.1, 0.2]
    assert len(cache) == 1


def test_get_leaves_counters_alone():
    cache = EmbeddingCache()
    cache.get("missing")
    cache.put("cat", [1.0])
    cache.get("cat")
    assert cache.lookups == 0


def test_keys_are_exact_strings():
    cache = EmbeddingCache()
    cache.put("cat", [1.0])
    assert cache.get("Cat") is None
    assert cache.get(" cat") is None


def test_hit_ratio_counts_store_hits_as_reuse():
    cache = EmbeddingCache()
    cache.hits = 2
    cache.store_hits = 1
    cache.misses = 1
    assert cache.lookups == 4
    assert cache.hit_ratio == 0.75


def test_never_evicts():
    cache = EmbeddingCache()
    for i in range(5_000):
        cache.put(f"v{i}", [float(i)])
    assert len(cache) == 5_000
    assert cache.get("v0") == [0.0]
