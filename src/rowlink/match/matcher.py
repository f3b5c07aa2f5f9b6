"""Resumable nearest-source matcher.

Each round selects up to ``batch_size`` unmatched targets (lowest id first),
finds the nearest same-namespace source for each, and records
``matched_source_id`` + ``similarity`` for the whole round in one transaction.
Matched targets drop out of later selections, so an interrupted run resumes
from whatever is still unmatched. Store errors are not caught here.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from rowlink.db.repository import Repository


@dataclass
class MatchRound:
    """Progress after one round, passed to the ``on_round`` callback."""

    number: int
    updated: int
    processed: int
    total: int
    elapsed: float

    @property
    def rate(self) -> float:
        return self.updated / self.elapsed if self.elapsed > 0 else 0.0

    @property
    def progress(self) -> float:
        return self.processed / self.total * 100 if self.total else 100.0


@dataclass
class MatchReport:
    total: int
    processed: int = 0
    rounds: int = 0
    elapsed: float = 0.0
    unmatched: int = 0

    @property
    def rate(self) -> float:
        return self.processed / self.elapsed if self.elapsed > 0 else 0.0


class Matcher:
    """Assign every unmatched target its nearest source within its namespace.

    Args:
        repo: Open Repository.
        batch_size: Targets resolved per round-trip to the store.
        tune: Apply session tuning (page cache, temp store) before the loop.
        cache_size_mb: Page cache size used when *tune* is set.
        on_round: Called after each round that made progress.
    """

    def __init__(
        self,
        repo: Repository,
        batch_size: int = 10_000,
        tune: bool = True,
        cache_size_mb: int = 1_024,
        on_round: Callable[[MatchRound], None] | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._repo = repo
        self.batch_size = batch_size
        self.tune = tune
        self.cache_size_mb = cache_size_mb
        self._on_round = on_round

    def run(self) -> MatchReport:
        """Match until nothing is left or a round makes no progress."""
        if self.tune:
            self._repo.tune_for_matching(self.cache_size_mb)

        total = self._repo.count_unmatched_targets()
        report = MatchReport(total=total)
        if total == 0:
            return report

        started = time.perf_counter()
        while report.processed < total:
            round_ = self._process_batch(report.rounds + 1, report.processed, total)
            if round_.updated == 0:
                break
            report.rounds = round_.number
            report.processed = round_.processed
            if self._on_round is not None:
                self._on_round(round_)

        report.elapsed = time.perf_counter() - started
        report.unmatched = self._repo.count_unmatched_targets()
        return report

    def _process_batch(self, number: int, processed: int, total: int) -> MatchRound:
        started = time.perf_counter()
        target_ids = self._repo.select_unmatched_targets(self.batch_size)
        candidates = self._repo.nearest_sources(target_ids)
        updated = self._repo.apply_matches(candidates)
        return MatchRound(
            number=number,
            updated=updated,
            processed=processed + updated,
            total=total,
            elapsed=time.perf_counter() - started,
        )
