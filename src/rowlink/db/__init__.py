"""rowlink store layer."""

from rowlink.db.connection import Database
from rowlink.db.migrations import MIGRATIONS, run_migrations
from rowlink.db.models import DatasetKind, MatchCandidate, NewRow, StoredRow
from rowlink.db.repository import Repository, StoreMismatchError
from rowlink.db.schema import initialize

__all__ = [
    "Database",
    "DatasetKind",
    "MatchCandidate",
    "MIGRATIONS",
    "NewRow",
    "Repository",
    "StoredRow",
    "StoreMismatchError",
    "initialize",
    "run_migrations",
]
