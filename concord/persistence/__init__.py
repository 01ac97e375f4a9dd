"""Concord decision persistence layer.

Provides SQLite-backed storage for decisions, voter rosters, and votes,
with JSON export.
"""

from concord.persistence.database import close_db, init_db
from concord.persistence.export import export_json
from concord.persistence.store import DecisionStore

__all__ = [
    "DecisionStore",
    "close_db",
    "export_json",
    "init_db",
]
