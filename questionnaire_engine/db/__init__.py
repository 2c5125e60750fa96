"""Database bootstrap utilities for the local draft store.

Exposes engine construction and the migrations runner that creates the
key/value table used by `SqlDraftStorage`.
"""

from questionnaire_engine.db.base import dispose_engines, get_engine, new_engine
from questionnaire_engine.db.migrations_runner import apply_migrations

__all__ = [
    "get_engine",
    "new_engine",
    "dispose_engines",
    "apply_migrations",
]
