"""Key/value backends for local draft persistence.

Both backends store opaque strings under a key and raise DraftStorageError
for any failure, so the persistence layer handles one exception type.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from questionnaire_engine.db.migrations_runner import apply_migrations
from questionnaire_engine.errors import DraftStorageError

logger = logging.getLogger(__name__)


class DraftStorage(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryDraftStorage:
    """Process-local store. `quota_bytes` simulates a size-limited browser store."""

    def __init__(self, quota_bytes: int | None = None) -> None:
        self.items: Dict[str, str] = {}
        self.quota_bytes = quota_bytes
        self.disabled = False

    def _check(self) -> None:
        if self.disabled:
            raise DraftStorageError("storage disabled")

    def get(self, key: str) -> Optional[str]:
        self._check()
        return self.items.get(key)

    def set(self, key: str, value: str) -> None:
        self._check()
        if self.quota_bytes is not None:
            used = sum(len(v.encode("utf-8")) for k, v in self.items.items() if k != key)
            if used + len(value.encode("utf-8")) > self.quota_bytes:
                raise DraftStorageError("quota exceeded")
        self.items[key] = value

    def delete(self, key: str) -> None:
        self._check()
        self.items.pop(key, None)


class SqlDraftStorage:
    """SQLAlchemy-backed store using the `local_draft` table."""

    def __init__(self, engine: Engine, *, migrate: bool = True) -> None:
        self._engine = engine
        if migrate:
            try:
                apply_migrations(engine)
            except SQLAlchemyError as e:
                logger.error("draft_store_migration_failed", exc_info=True)
                raise DraftStorageError(f"draft store unavailable: {e}") from e

    def get(self, key: str) -> Optional[str]:
        try:
            with self._engine.connect() as conn:
                row = conn.execute(
                    sql_text("SELECT payload FROM local_draft WHERE draft_key = :k"), {"k": key}
                ).fetchone()
        except SQLAlchemyError as e:
            raise DraftStorageError(f"read failed for {key}: {e}") from e
        return str(row[0]) if row else None

    def set(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")
        try:
            with self._engine.begin() as conn:
                conn.execute(
                    sql_text(
                        """
                        INSERT INTO local_draft (draft_key, payload, updated_at)
                        VALUES (:k, :p, :at)
                        ON CONFLICT (draft_key) DO UPDATE
                        SET payload = excluded.payload, updated_at = excluded.updated_at
                        """
                    ),
                    {"k": key, "p": value, "at": now},
                )
        except SQLAlchemyError as e:
            raise DraftStorageError(f"write failed for {key}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            with self._engine.begin() as conn:
                conn.execute(sql_text("DELETE FROM local_draft WHERE draft_key = :k"), {"k": key})
        except SQLAlchemyError as e:
            raise DraftStorageError(f"delete failed for {key}: {e}") from e


__all__ = ["DraftStorage", "InMemoryDraftStorage", "SqlDraftStorage"]
