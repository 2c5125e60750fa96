"""Durable local mirror of the Field Value Store.

One JSON DraftRecord per identity, stored under `DraftIdentity.storage_key()`
which embeds all three identity components. Loading validates the record and
clears the key when it is malformed, belongs to another identity, was written
by an incompatible schema version, or is older than the retention window.

Write failures never reach the caller: the first one switches this instance
into memory-only mode for the rest of the session.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from questionnaire_engine.errors import DraftIntegrityError, DraftStorageError
from questionnaire_engine.logic.answer_values import AnswerValue, non_empty_answers
from questionnaire_engine.logic.draft_storage import DraftStorage
from questionnaire_engine.models.draft import DraftIdentity, DraftMeta, DraftRecord, utcnow

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = timedelta(days=7)
DEFAULT_SCHEMA_VERSION = "2.0"

# Discard reasons
REASON_MALFORMED = "malformed"
REASON_IDENTITY_MISMATCH = "identity_mismatch"
REASON_SCHEMA_MISMATCH = "schema_version_mismatch"
REASON_EXPIRED = "expired"


class DraftPersistence:
    def __init__(
        self,
        storage: DraftStorage,
        *,
        schema_version: str = DEFAULT_SCHEMA_VERSION,
        retention: timedelta = DEFAULT_RETENTION,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._storage = storage
        self._schema_version = schema_version
        self._retention = retention
        self._clock = clock
        self._memory: Dict[str, str] = {}
        self.degraded = False
        self.last_discard_reason: Optional[str] = None

    # -- save ------------------------------------------------------------

    def save(self, identity: DraftIdentity, snapshot: Mapping[str, AnswerValue], meta: DraftMeta) -> None:
        """Overwrite the record for `identity`. Never raises on storage failure."""
        record = DraftRecord(
            identity=identity,
            answers=non_empty_answers(snapshot),
            current_step_index=meta.current_step_index,
            completed_step_indices=list(meta.completed_step_indices),
            created_at=self._clock(),
            sync_status=meta.sync_status,
            schema_version=self._schema_version,
            completion_percentage=meta.completion_percentage,
        )
        key = identity.storage_key()
        payload = record.model_dump_json()
        if self.degraded:
            self._memory[key] = payload
            return
        try:
            self._storage.set(key, payload)
        except DraftStorageError as e:
            self.degraded = True
            self._memory[key] = payload
            logger.warning("draft_save_degraded_to_memory key=%s reason=%s", key, e)
            return
        logger.info(
            "draft_saved_locally key=%s fields=%s sync_status=%s",
            key,
            len(record.answers),
            record.sync_status.value,
        )

    # -- load ------------------------------------------------------------

    def load(self, identity: DraftIdentity) -> Optional[DraftRecord]:
        """Return the validated record for `identity` or None.

        Invalid records are deleted and the reason kept in
        `last_discard_reason`.
        """
        self.last_discard_reason = None
        key = identity.storage_key()
        try:
            raw = self._read(key)
        except DraftStorageError as e:
            logger.warning("draft_load_storage_failed key=%s reason=%s", key, e)
            return None
        if raw is None:
            return None
        try:
            record = self._validate(identity, raw)
        except DraftIntegrityError as e:
            self.last_discard_reason = e.reason
            logger.warning("draft_discarded key=%s reason=%s", key, e)
            self.delete(identity)
            return None
        logger.info("draft_loaded key=%s fields=%s", key, len(record.answers))
        return record

    def _read(self, key: str) -> Optional[str]:
        if key in self._memory:
            return self._memory[key]
        if self.degraded:
            return None
        return self._storage.get(key)

    def _validate(self, identity: DraftIdentity, raw: str) -> DraftRecord:
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            raise DraftIntegrityError(REASON_MALFORMED, str(e)) from e
        if not isinstance(data, dict):
            raise DraftIntegrityError(REASON_MALFORMED, "record is not an object")
        stored_version = data.get("schema_version")
        if stored_version != self._schema_version:
            raise DraftIntegrityError(
                REASON_SCHEMA_MISMATCH, f"stored={stored_version!r} expected={self._schema_version!r}"
            )
        try:
            record = DraftRecord.model_validate(data)
        except PydanticValidationError as e:
            raise DraftIntegrityError(REASON_MALFORMED, f"{e.error_count()} validation error(s)") from e
        if record.identity != identity:
            raise DraftIntegrityError(
                REASON_IDENTITY_MISMATCH, f"stored={record.identity} requested={identity}"
            )
        age = self._clock() - record.created_at
        if age >= self._retention:
            raise DraftIntegrityError(REASON_EXPIRED, f"age={age}")
        return record.model_copy(update={"answers": non_empty_answers(record.answers)})

    # -- delete ----------------------------------------------------------

    def delete(self, identity: DraftIdentity) -> None:
        key = identity.storage_key()
        self._memory.pop(key, None)
        try:
            self._storage.delete(key)
        except DraftStorageError as e:
            logger.warning("draft_delete_failed key=%s reason=%s", key, e)


__all__ = [
    "DraftPersistence",
    "DEFAULT_RETENTION",
    "DEFAULT_SCHEMA_VERSION",
    "REASON_MALFORMED",
    "REASON_IDENTITY_MISMATCH",
    "REASON_SCHEMA_MISMATCH",
    "REASON_EXPIRED",
]
