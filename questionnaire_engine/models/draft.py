"""Pydantic models for draft identity and the persisted draft record."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from questionnaire_engine.logic.answer_values import AnswerValue


DRAFT_KEY_PREFIX = "plant_questionnaire_draft"


def _escape_key_part(part: str) -> str:
    # "_" is the key separator
    return part.replace("%", "%25").replace("_", "%5F")


class SyncStatus(str, Enum):
    SYNCED = "synced"
    PENDING = "pending"


class DraftIdentity(BaseModel):
    """Composite key scoping a draft and its auto-source data."""

    model_config = ConfigDict(frozen=True)

    workflow_id: str
    material_code: str
    plant_code: str

    @field_validator("workflow_id", "material_code", "plant_code")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("identity components must be non-empty strings")
        return v.strip()

    def storage_key(self) -> str:
        parts = (self.workflow_id, self.material_code, self.plant_code)
        return "_".join([DRAFT_KEY_PREFIX] + [_escape_key_part(p) for p in parts])

    def __str__(self) -> str:
        return f"{self.workflow_id}/{self.material_code}/{self.plant_code}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DraftMeta(BaseModel):
    """Session metadata saved alongside the answers."""

    current_step_index: int = Field(default=0, ge=0)
    completed_step_indices: List[int] = Field(default_factory=list)
    sync_status: SyncStatus = SyncStatus.PENDING
    completion_percentage: int = Field(default=0, ge=0, le=100)


class DraftRecord(BaseModel):
    identity: DraftIdentity
    answers: Dict[str, AnswerValue] = Field(default_factory=dict)
    current_step_index: int = Field(default=0, ge=0)
    completed_step_indices: List[int] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    sync_status: SyncStatus = SyncStatus.PENDING
    schema_version: str
    completion_percentage: int = Field(default=0, ge=0, le=100)

    @field_validator("completed_step_indices")
    @classmethod
    def _sorted_unique(cls, v: List[int]) -> List[int]:
        return sorted({int(i) for i in v if int(i) >= 0})

    @field_validator("created_at")
    @classmethod
    def _aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


__all__ = [
    "DRAFT_KEY_PREFIX",
    "SyncStatus",
    "DraftIdentity",
    "DraftMeta",
    "DraftRecord",
    "utcnow",
]
