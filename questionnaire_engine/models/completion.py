"""Pydantic models for derived completion state and query statistics."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel


class QueryStatus:
    OPEN = "OPEN"
    RESOLVED = "RESOLVED"


class QueryRecord(BaseModel):
    """A query raised against a field, owned by the external query subsystem."""

    step_index: int
    field_name: str
    status: str = QueryStatus.OPEN


class QueryStats(BaseModel):
    total: int = 0
    open: int = 0
    resolved: int = 0


class StepCompletion(BaseModel):
    step_index: int
    total: int
    required: int
    optional: int
    completed: int
    required_completed: int
    optional_completed: int
    is_satisfied: bool
    completion_percentage: int
    required_completion_percentage: int
    open_queries: int = 0
    resolved_queries: int = 0


class CompletionStatus(BaseModel):
    steps: List[StepCompletion]
    overall_percentage: int
    answered: int
    counted: int


__all__ = [
    "QueryStatus",
    "QueryRecord",
    "QueryStats",
    "StepCompletion",
    "CompletionStatus",
]
