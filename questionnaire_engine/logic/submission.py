"""Submission controller: the one transition allowed to block the user.

State machine for a session: draft -> submitting -> submitted | draft.
`submitted` is terminal: the Field Value Store becomes read-only, the sync
engine is closed and the local draft is deleted so it can never be recovered
as a stale draft.

Pre-submission checks run in order: required fields, open queries (needs an
explicit override), completion threshold (needs an explicit override).
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional, Sequence

from pydantic import BaseModel

from questionnaire_engine.client.backend import QuestionnaireBackend
from questionnaire_engine.errors import (
    BackendError,
    ConfirmationRequired,
    InvalidStateError,
    QuestionnaireValidationError,
    SubmissionFailed,
)
from questionnaire_engine.logic import events as ev
from questionnaire_engine.logic.completion import missing_required_fields, overall_percentage, query_stats
from questionnaire_engine.logic.draft_persistence import DraftPersistence
from questionnaire_engine.logic.events import EventPublisher
from questionnaire_engine.logic.field_store import FieldValueStore
from questionnaire_engine.models.backend_types import SubmitRequest, SubmitResult
from questionnaire_engine.models.completion import QueryRecord
from questionnaire_engine.models.draft import DraftIdentity
from questionnaire_engine.models.template import Template

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD_PERCENT = 80


class SubmissionState(str, Enum):
    DRAFT = "draft"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"


class ThresholdVerdict(BaseModel):
    completion_percentage: int
    threshold_percent: int
    requires_confirmation: bool


class SubmissionController:
    def __init__(
        self,
        identity: DraftIdentity,
        template_provider: Callable[[], Template],
        store: FieldValueStore,
        persistence: DraftPersistence,
        backend: QuestionnaireBackend,
        events: EventPublisher,
        *,
        queries_provider: Callable[[], Sequence[QueryRecord]] = lambda: (),
        on_submitted: Optional[Callable[[], None]] = None,
        threshold_percent: int = DEFAULT_THRESHOLD_PERCENT,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.identity = identity
        self._template_provider = template_provider
        self._store = store
        self._persistence = persistence
        self._backend = backend
        self._events = events
        self._queries_provider = queries_provider
        self._on_submitted = on_submitted
        self._threshold_percent = threshold_percent
        self._timeout_seconds = timeout_seconds
        self.state = SubmissionState.DRAFT
        self.last_error: Optional[str] = None

    @property
    def is_submitted(self) -> bool:
        return self.state is SubmissionState.SUBMITTED

    def missing_required(self) -> list[str]:
        return missing_required_fields(self._template_provider(), self._store.snapshot())

    def check_threshold(self) -> ThresholdVerdict:
        """Pure verdict on the completion gate for the current state."""
        pct = overall_percentage(self._template_provider(), self._store.snapshot())
        return ThresholdVerdict(
            completion_percentage=pct,
            threshold_percent=self._threshold_percent,
            requires_confirmation=pct < self._threshold_percent,
        )

    async def submit(self, *, confirm_incomplete: bool = False, confirm_open_queries: bool = False) -> SubmitResult:
        if self.state is not SubmissionState.DRAFT:
            raise InvalidStateError(f"cannot submit while {self.state.value}")

        missing = self.missing_required()
        if missing:
            logger.info("submission_blocked_missing identity=%s missing=%s", self.identity, missing)
            raise QuestionnaireValidationError(missing)

        stats = query_stats(self._queries_provider())
        if stats.open > 0 and not confirm_open_queries:
            raise ConfirmationRequired(
                "open_queries",
                f"{stats.open} open queries; confirm to submit anyway",
            )

        verdict = self.check_threshold()
        if verdict.requires_confirmation and not confirm_incomplete:
            raise ConfirmationRequired(
                "incomplete",
                f"questionnaire is only {verdict.completion_percentage}% complete",
                completion_percentage=verdict.completion_percentage,
            )

        request = SubmitRequest(
            material_code=self.identity.material_code,
            plant_code=self.identity.plant_code,
            responses=self._store.snapshot(),
            completion_percentage=verdict.completion_percentage,
            total_queries=stats.total,
            open_queries=stats.open,
        )
        self.state = SubmissionState.SUBMITTING
        try:
            result = await self._send(request)
        except BaseException:
            # Failure or cancellation: back to draft with local state untouched
            self.state = SubmissionState.DRAFT
            raise

        self._finalize()
        self._events.publish(
            ev.SUBMISSION_SUCCEEDED,
            {
                "identity": str(self.identity),
                "completion_percentage": verdict.completion_percentage,
                "message": result.message,
            },
        )
        logger.info(
            "submission_succeeded identity=%s completion=%s", self.identity, verdict.completion_percentage
        )
        return result

    async def _send(self, request: SubmitRequest) -> SubmitResult:
        try:
            try:
                result = await asyncio.wait_for(
                    self._backend.submit(self.identity.workflow_id, request),
                    timeout=self._timeout_seconds,
                )
            except asyncio.TimeoutError as e:
                raise SubmissionFailed("submission timed out") from e
            except BackendError as e:
                raise SubmissionFailed(str(e) or "submission failed") from e
            if not result.success:
                raise SubmissionFailed(result.message or "submission rejected by backend")
        except SubmissionFailed as e:
            self.last_error = str(e)
            self._events.publish(ev.SUBMISSION_FAILED, {"identity": str(self.identity), "message": str(e)})
            logger.warning("submission_failed identity=%s reason=%s", self.identity, e)
            raise
        return result

    def _finalize(self) -> None:
        self.state = SubmissionState.SUBMITTED
        self.last_error = None
        self._store.make_read_only()
        if self._on_submitted is not None:
            self._on_submitted()
        self._persistence.delete(self.identity)


__all__ = [
    "SubmissionState",
    "ThresholdVerdict",
    "SubmissionController",
    "DEFAULT_THRESHOLD_PERCENT",
]
