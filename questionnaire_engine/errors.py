"""Exception taxonomy for the questionnaire draft engine.

Only the submission path raises these to callers. Everything below the
submission boundary (sync pushes, local storage, auto-source lookups) catches
them and converts them into state flags and events.
"""

from __future__ import annotations

from typing import Iterable, List


class QuestionnaireEngineError(Exception):
    pass


class TemplateUnavailable(QuestionnaireEngineError):
    """Backend could not produce a usable step/field structure."""


class BackendError(QuestionnaireEngineError):
    """Transport failure or non-success response from the backend."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BackendTimeout(BackendError):
    pass


class DraftStorageError(QuestionnaireEngineError):
    """Local durable storage rejected a read or write (quota, disabled, I/O)."""


class DraftIntegrityError(QuestionnaireEngineError):
    """A persisted draft failed validation and must be discarded."""

    def __init__(self, reason: str, detail: str = "") -> None:
        super().__init__(f"{reason}: {detail}" if detail else reason)
        self.reason = reason


class QuestionnaireValidationError(QuestionnaireEngineError, ValueError):
    """Required fields are missing at submission time."""

    def __init__(self, missing_fields: Iterable[str]) -> None:
        self.missing_fields: List[str] = list(missing_fields)
        super().__init__(
            "missing required fields: " + ", ".join(self.missing_fields)
        )


class ConfirmationRequired(QuestionnaireEngineError):
    """Submission needs an explicit override from the caller.

    `reason` is one of "open_queries" or "incomplete".
    """

    def __init__(self, reason: str, message: str, completion_percentage: int | None = None) -> None:
        super().__init__(message)
        self.reason = reason
        self.completion_percentage = completion_percentage


class SubmissionFailed(QuestionnaireEngineError):
    pass


class InvalidStateError(QuestionnaireEngineError):
    pass


class ReadOnlyError(QuestionnaireEngineError):
    pass


__all__ = [
    "QuestionnaireEngineError",
    "TemplateUnavailable",
    "BackendError",
    "BackendTimeout",
    "DraftStorageError",
    "DraftIntegrityError",
    "QuestionnaireValidationError",
    "ConfirmationRequired",
    "SubmissionFailed",
    "InvalidStateError",
    "ReadOnlyError",
]
