"""Completion calculator.

Pure functions of (Template, effective values, query records): no timers and
no memory between calls, so calling again after any edit always reflects the
current state.

Per step, "manual" fields are those the user can still act on: fields that
are not auto-sourced, plus auto-sourced fields with no resolved value. A step
is satisfied when all of its required manual fields are answered; a step with
no required manual fields is satisfied once at least half of its manual
fields are answered (or when it has no manual fields at all).

Overall percentage counts every field. Resolved auto-source fields count as
answered; unresolved ones stay outstanding until the user fills them.
"""

from __future__ import annotations

from typing import Iterable, List, Mapping, Sequence

from questionnaire_engine.logic.answer_values import AnswerValue, is_empty_answer
from questionnaire_engine.models.completion import (
    CompletionStatus,
    QueryRecord,
    QueryStats,
    QueryStatus,
    StepCompletion,
)
from questionnaire_engine.models.template import FieldDefinition, Template

DEFAULT_LENIENCY_RATIO = 0.5


def round_percent(part: int, whole: int) -> int:
    """Percentage rounded half-up; 0 when `whole` is 0."""
    if whole <= 0:
        return 0
    return (part * 200 + whole) // (2 * whole)


def is_answered(field: FieldDefinition, values: Mapping[str, AnswerValue]) -> bool:
    if field.has_resolved_auto_value:
        return True
    return not is_empty_answer(values.get(field.name))


def compute_step_completion(
    template: Template,
    values: Mapping[str, AnswerValue],
    step_index: int,
    queries: Sequence[QueryRecord] = (),
    leniency_ratio: float = DEFAULT_LENIENCY_RATIO,
) -> StepCompletion:
    if step_index < 0 or step_index >= template.step_count:
        return StepCompletion(
            step_index=step_index,
            total=0,
            required=0,
            optional=0,
            completed=0,
            required_completed=0,
            optional_completed=0,
            is_satisfied=False,
            completion_percentage=0,
            required_completion_percentage=0,
        )

    step = template.steps[step_index]
    manual = [f for f in step.fields if f.is_manual]
    required = [f for f in manual if f.required]
    optional = [f for f in manual if not f.required]
    required_done = sum(1 for f in required if is_answered(f, values))
    optional_done = sum(1 for f in optional if is_answered(f, values))
    completed = required_done + optional_done

    if required:
        satisfied = required_done == len(required)
    else:
        # A step with nothing left for the user to fill is never satisfied
        satisfied = bool(manual) and completed >= leniency_ratio * len(manual)

    step_queries = [q for q in queries if q.step_index == step_index]
    return StepCompletion(
        step_index=step_index,
        total=len(manual),
        required=len(required),
        optional=len(optional),
        completed=completed,
        required_completed=required_done,
        optional_completed=optional_done,
        is_satisfied=satisfied,
        completion_percentage=round_percent(completed, len(manual)) if manual else 100,
        required_completion_percentage=round_percent(required_done, len(required)) if required else 100,
        open_queries=sum(1 for q in step_queries if q.status == QueryStatus.OPEN),
        resolved_queries=sum(1 for q in step_queries if q.status == QueryStatus.RESOLVED),
    )


def overall_percentage(template: Template, values: Mapping[str, AnswerValue]) -> int:
    counted = 0
    answered = 0
    for field in template.iter_fields():
        counted += 1
        if is_answered(field, values):
            answered += 1
    return round_percent(answered, counted)


def compute_completion(
    template: Template,
    values: Mapping[str, AnswerValue],
    queries: Sequence[QueryRecord] = (),
    leniency_ratio: float = DEFAULT_LENIENCY_RATIO,
) -> CompletionStatus:
    fields = list(template.iter_fields())
    answered = sum(1 for f in fields if is_answered(f, values))
    return CompletionStatus(
        steps=[
            compute_step_completion(template, values, i, queries, leniency_ratio)
            for i in range(template.step_count)
        ],
        overall_percentage=round_percent(answered, len(fields)),
        answered=answered,
        counted=len(fields),
    )


def missing_required_fields(template: Template, values: Mapping[str, AnswerValue]) -> List[str]:
    """Names of required fields (any step) without a value, in template order."""
    return [f.name for f in template.iter_fields() if f.required and not is_answered(f, values)]


def query_stats(queries: Iterable[QueryRecord]) -> QueryStats:
    items = list(queries)
    return QueryStats(
        total=len(items),
        open=sum(1 for q in items if q.status == QueryStatus.OPEN),
        resolved=sum(1 for q in items if q.status == QueryStatus.RESOLVED),
    )


__all__ = [
    "DEFAULT_LENIENCY_RATIO",
    "round_percent",
    "is_answered",
    "compute_step_completion",
    "compute_completion",
    "overall_percentage",
    "missing_required_fields",
    "query_stats",
]
