"""Template loading and auto-source annotation.

`load_template` turns the backend payload into a validated `Template` or
raises `TemplateUnavailable`. `load_template_or_fallback` absorbs that and
substitutes the built-in template. `resolve_auto_sources` annotates
auto-source fields with their classification values.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from questionnaire_engine.client.backend import QuestionnaireBackend
from questionnaire_engine.errors import BackendError, TemplateUnavailable
from questionnaire_engine.logic.answer_values import (
    AnswerValue,
    canonicalize_answer_value,
    is_empty_auto_value,
)
from questionnaire_engine.logic.fallback_template import default_template
from questionnaire_engine.models.backend_types import TemplatePayload
from questionnaire_engine.models.field_kind import FieldKind
from questionnaire_engine.models.template import FieldDefinition, FieldOption, StepDefinition, Template

logger = logging.getLogger(__name__)


def parse_template_payload(payload: TemplatePayload) -> Template:
    """Map the backend wire shape onto the Template model.

    Raises TemplateUnavailable when the structure is empty or invalid.
    """
    if not payload.steps:
        raise TemplateUnavailable("template has no steps")
    try:
        steps = []
        for idx, raw_step in enumerate(payload.steps):
            title = raw_step.title or raw_step.step_title or f"Step {raw_step.step_number or idx + 1}"
            fields = []
            for raw_field in raw_step.fields:
                kind = FieldKind.from_raw(raw_field.type)
                options = tuple(
                    FieldOption(value=str(o.get("value")), label=str(o.get("label", o.get("value"))))
                    for o in raw_field.options
                    if isinstance(o, dict) and o.get("value") is not None
                )
                fields.append(
                    FieldDefinition(
                        name=raw_field.name,
                        label=raw_field.label,
                        kind=kind,
                        required=raw_field.required,
                        auto_source=raw_field.is_cqs_auto_populated,
                        options=options if kind.is_choice else (),
                        placeholder=raw_field.placeholder,
                    )
                )
            steps.append(
                StepDefinition(title=title, description=raw_step.description or "", fields=tuple(fields))
            )
        return Template(steps=tuple(steps), source="backend")
    except (PydanticValidationError, ValueError) as e:
        raise TemplateUnavailable(f"invalid template structure: {e}") from e


async def load_template(backend: QuestionnaireBackend, material_code: str, plant_code: str) -> Template:
    try:
        payload = await backend.get_template(material_code, plant_code)
    except BackendError as e:
        raise TemplateUnavailable(str(e)) from e
    template = parse_template_payload(payload)
    logger.info(
        "template_loaded material=%s plant=%s steps=%s fields=%s",
        material_code,
        plant_code,
        template.step_count,
        len(template.field_names()),
    )
    return template


async def load_template_or_fallback(
    backend: QuestionnaireBackend,
    material_code: str,
    plant_code: str,
    on_fallback: Optional[Callable[[TemplateUnavailable], None]] = None,
) -> Template:
    """Load the backend template, substituting the built-in one on failure.

    `on_fallback` receives the failure when the substitute is used.
    """
    try:
        return await load_template(backend, material_code, plant_code)
    except TemplateUnavailable as e:
        logger.warning(
            "template_unavailable_using_fallback material=%s plant=%s reason=%s",
            material_code,
            plant_code,
            e,
        )
        if on_fallback is not None:
            on_fallback(e)
        return default_template()


async def fetch_auto_source_values(
    backend: QuestionnaireBackend, material_code: str, plant_code: str
) -> Dict[str, Any]:
    """Return classification values; failures degrade to an empty map."""
    try:
        return await backend.get_auto_source_values(material_code, plant_code)
    except BackendError:
        logger.warning(
            "auto_source_fetch_failed material=%s plant=%s", material_code, plant_code, exc_info=True
        )
        return {}


def resolve_auto_sources(template: Template, values: Mapping[str, Any]) -> Template:
    """Annotate auto-source fields with their resolved values.

    Values for fields not marked auto-source are ignored. Empty values leave
    the field unresolved, which keeps it editable.
    """
    resolved: Dict[str, AnswerValue] = {}
    for name, raw in (values or {}).items():
        field = template.field(str(name))
        if field is None or not field.auto_source:
            continue
        try:
            canon = canonicalize_answer_value(raw)
        except TypeError:
            logger.warning("auto_source_value_unsupported field=%s type=%s", name, type(raw).__name__)
            continue
        if is_empty_auto_value(canon):
            continue
        if field.kind.is_multi and isinstance(canon, str):
            canon = [canon]
        resolved[field.name] = canon

    steps = tuple(
        step.model_copy(
            update={
                "fields": tuple(
                    f.model_copy(update={"auto_value": resolved[f.name]}) if f.name in resolved else f
                    for f in step.fields
                )
            }
        )
        for step in template.steps
    )
    logger.info("auto_sources_resolved count=%s", len(resolved))
    return template.model_copy(update={"steps": steps})


__all__ = [
    "parse_template_payload",
    "load_template",
    "load_template_or_fallback",
    "fetch_auto_source_values",
    "resolve_auto_sources",
]
