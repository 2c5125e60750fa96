"""Pydantic models for questionnaire templates.

A Template is an ordered sequence of steps; each step holds an ordered
sequence of field definitions. Field names are unique across the template.
Models are frozen: annotating auto-source values produces a new Template.
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from questionnaire_engine.logic.answer_values import AnswerValue, is_empty_auto_value
from questionnaire_engine.models.field_kind import FieldKind


class FieldOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    label: str


class FieldDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    label: str = ""
    kind: FieldKind
    required: bool = False
    auto_source: bool = False
    options: Tuple[FieldOption, ...] = ()
    placeholder: Optional[str] = None
    # Resolved auto-source value; None until the classification lookup answers
    auto_value: AnswerValue = None

    @model_validator(mode="after")
    def _options_match_kind(self) -> "FieldDefinition":
        if self.kind.is_choice and not self.options:
            raise ValueError(f"field {self.name!r}: choice field requires options")
        if not self.kind.is_choice and self.options:
            raise ValueError(f"field {self.name!r}: options only allowed on choice fields")
        return self

    @property
    def has_resolved_auto_value(self) -> bool:
        return self.auto_source and not is_empty_auto_value(self.auto_value)

    @property
    def editable(self) -> bool:
        """Auto-source fields lock only once a concrete value is present."""
        return not self.has_resolved_auto_value

    @property
    def is_manual(self) -> bool:
        return not self.has_resolved_auto_value


class StepDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    description: str = ""
    fields: Tuple[FieldDefinition, ...] = ()


class Template(BaseModel):
    model_config = ConfigDict(frozen=True)

    steps: Tuple[StepDefinition, ...]
    source: str = "backend"  # "backend" or "fallback"

    @model_validator(mode="after")
    def _unique_field_names(self) -> "Template":
        seen: set[str] = set()
        dupes: List[str] = []
        for step in self.steps:
            for field in step.fields:
                if field.name in seen:
                    dupes.append(field.name)
                seen.add(field.name)
        if dupes:
            raise ValueError(f"duplicate field names in template: {sorted(set(dupes))}")
        return self

    @property
    def step_count(self) -> int:
        return len(self.steps)

    def iter_fields(self) -> Iterator[FieldDefinition]:
        for step in self.steps:
            yield from step.fields

    def field(self, name: str) -> Optional[FieldDefinition]:
        for f in self.iter_fields():
            if f.name == name:
                return f
        return None

    def field_names(self) -> List[str]:
        return [f.name for f in self.iter_fields()]

    def auto_source_values(self) -> Dict[str, AnswerValue]:
        return {f.name: f.auto_value for f in self.iter_fields() if f.has_resolved_auto_value}


__all__ = ["FieldOption", "FieldDefinition", "StepDefinition", "Template"]
