"""Pydantic models for the backend request/response contract.

Wire names are camelCase; Python attributes are snake_case with aliases.
Both the HTTP client and the reference backend routes use these models so
the contract is declared once.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class _Wire(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class TemplateFieldPayload(_Wire):
    name: str
    label: str = ""
    type: str = "input"
    required: bool = False
    is_cqs_auto_populated: bool = Field(
        default=False,
        validation_alias=AliasChoices("isCqsAutoPopulated", "cqsAutoPopulated", "is_cqs_auto_populated"),
        serialization_alias="isCqsAutoPopulated",
    )
    options: List[Dict[str, Any]] = Field(default_factory=list)
    placeholder: Optional[str] = None


class TemplateStepPayload(_Wire):
    title: Optional[str] = None
    step_title: Optional[str] = Field(default=None, alias="stepTitle")
    step_number: Optional[int] = Field(default=None, alias="stepNumber")
    description: Optional[str] = ""
    fields: List[TemplateFieldPayload] = Field(default_factory=list)


class TemplatePayload(_Wire):
    steps: List[TemplateStepPayload] = Field(default_factory=list)


class AutoSourcePayload(_Wire):
    cqs_data: Dict[str, Any] = Field(default_factory=dict, alias="cqsData")


class ServerDraftPayload(_Wire):
    plant_inputs: Dict[str, Any] = Field(default_factory=dict, alias="plantInputs")
    current_step: Optional[int] = Field(default=None, alias="currentStep")
    completed_steps: List[int] = Field(default_factory=list, alias="completedSteps")


class SaveDraftRequest(_Wire):
    material_code: str = Field(alias="materialCode")
    plant_code: str = Field(alias="plantCode")
    responses: Dict[str, Any] = Field(default_factory=dict)
    current_step: int = Field(default=0, alias="currentStep")
    completed_steps: List[int] = Field(default_factory=list, alias="completedSteps")


class SaveDraftResult(_Wire):
    success: bool
    saved_fields: int = Field(default=0, alias="savedFields")
    has_changes: bool = Field(default=False, alias="hasChanges")
    message: Optional[str] = None


class SubmitRequest(_Wire):
    material_code: str = Field(alias="materialCode")
    plant_code: str = Field(alias="plantCode")
    responses: Dict[str, Any] = Field(default_factory=dict)
    completion_percentage: int = Field(alias="completionPercentage")
    total_queries: int = Field(default=0, alias="totalQueries")
    open_queries: int = Field(default=0, alias="openQueries")


class SubmitResult(_Wire):
    success: bool
    message: Optional[str] = None


__all__ = [
    "TemplateFieldPayload",
    "TemplateStepPayload",
    "TemplatePayload",
    "AutoSourcePayload",
    "ServerDraftPayload",
    "SaveDraftRequest",
    "SaveDraftResult",
    "SubmitRequest",
    "SubmitResult",
]
