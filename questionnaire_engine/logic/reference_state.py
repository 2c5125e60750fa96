"""In-memory state for the reference backend (tests and local development).

Holds the template served to clients, classification values per
(material, plant), one server draft per workflow and accepted submissions.
Fault switches let tests make individual endpoints fail.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from questionnaire_engine.logic.answer_values import non_empty_answers
from questionnaire_engine.logic.fallback_template import default_template
from questionnaire_engine.models.backend_types import (
    SaveDraftRequest,
    SaveDraftResult,
    ServerDraftPayload,
    SubmitRequest,
    SubmitResult,
    TemplateFieldPayload,
    TemplatePayload,
    TemplateStepPayload,
)
from questionnaire_engine.models.field_kind import FieldKind
from questionnaire_engine.models.template import Template

logger = logging.getLogger(__name__)

_WIRE_TYPES = {
    FieldKind.TEXT: "input",
    FieldKind.LONG_TEXT: "textarea",
    FieldKind.SINGLE_CHOICE: "radio",
    FieldKind.MULTI_CHOICE: "checkbox",
}


def template_to_payload(template: Template) -> TemplatePayload:
    """Render a Template in the backend's wire shape."""
    return TemplatePayload(
        steps=[
            TemplateStepPayload(
                title=step.title,
                step_number=idx + 1,
                description=step.description,
                fields=[
                    TemplateFieldPayload(
                        name=f.name,
                        label=f.label,
                        type=_WIRE_TYPES[f.kind],
                        required=f.required,
                        is_cqs_auto_populated=f.auto_source,
                        options=[{"value": o.value, "label": o.label} for o in f.options],
                        placeholder=f.placeholder,
                    )
                    for f in step.fields
                ],
            )
            for idx, step in enumerate(template.steps)
        ]
    )


class WorkflowClosed(Exception):
    """Draft or submission attempted on a workflow that was already submitted."""


class ReferenceBackendState:
    def __init__(self, template: Optional[Template] = None) -> None:
        self._initial_template = template
        self.reset()

    def reset(self) -> None:
        self.template: Template = self._initial_template or default_template()
        self.template_available = True
        self.cqs_data: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.drafts: Dict[str, ServerDraftPayload] = {}
        self.submissions: Dict[str, SubmitRequest] = {}
        self.save_requests: List[SaveDraftRequest] = []
        # Status code to fail with, or None to succeed
        self.save_failure_status: Optional[int] = None
        self.submit_failure_status: Optional[int] = None
        self.reject_saves = False

    # -- reads -----------------------------------------------------------

    def template_payload(self) -> TemplatePayload:
        return template_to_payload(self.template)

    def set_cqs_data(self, material_code: str, plant_code: str, values: Dict[str, Any]) -> None:
        self.cqs_data[(material_code, plant_code)] = dict(values)

    def get_cqs_data(self, material_code: str, plant_code: str) -> Dict[str, Any]:
        return dict(self.cqs_data.get((material_code, plant_code), {}))

    def get_or_create_draft(self, workflow_id: str) -> ServerDraftPayload:
        draft = self.drafts.get(workflow_id)
        if draft is None:
            draft = ServerDraftPayload()
            self.drafts[workflow_id] = draft
            logger.info("reference_draft_created workflow=%s", workflow_id)
        return draft

    # -- writes ----------------------------------------------------------

    def save_draft(self, workflow_id: str, request: SaveDraftRequest) -> SaveDraftResult:
        if workflow_id in self.submissions:
            raise WorkflowClosed(workflow_id)
        self.save_requests.append(request)
        if self.reject_saves:
            return SaveDraftResult(success=False, message="draft rejected")
        responses = non_empty_answers(request.responses)
        previous = self.drafts.get(workflow_id)
        has_changes = previous is None or previous.plant_inputs != responses
        self.drafts[workflow_id] = ServerDraftPayload(
            plant_inputs=responses,
            current_step=request.current_step,
            completed_steps=sorted(set(request.completed_steps)),
        )
        return SaveDraftResult(success=True, saved_fields=len(responses), has_changes=has_changes)

    def submit(self, workflow_id: str, request: SubmitRequest) -> SubmitResult:
        if workflow_id in self.submissions:
            raise WorkflowClosed(workflow_id)
        self.submissions[workflow_id] = request
        self.drafts.pop(workflow_id, None)
        logger.info(
            "reference_submission_accepted workflow=%s completion=%s",
            workflow_id,
            request.completion_percentage,
        )
        return SubmitResult(success=True, message="Questionnaire submitted successfully")


__all__ = ["ReferenceBackendState", "WorkflowClosed", "template_to_payload"]
