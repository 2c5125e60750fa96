"""Reference implementation of the plant questionnaire backend contract.

Serves the template, classification (auto-source) values, per-workflow
server drafts and submissions from `ReferenceBackendState`. Used by the
functional and integration suites through an in-process ASGI transport.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from questionnaire_engine.client.backend import (
    AUTO_SOURCE_PATH,
    DRAFT_INIT_PATH,
    DRAFT_SAVE_PATH,
    SUBMIT_PATH,
    TEMPLATE_PATH,
)
from questionnaire_engine.http.problem import problem_exception
from questionnaire_engine.logic.reference_state import ReferenceBackendState, WorkflowClosed
from questionnaire_engine.models.backend_types import SaveDraftRequest, SubmitRequest


router = APIRouter()
logger = logging.getLogger(__name__)


def get_state(request: Request) -> ReferenceBackendState:
    return request.app.state.reference_backend


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "-")


def _dump(model: Any) -> JSONResponse:
    return JSONResponse(model.model_dump(by_alias=True), status_code=200)


@router.get(TEMPLATE_PATH, summary="Get questionnaire template", operation_id="getTemplate")
def get_template(
    material_code: str = Query(alias="materialCode"),
    plant_code: str = Query(alias="plantCode"),
    template_type: str = Query(default="PLANT_QUESTIONNAIRE", alias="templateType"),
    state: ReferenceBackendState = Depends(get_state),
):
    if not state.template_available:
        logger.info("template_unavailable material=%s plant=%s", material_code, plant_code)
        raise problem_exception(503, "Template unavailable", "template service is not available")
    return _dump(state.template_payload())


@router.get(AUTO_SOURCE_PATH, summary="Get classification values", operation_id="getCqsData")
def get_cqs_data(
    material_code: str = Query(alias="materialCode"),
    plant_code: str = Query(alias="plantCode"),
    state: ReferenceBackendState = Depends(get_state),
):
    return {"cqsData": state.get_cqs_data(material_code, plant_code)}


@router.post(DRAFT_INIT_PATH, summary="Get or create the server draft", operation_id="initPlantData")
def init_plant_data(
    plant_code: str = Query(alias="plantCode"),
    material_code: str = Query(alias="materialCode"),
    workflow_id: str = Query(alias="workflowId"),
    state: ReferenceBackendState = Depends(get_state),
):
    if workflow_id in state.submissions:
        raise problem_exception(404, "Draft not found", f"workflow {workflow_id} was already submitted")
    return _dump(state.get_or_create_draft(workflow_id))


@router.post(DRAFT_SAVE_PATH, summary="Save draft responses", operation_id="saveDraft")
def save_draft(
    request: Request,
    body: Dict[str, Any],
    workflow_id: str = Query(alias="workflowId"),
    state: ReferenceBackendState = Depends(get_state),
):
    if state.save_failure_status is not None:
        raise problem_exception(state.save_failure_status, "Draft save failed", "injected failure")
    req = _parse(SaveDraftRequest, body)
    try:
        result = state.save_draft(workflow_id, req)
    except WorkflowClosed:
        raise problem_exception(409, "Workflow closed", f"workflow {workflow_id} was already submitted")
    except TypeError as e:
        raise problem_exception(422, "Invalid Request", str(e))
    logger.info(
        "draft_saved workflow=%s fields=%s has_changes=%s request_id=%s",
        workflow_id, result.saved_fields, result.has_changes, _request_id(request),
    )
    return _dump(result)


@router.post(SUBMIT_PATH, summary="Submit questionnaire", operation_id="submitQuestionnaire")
def submit(
    request: Request,
    body: Dict[str, Any],
    workflow_id: str = Query(alias="workflowId"),
    state: ReferenceBackendState = Depends(get_state),
):
    if state.submit_failure_status is not None:
        raise problem_exception(state.submit_failure_status, "Submission failed", "injected failure")
    req = _parse(SubmitRequest, body)
    try:
        result = state.submit(workflow_id, req)
    except WorkflowClosed:
        raise problem_exception(409, "Workflow closed", f"workflow {workflow_id} was already submitted")
    logger.info("questionnaire_submitted workflow=%s request_id=%s", workflow_id, _request_id(request))
    return _dump(result)


def _parse(model: Any, body: Dict[str, Any]) -> Any:
    try:
        return model.model_validate(body)
    except PydanticValidationError as e:
        raise problem_exception(422, "Invalid Request", f"{e.error_count()} validation error(s)")


__all__ = ["router", "get_state"]
