"""HTTP client for the questionnaire backend contract.

Wraps an `httpx.AsyncClient`. Every transport failure, timeout or non-success
status is converted into `BackendError` / `BackendTimeout` so callers deal with
one exception family. Response bodies are validated into the pydantic models
from `questionnaire_engine.models.backend_types`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

import httpx
from pydantic import ValidationError as PydanticValidationError

from questionnaire_engine.errors import BackendError, BackendTimeout
from questionnaire_engine.models.backend_types import (
    AutoSourcePayload,
    SaveDraftRequest,
    SaveDraftResult,
    ServerDraftPayload,
    SubmitRequest,
    SubmitResult,
    TemplatePayload,
)

logger = logging.getLogger(__name__)

TEMPLATE_PATH = "/plant-questionnaire/template"
AUTO_SOURCE_PATH = "/plant-questionnaire/cqs-data"
DRAFT_INIT_PATH = "/plant-questionnaire/plant-data/init"
DRAFT_SAVE_PATH = "/plant-questionnaire/draft"
SUBMIT_PATH = "/plant-questionnaire/submit"


class QuestionnaireBackend(Protocol):
    """Contract the engine depends on; implemented by `HttpBackendClient`."""

    async def get_template(self, material_code: str, plant_code: str) -> TemplatePayload: ...

    async def get_auto_source_values(self, material_code: str, plant_code: str) -> Dict[str, Any]: ...

    async def get_or_create_draft(
        self, material_code: str, plant_code: str, workflow_id: str
    ) -> Optional[ServerDraftPayload]: ...

    async def save_draft(self, workflow_id: str, request: SaveDraftRequest) -> SaveDraftResult: ...

    async def submit(self, workflow_id: str, request: SubmitRequest) -> SubmitResult: ...


class HttpBackendClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        headers: Dict[str, str] | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
            headers=headers,
        )

    async def __aenter__(self) -> "HttpBackendClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    @property
    def closed(self) -> bool:
        return self._client.is_closed

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Dict[str, str] | None = None,
        json: Dict[str, Any] | None = None,
        allow_not_found: bool = False,
    ) -> Optional[Any]:
        try:
            resp = await self._client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as e:
            logger.warning("backend_timeout method=%s path=%s", method, path)
            raise BackendTimeout(f"{method} {path} timed out") from e
        except httpx.HTTPError as e:
            logger.warning("backend_transport_error method=%s path=%s error=%s", method, path, e)
            raise BackendError(f"{method} {path} failed: {e}") from e

        if allow_not_found and resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            detail = ""
            try:
                body = resp.json()
                if isinstance(body, dict):
                    detail = str(body.get("detail") or body.get("message") or body.get("title") or "")
            except ValueError:
                detail = resp.text[:200]
            logger.warning(
                "backend_error_status method=%s path=%s status=%s detail=%s",
                method,
                path,
                resp.status_code,
                detail,
            )
            raise BackendError(detail or f"{method} {path} returned {resp.status_code}", resp.status_code)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise BackendError(f"{method} {path} returned a non-JSON body", resp.status_code) from e

    @staticmethod
    def _parse(model: type, body: Any, what: str) -> Any:
        try:
            return model.model_validate(body if body is not None else {})
        except PydanticValidationError as e:
            raise BackendError(f"invalid {what} payload: {e.error_count()} error(s)") from e

    async def get_template(self, material_code: str, plant_code: str) -> TemplatePayload:
        body = await self._request(
            "GET",
            TEMPLATE_PATH,
            params={
                "materialCode": material_code,
                "plantCode": plant_code,
                "templateType": "PLANT_QUESTIONNAIRE",
            },
        )
        return self._parse(TemplatePayload, body, "template")

    async def get_auto_source_values(self, material_code: str, plant_code: str) -> Dict[str, Any]:
        body = await self._request(
            "GET", AUTO_SOURCE_PATH, params={"materialCode": material_code, "plantCode": plant_code}
        )
        return dict(self._parse(AutoSourcePayload, body, "auto-source").cqs_data)

    async def get_or_create_draft(
        self, material_code: str, plant_code: str, workflow_id: str
    ) -> Optional[ServerDraftPayload]:
        body = await self._request(
            "POST",
            DRAFT_INIT_PATH,
            params={"plantCode": plant_code, "materialCode": material_code, "workflowId": workflow_id},
            allow_not_found=True,
        )
        if body is None:
            return None
        return self._parse(ServerDraftPayload, body, "draft")

    async def save_draft(self, workflow_id: str, request: SaveDraftRequest) -> SaveDraftResult:
        body = await self._request(
            "POST",
            DRAFT_SAVE_PATH,
            params={"workflowId": workflow_id},
            json=request.model_dump(by_alias=True),
        )
        return self._parse(SaveDraftResult, body, "save-draft")

    async def submit(self, workflow_id: str, request: SubmitRequest) -> SubmitResult:
        body = await self._request(
            "POST",
            SUBMIT_PATH,
            params={"workflowId": workflow_id},
            json=request.model_dump(by_alias=True),
        )
        return self._parse(SubmitResult, body, "submit")


__all__ = [
    "QuestionnaireBackend",
    "HttpBackendClient",
    "TEMPLATE_PATH",
    "AUTO_SOURCE_PATH",
    "DRAFT_INIT_PATH",
    "DRAFT_SAVE_PATH",
    "SUBMIT_PATH",
]
