"""Functional test bootstrap for the questionnaire draft engine.

Provides a scriptable in-process backend double, in-memory draft storage,
a virtual-time scheduler and an HTTP client wired to the FastAPI reference
backend through `httpx.ASGITransport` (no sockets, no running server).
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx
import pytest

from questionnaire_engine import config as config_module
from questionnaire_engine.client.backend import HttpBackendClient
from questionnaire_engine.config import BackendConfig, CompletionConfig, EngineConfig, SyncConfig
from questionnaire_engine.errors import BackendError
from questionnaire_engine.logic.draft_storage import InMemoryDraftStorage
from questionnaire_engine.logic.network_monitor import NetworkMonitor
from questionnaire_engine.logic.reference_state import ReferenceBackendState, template_to_payload
from questionnaire_engine.logic.scheduler import ManualScheduler
from questionnaire_engine.main import create_app
from questionnaire_engine.models.backend_types import (
    SaveDraftRequest,
    SaveDraftResult,
    ServerDraftPayload,
    SubmitRequest,
    SubmitResult,
    TemplatePayload,
)
from questionnaire_engine.models.draft import DraftIdentity
from questionnaire_engine.models.field_kind import FieldKind
from questionnaire_engine.models.template import FieldDefinition, FieldOption, StepDefinition, Template


def _choice(name: str, required: bool = False, auto: bool = False) -> FieldDefinition:
    return FieldDefinition(
        name=name,
        label=name.replace("_", " ").title(),
        kind=FieldKind.SINGLE_CHOICE,
        required=required,
        auto_source=auto,
        options=(FieldOption(value="yes", label="Yes"), FieldOption(value="no", label="No")),
    )


def _text(name: str, required: bool = False, auto: bool = False) -> FieldDefinition:
    return FieldDefinition(name=name, label=name.replace("_", " ").title(), kind=FieldKind.TEXT,
                           required=required, auto_source=auto)


def build_small_template() -> Template:
    """Three steps, 8 fields; `flash_point` and `is_flammable` are auto-sourced."""
    return Template(
        steps=(
            StepDefinition(
                title="General",
                fields=(_choice("msds_available", required=True), _text("missing_info")),
            ),
            StepDefinition(
                title="Physical",
                fields=(
                    _text("flash_point", auto=True),
                    _choice("is_flammable", auto=True),
                    _text("boiling_point"),
                    _text("storage_temp"),
                ),
            ),
            StepDefinition(
                title="Others",
                fields=(_text("remarks"), _choice("ppe_listed")),
            ),
        ),
    )


class FakeBackend:
    """Scriptable implementation of the backend contract.

    Set `*_error` attributes to make a call raise, `save_hang` to make
    pushes block until released, and inspect `save_calls` / `submit_calls`.
    """

    def __init__(self, template: Optional[Template] = None) -> None:
        self.template_payload: TemplatePayload = template_to_payload(template or build_small_template())
        self.template_error: Optional[Exception] = None
        self.cqs_data: Dict[str, Any] = {}
        self.cqs_error: Optional[Exception] = None
        self.cqs_gate: Optional[asyncio.Event] = None
        self.server_draft: Optional[ServerDraftPayload] = None
        self.draft_error: Optional[Exception] = None
        self.save_error: Optional[Exception] = None
        self.save_result: SaveDraftResult = SaveDraftResult(success=True, saved_fields=0, has_changes=True)
        self.save_hang: Optional[asyncio.Event] = None
        self.save_calls: List[SaveDraftRequest] = []
        self.submit_error: Optional[Exception] = None
        self.submit_result: SubmitResult = SubmitResult(success=True, message="ok")
        self.submit_hang: Optional[asyncio.Event] = None
        self.submit_calls: List[SubmitRequest] = []

    async def get_template(self, material_code: str, plant_code: str) -> TemplatePayload:
        if self.template_error is not None:
            raise self.template_error
        return self.template_payload

    async def get_auto_source_values(self, material_code: str, plant_code: str) -> Dict[str, Any]:
        if self.cqs_gate is not None:
            await self.cqs_gate.wait()
        if self.cqs_error is not None:
            raise self.cqs_error
        return dict(self.cqs_data)

    async def get_or_create_draft(
        self, material_code: str, plant_code: str, workflow_id: str
    ) -> Optional[ServerDraftPayload]:
        if self.draft_error is not None:
            raise self.draft_error
        return self.server_draft

    async def save_draft(self, workflow_id: str, request: SaveDraftRequest) -> SaveDraftResult:
        self.save_calls.append(request)
        if self.save_hang is not None:
            await self.save_hang.wait()
        if self.save_error is not None:
            raise self.save_error
        return self.save_result.model_copy(update={"saved_fields": len(request.responses)})

    async def submit(self, workflow_id: str, request: SubmitRequest) -> SubmitResult:
        self.submit_calls.append(request)
        if self.submit_hang is not None:
            await self.submit_hang.wait()
        if self.submit_error is not None:
            raise self.submit_error
        return self.submit_result


class FakeClock:
    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def identity() -> DraftIdentity:
    return DraftIdentity(workflow_id="wf-100", material_code="MAT-7", plant_code="P01")


@pytest.fixture
def template() -> Template:
    return build_small_template()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def storage() -> InMemoryDraftStorage:
    return InMemoryDraftStorage()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def network() -> NetworkMonitor:
    return NetworkMonitor(online=True)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig(
        backend=BackendConfig(base_url="http://testserver/api", request_timeout_seconds=0.2),
        sync=SyncConfig(debounce_seconds=2, autosave_interval_seconds=30),
        completion=CompletionConfig(submit_threshold_percent=80),
    )


@pytest.fixture
def reference_state() -> ReferenceBackendState:
    return ReferenceBackendState(template=build_small_template())


@pytest.fixture
async def http_backend(reference_state: ReferenceBackendState):
    app = create_app(reference_state)
    client = HttpBackendClient("http://testserver/api", transport=httpx.ASGITransport(app=app))
    try:
        yield client
    finally:
        await client.aclose()


CONFIG_ENV_KEYS = (
    "QE_BACKEND_URL",
    "QE_REQUEST_TIMEOUT_SECONDS",
    "QE_DEBOUNCE_SECONDS",
    "QE_AUTOSAVE_INTERVAL_SECONDS",
    "QE_DRAFT_STORE_URL",
    "QE_DRAFT_RETENTION_DAYS",
    "QE_SCHEMA_VERSION",
    "QE_SUBMIT_THRESHOLD_PERCENT",
    "QE_STEP_LENIENCY_RATIO",
)


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Point configuration loading at an empty tmp dir with no QE_* overrides."""
    for key in CONFIG_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(config_module, "CONFIG_DIR", tmp_path / "config")
    monkeypatch.setattr(config_module, "ROOT_ENGINE_CONFIG", tmp_path / "engine_config.json")
    return tmp_path


def backend_error(status: int = 503) -> BackendError:
    return BackendError("backend unavailable", status)
