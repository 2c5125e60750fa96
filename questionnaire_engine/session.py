"""Questionnaire session: one identity's template, answers, sync and submission.

A session is created per (workflow, material, plant) and owns every timer,
listener and storage handle it uses. `close()` releases them, so a session
left behind after the user moves to another identity can never write into it.

Start-up order:

1. template from the backend, or the built-in fallback
2. auto-source values, annotated onto the template
3. local draft recovery (validated; invalid records are discarded)
4. server draft (`GetOrCreateDraft`), absorbed on failure
5. persisted layer hydrated from server answers, then local answers
6. auto-source layer merged last, under the store's precedence
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from questionnaire_engine.client.backend import HttpBackendClient, QuestionnaireBackend
from questionnaire_engine.config import EngineConfig, load_config
from questionnaire_engine.db.base import get_engine
from questionnaire_engine.errors import BackendError, InvalidStateError, ReadOnlyError, TemplateUnavailable
from questionnaire_engine.logic import events as ev
from questionnaire_engine.logic.answer_values import AnswerValue, canonicalize_answer_value, is_empty_answer
from questionnaire_engine.logic.completion import compute_completion, compute_step_completion, overall_percentage
from questionnaire_engine.logic.draft_persistence import DraftPersistence
from questionnaire_engine.logic.draft_storage import DraftStorage, SqlDraftStorage
from questionnaire_engine.logic.events import EventPublisher
from questionnaire_engine.logic.field_store import FieldValueStore
from questionnaire_engine.logic.network_monitor import NetworkMonitor
from questionnaire_engine.logic.scheduler import AsyncioScheduler, Scheduler
from questionnaire_engine.logic.submission import SubmissionController, SubmissionState, ThresholdVerdict
from questionnaire_engine.logic.sync_engine import MANUAL, NAVIGATION, RECOVERY, SyncEngine, SyncResult
from questionnaire_engine.logic.template_loader import (
    fetch_auto_source_values,
    load_template_or_fallback,
    resolve_auto_sources,
)
from questionnaire_engine.models.backend_types import ServerDraftPayload, SubmitResult
from questionnaire_engine.models.completion import CompletionStatus, QueryRecord, StepCompletion
from questionnaire_engine.models.draft import DraftIdentity, DraftMeta, DraftRecord, SyncStatus, utcnow
from questionnaire_engine.models.template import Template

logger = logging.getLogger(__name__)

class QuestionnaireSession:
    def __init__(
        self,
        identity: DraftIdentity,
        backend: QuestionnaireBackend,
        storage: DraftStorage,
        config: Optional[EngineConfig] = None,
        scheduler: Optional[Scheduler] = None,
        network: Optional[NetworkMonitor] = None,
        queries: Sequence[QueryRecord] = (),
        *,
        clock: Callable[[], datetime] = utcnow,
        owns_backend: bool = False,
    ) -> None:
        self.identity = identity
        self.config = config or load_config()
        self.backend = backend
        self._owns_backend = owns_backend
        self.network = network or NetworkMonitor()
        self.scheduler = scheduler or AsyncioScheduler()
        self.events = EventPublisher()
        self.persistence = DraftPersistence(
            storage,
            schema_version=self.config.draft.schema_version,
            retention=timedelta(days=self.config.draft.retention_days),
            clock=clock,
        )
        self._queries: List[QueryRecord] = list(queries)

        self._template: Optional[Template] = None
        self._store: Optional[FieldValueStore] = None
        self._sync: Optional[SyncEngine] = None
        self._submission: Optional[SubmissionController] = None
        self.current_step_index = 0
        self._completed_steps: set[int] = set()
        self.recovered_draft: Optional[DraftRecord] = None
        self._closed = False

    # -- accessors -------------------------------------------------------

    @property
    def started(self) -> bool:
        return self._template is not None

    @property
    def template(self) -> Template:
        return self._require(self._template)

    @property
    def store(self) -> FieldValueStore:
        return self._require(self._store)

    @property
    def sync_engine(self) -> SyncEngine:
        return self._require(self._sync)

    @property
    def submission(self) -> SubmissionController:
        return self._require(self._submission)

    @property
    def state(self) -> SubmissionState:
        return self._submission.state if self._submission is not None else SubmissionState.DRAFT

    @property
    def sync_status(self) -> SyncStatus:
        return self.sync_engine.sync_status

    @property
    def completed_steps(self) -> List[int]:
        return sorted(self._completed_steps)

    @property
    def queries(self) -> List[QueryRecord]:
        return list(self._queries)

    def set_queries(self, queries: Sequence[QueryRecord]) -> None:
        self._queries = list(queries)

    def values(self) -> Dict[str, AnswerValue]:
        return self.store.snapshot()

    def _require(self, value: Any) -> Any:
        if value is None:
            raise InvalidStateError("session has not been started")
        return value

    # -- start-up --------------------------------------------------------

    async def start(self) -> "QuestionnaireSession":
        if self.started:
            return self
        if self._closed:
            raise InvalidStateError("session is closed")
        material, plant = self.identity.material_code, self.identity.plant_code

        template = await load_template_or_fallback(
            self.backend, material, plant, on_fallback=self._on_template_fallback
        )

        auto_values = await fetch_auto_source_values(self.backend, material, plant)
        template = resolve_auto_sources(template, auto_values)
        self._template = template
        store = FieldValueStore(template.field_names())
        self._store = store

        local = self.persistence.load(self.identity)
        if local is None and self.persistence.last_discard_reason:
            self.events.publish(
                ev.DRAFT_DISCARDED,
                {"identity": str(self.identity), "reason": self.persistence.last_discard_reason},
            )
        server = await self._fetch_server_draft()

        locked = {f.name for f in template.iter_fields() if not f.editable}
        if server is not None:
            store.hydrate_persisted(self._mergeable(server.plant_inputs, locked))
        if local is not None:
            store.hydrate_persisted(self._mergeable(local.answers, locked))
        store.apply_auto_source(template.auto_source_values())

        self._restore_navigation(local, server)
        self.recovered_draft = local
        if local is not None:
            self.events.publish(
                ev.DRAFT_RECOVERED,
                {
                    "identity": str(self.identity),
                    "fields": len(local.answers),
                    "sync_status": local.sync_status.value,
                },
            )

        self._sync = SyncEngine(
            self.identity,
            store,
            self.persistence,
            self.backend,
            self.network,
            self.scheduler,
            self.events,
            self._meta,
            debounce_seconds=self.config.sync.debounce_seconds,
            interval_seconds=self.config.sync.autosave_interval_seconds,
            push_timeout_seconds=self.config.backend.request_timeout_seconds,
        )
        self._submission = SubmissionController(
            self.identity,
            lambda: self.template,
            store,
            self.persistence,
            self.backend,
            self.events,
            queries_provider=lambda: self._queries,
            on_submitted=self._sync.close,
            threshold_percent=self.config.completion.submit_threshold_percent,
            timeout_seconds=self.config.backend.request_timeout_seconds,
        )
        self._sync.start()
        if local is not None and local.sync_status is SyncStatus.PENDING:
            self._sync.mark_pending()
            if self.network.is_online:
                self._sync.trigger(RECOVERY)

        logger.info(
            "session_started identity=%s template=%s steps=%s recovered=%s server_draft=%s",
            self.identity,
            template.source,
            template.step_count,
            local is not None,
            server is not None,
        )
        return self

    def _on_template_fallback(self, error: TemplateUnavailable) -> None:
        self.events.publish(ev.TEMPLATE_FALLBACK_USED, {"identity": str(self.identity), "reason": str(error)})

    async def _fetch_server_draft(self) -> Optional[ServerDraftPayload]:
        try:
            return await self.backend.get_or_create_draft(
                self.identity.material_code, self.identity.plant_code, self.identity.workflow_id
            )
        except BackendError as e:
            logger.warning("session_server_draft_unavailable identity=%s reason=%s", self.identity, e)
            return None

    @staticmethod
    def _mergeable(answers: Mapping[str, Any], locked: set[str]) -> Dict[str, AnswerValue]:
        out: Dict[str, AnswerValue] = {}
        for name, raw in (answers or {}).items():
            if name in locked:
                continue
            try:
                value = canonicalize_answer_value(raw)
            except TypeError:
                logger.warning("session_answer_unsupported name=%s type=%s", name, type(raw).__name__)
                continue
            if not is_empty_answer(value):
                out[str(name)] = value
        return out

    def _restore_navigation(self, local: Optional[DraftRecord], server: Optional[ServerDraftPayload]) -> None:
        step_count = self.template.step_count
        completed: set[int] = set()
        pointer: Optional[int] = None
        if server is not None:
            completed.update(server.completed_steps)
            pointer = server.current_step
        if local is not None:
            completed.update(local.completed_step_indices)
            pointer = local.current_step_index
        self._completed_steps = {i for i in completed if 0 <= i < step_count}
        self.current_step_index = min(max(pointer or 0, 0), max(step_count - 1, 0))

    def _meta(self) -> DraftMeta:
        return DraftMeta(
            current_step_index=self.current_step_index,
            completed_step_indices=self.completed_steps,
            sync_status=self.sync_engine.sync_status,
            completion_percentage=overall_percentage(self.template, self.store.snapshot()),
        )

    # -- editing ---------------------------------------------------------

    def edit(self, name: str, value: Any) -> None:
        self.edit_many({name: value})

    def edit_many(self, patch: Mapping[str, Any]) -> None:
        """Apply edits immediately; the sync runs later off the debounce timer."""
        if self.state is SubmissionState.SUBMITTING:
            raise ReadOnlyError("edits are blocked while submitting")
        template = self.template
        for name in patch:
            field = template.field(name)
            if field is not None and not field.editable:
                raise ReadOnlyError(f"field {name} is locked to its auto-source value")
        self.store.set_many(patch)
        self.sync_engine.notify_edit()

    # -- navigation ------------------------------------------------------

    def next_step(self) -> int:
        return self.go_to_step(min(self.current_step_index + 1, self.template.step_count - 1))

    def previous_step(self) -> int:
        return self.go_to_step(max(self.current_step_index - 1, 0))

    def go_to_step(self, index: int) -> int:
        if index < 0 or index >= self.template.step_count:
            raise ValueError(f"step index {index} out of range 0..{self.template.step_count - 1}")
        if self.step_completion(self.current_step_index).is_satisfied:
            self._completed_steps.add(self.current_step_index)
        self.current_step_index = index
        self.sync_engine.trigger(NAVIGATION)
        return index

    # -- sync ------------------------------------------------------------

    async def save_draft(self) -> SyncResult:
        return await self.sync_engine.sync(MANUAL)

    # -- completion ------------------------------------------------------

    def completion(self) -> CompletionStatus:
        return compute_completion(
            self.template,
            self.store.snapshot(),
            self._queries,
            self.config.completion.step_leniency_ratio,
        )

    def step_completion(self, index: int) -> StepCompletion:
        return compute_step_completion(
            self.template,
            self.store.snapshot(),
            index,
            self._queries,
            self.config.completion.step_leniency_ratio,
        )

    def check_threshold(self) -> ThresholdVerdict:
        return self.submission.check_threshold()

    # -- submission ------------------------------------------------------

    async def submit(self, *, confirm_incomplete: bool = False, confirm_open_queries: bool = False) -> SubmitResult:
        return await self.submission.submit(
            confirm_incomplete=confirm_incomplete, confirm_open_queries=confirm_open_queries
        )

    # -- teardown --------------------------------------------------------

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._sync is not None:
            self._sync.close()
        logger.info("session_closed identity=%s", self.identity)

    async def aclose(self) -> None:
        """Close, wait for an in-flight push, and release an owned backend client."""
        self.close()
        if self._sync is not None:
            await self._sync.drain()
        if self._owns_backend:
            self._owns_backend = False
            await self.backend.aclose()

    async def __aenter__(self) -> "QuestionnaireSession":
        return await self.start()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


async def open_session(
    identity: DraftIdentity,
    config: Optional[EngineConfig] = None,
    *,
    backend: Optional[QuestionnaireBackend] = None,
    storage: Optional[DraftStorage] = None,
    network: Optional[NetworkMonitor] = None,
    queries: Sequence[QueryRecord] = (),
    transport: Any = None,
) -> QuestionnaireSession:
    """Build and start a session from configuration.

    `config` defaults to `load_config()` (env, `config/` files, JSON). Without
    explicit collaborators, the backend is an `HttpBackendClient` on
    `config.backend.base_url` (over `transport` when given), owned and closed
    by the session, and local drafts live in the SQL store at
    `config.draft.store_url`.
    """
    config = config or load_config()
    owns_backend = backend is None
    if backend is None:
        backend = HttpBackendClient(
            config.backend.base_url,
            timeout_seconds=config.backend.request_timeout_seconds,
            transport=transport,
        )
    if storage is None:
        storage = SqlDraftStorage(get_engine(config.draft.store_url))
    session = QuestionnaireSession(
        identity, backend, storage, config, network=network, queries=queries, owns_backend=owns_backend
    )
    try:
        return await session.start()
    except BaseException:
        await session.aclose()
        raise


__all__ = ["QuestionnaireSession", "open_session"]
