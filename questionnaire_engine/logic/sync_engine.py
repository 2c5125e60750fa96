"""Sync engine: drains the Field Value Store to local storage and the backend.

Triggers: a debounce timer restarted by every edit, a fixed autosave
interval, step navigation, the manual "save draft" action and a reconnect
while a pending draft exists.

Every run takes a fresh snapshot, writes it locally first, then pushes it to
the backend when online. Runs are serialised, so the backend only ever
receives the newest full state; there is no queue of diffs. Failures of any
kind leave the draft `pending` and emit a warning event; nothing is raised to
the editing surface and no local edit is rolled back.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Set

from pydantic import BaseModel

from questionnaire_engine.client.backend import QuestionnaireBackend
from questionnaire_engine.errors import BackendError
from questionnaire_engine.logic import events as ev
from questionnaire_engine.logic.draft_persistence import DraftPersistence
from questionnaire_engine.logic.events import EventPublisher
from questionnaire_engine.logic.field_store import FieldValueStore
from questionnaire_engine.logic.network_monitor import DISCONNECTED, RECONNECTED, NetworkMonitor
from questionnaire_engine.logic.scheduler import Scheduler, TimerHandle
from questionnaire_engine.models.backend_types import SaveDraftRequest
from questionnaire_engine.models.draft import DraftIdentity, DraftMeta, SyncStatus

logger = logging.getLogger(__name__)

# Trigger reasons
DEBOUNCE = "debounce"
INTERVAL = "interval"
NAVIGATION = "navigation"
MANUAL = "manual"
RECONNECT = "reconnect"
RECOVERY = "recovery"


class SyncResult(BaseModel):
    reason: str
    status: SyncStatus
    saved_locally: bool = False
    pushed: bool = False
    skipped: bool = False
    saved_fields: int = 0
    has_changes: bool = False
    warning: Optional[str] = None


class SyncEngine:
    def __init__(
        self,
        identity: DraftIdentity,
        store: FieldValueStore,
        persistence: DraftPersistence,
        backend: QuestionnaireBackend,
        network: NetworkMonitor,
        scheduler: Scheduler,
        events: EventPublisher,
        meta_provider: Callable[[], DraftMeta],
        *,
        debounce_seconds: float = 2.0,
        interval_seconds: float = 30.0,
        push_timeout_seconds: float = 10.0,
    ) -> None:
        self.identity = identity
        self._store = store
        self._persistence = persistence
        self._backend = backend
        self._network = network
        self._scheduler = scheduler
        self._events = events
        self._meta_provider = meta_provider
        self._debounce_seconds = debounce_seconds
        self._interval_seconds = interval_seconds
        self._push_timeout_seconds = push_timeout_seconds

        self.sync_status = SyncStatus.SYNCED
        self._debounce_timer: Optional[TimerHandle] = None
        self._interval_timer: Optional[TimerHandle] = None
        self._unsubscribe_network: Optional[Callable[[], None]] = None
        self._lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()
        self._last_pushed_version: Optional[int] = None
        self._storage_degraded_reported = False
        self._started = False
        self._closed = False

    # -- lifecycle -------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> bool:
        return self.sync_status is SyncStatus.PENDING

    def start(self) -> None:
        if self._started or self._closed:
            return
        self._started = True
        self._unsubscribe_network = self._network.subscribe(self._on_network)
        self._arm_interval()

    def close(self) -> None:
        """Cancel every timer and in-flight push; later triggers are ignored."""
        if self._closed:
            return
        self._closed = True
        for timer in (self._debounce_timer, self._interval_timer):
            if timer is not None:
                timer.cancel()
        self._debounce_timer = None
        self._interval_timer = None
        if self._unsubscribe_network is not None:
            self._unsubscribe_network()
            self._unsubscribe_network = None
        for task in list(self._tasks):
            task.cancel()
        logger.info("sync_engine_closed identity=%s", self.identity)

    def mark_pending(self) -> None:
        self.sync_status = SyncStatus.PENDING

    async def drain(self) -> None:
        """Wait for every spawned sync run to finish (used on teardown and in tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # -- triggers --------------------------------------------------------

    def notify_edit(self) -> None:
        """Restart the debounce window after an edit."""
        if self._closed:
            return
        if self._debounce_timer is not None:
            self._debounce_timer.cancel()
        self._debounce_timer = self._scheduler.call_later(self._debounce_seconds, self._on_debounce)

    def trigger(self, reason: str) -> Optional[asyncio.Task]:
        """Start a sync run in the background; returns the task (or None if closed)."""
        if self._closed:
            logger.info("sync_trigger_ignored reason=%s identity=%s", reason, self.identity)
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("sync_trigger_without_loop reason=%s", reason)
            return None
        task = loop.create_task(self.sync(reason))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _on_debounce(self) -> None:
        self._debounce_timer = None
        self.trigger(DEBOUNCE)

    def _arm_interval(self) -> None:
        if self._closed:
            return
        self._interval_timer = self._scheduler.call_later(self._interval_seconds, self._on_interval)

    def _on_interval(self) -> None:
        self._interval_timer = None
        if self._has_unsynced_state():
            self.trigger(INTERVAL)
        self._arm_interval()

    def _on_network(self, transition: str) -> None:
        if transition == RECONNECTED:
            self._events.publish(ev.NETWORK_RECONNECTED, {"identity": str(self.identity), "pending": self.pending})
            if self.pending:
                self.trigger(RECONNECT)
        elif transition == DISCONNECTED:
            self._events.publish(ev.NETWORK_DISCONNECTED, {"identity": str(self.identity)})

    def _has_unsynced_state(self) -> bool:
        if self.pending:
            return True
        if self._store.version == self._last_pushed_version:
            return False
        return bool(self._store.snapshot())

    # -- run -------------------------------------------------------------

    async def sync(self, reason: str) -> SyncResult:
        if self._closed:
            return SyncResult(reason=reason, status=self.sync_status, skipped=True)
        async with self._lock:
            return await self._sync_once(reason)

    def _save_local(self, snapshot: dict, status: SyncStatus) -> None:
        meta = self._meta_provider().model_copy(update={"sync_status": status})
        self._persistence.save(self.identity, snapshot, meta)
        if self._persistence.degraded and not self._storage_degraded_reported:
            self._storage_degraded_reported = True
            self._events.publish(ev.STORAGE_DEGRADED, {"identity": str(self.identity)})

    async def _sync_once(self, reason: str) -> SyncResult:
        if self._closed:
            return SyncResult(reason=reason, status=self.sync_status, skipped=True)
        snapshot = self._store.snapshot()
        version = self._store.version
        meta = self._meta_provider()

        # Local first, marked pending until the backend acknowledges it
        self._save_local(snapshot, SyncStatus.PENDING)
        self._events.publish(ev.DRAFT_SAVED_LOCALLY, {"reason": reason, "fields": len(snapshot)})

        if not self._network.is_online:
            self.sync_status = SyncStatus.PENDING
            self._events.publish(ev.SYNC_PENDING, {"reason": reason, "offline": True})
            logger.info("sync_offline_pending reason=%s identity=%s", reason, self.identity)
            return SyncResult(reason=reason, status=self.sync_status, saved_locally=True)

        request = SaveDraftRequest(
            material_code=self.identity.material_code,
            plant_code=self.identity.plant_code,
            responses=snapshot,
            current_step=meta.current_step_index,
            completed_steps=list(meta.completed_step_indices),
        )
        warning: Optional[str] = None
        result = None
        try:
            result = await asyncio.wait_for(
                self._backend.save_draft(self.identity.workflow_id, request),
                timeout=self._push_timeout_seconds,
            )
        except asyncio.TimeoutError:
            warning = "draft push timed out"
        except BackendError as e:
            warning = f"draft push failed: {e}"

        if self._closed:
            # Session ended while the push was in flight; write nothing more
            return SyncResult(reason=reason, status=self.sync_status, saved_locally=True, skipped=True)

        if result is not None and not result.success:
            warning = result.message or "backend rejected draft"

        if warning is not None:
            self.sync_status = SyncStatus.PENDING
            self._events.publish(ev.SYNC_WARNING, {"reason": reason, "message": warning})
            logger.warning("sync_push_failed reason=%s identity=%s warning=%s", reason, self.identity, warning)
            return SyncResult(reason=reason, status=self.sync_status, saved_locally=True, warning=warning)

        self._last_pushed_version = version
        if self._store.version != version:
            # Edited while the push was in flight: the newer state is still unsent
            self.sync_status = SyncStatus.PENDING
            self._save_local(self._store.snapshot(), SyncStatus.PENDING)
        else:
            self.sync_status = SyncStatus.SYNCED
            self._save_local(snapshot, SyncStatus.SYNCED)
        self._events.publish(
            ev.DRAFT_SYNCED,
            {"reason": reason, "saved_fields": result.saved_fields, "has_changes": result.has_changes},
        )
        logger.info(
            "sync_pushed reason=%s identity=%s saved_fields=%s has_changes=%s",
            reason,
            self.identity,
            result.saved_fields,
            result.has_changes,
        )
        return SyncResult(
            reason=reason,
            status=self.sync_status,
            saved_locally=True,
            pushed=True,
            saved_fields=result.saved_fields,
            has_changes=result.has_changes,
        )


__all__ = [
    "SyncEngine",
    "SyncResult",
    "DEBOUNCE",
    "INTERVAL",
    "NAVIGATION",
    "MANUAL",
    "RECONNECT",
    "RECOVERY",
]
