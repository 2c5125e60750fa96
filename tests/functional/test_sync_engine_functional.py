"""Functional tests for the sync engine: triggers, offline handling and teardown."""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeBackend, backend_error
from questionnaire_engine.logic import events as ev
from questionnaire_engine.logic.draft_persistence import DraftPersistence
from questionnaire_engine.logic.draft_storage import InMemoryDraftStorage
from questionnaire_engine.logic.events import EventPublisher
from questionnaire_engine.logic.field_store import FieldValueStore
from questionnaire_engine.logic.sync_engine import DEBOUNCE, INTERVAL, MANUAL, RECONNECT, SyncEngine
from questionnaire_engine.models.backend_types import SaveDraftResult
from questionnaire_engine.models.draft import DraftMeta, SyncStatus


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


def _engine(identity, backend, storage, network, scheduler, clock, **kwargs):
    store = FieldValueStore()
    persistence = DraftPersistence(storage, clock=clock)
    events = EventPublisher()
    engine = SyncEngine(
        identity,
        store,
        persistence,
        backend,
        network,
        scheduler,
        events,
        lambda: DraftMeta(current_step_index=0, completed_step_indices=[]),
        debounce_seconds=kwargs.get("debounce", 2),
        interval_seconds=kwargs.get("interval", 30),
        push_timeout_seconds=kwargs.get("timeout", 0.2),
    )
    engine.start()
    return engine, store, persistence, events


@pytest.mark.anyio
async def test_scenario_c_offline_edit_stays_pending_until_reconnect(
    identity, backend: FakeBackend, storage, network, scheduler, clock
):
    engine, store, persistence, events = _engine(identity, backend, storage, network, scheduler, clock)
    store.set_many({"msds_available": "yes", "remarks": "all filled"})
    await engine.sync(MANUAL)
    assert engine.sync_status is SyncStatus.SYNCED
    pushes_before = len(backend.save_calls)

    network.set_online(False)
    store.set("remarks", "changed while offline")
    result = await engine.sync(MANUAL)

    assert result.status is SyncStatus.PENDING
    assert result.saved_locally is True
    assert len(backend.save_calls) == pushes_before
    assert persistence.load(identity).answers["remarks"] == "changed while offline"

    network.set_online(True)
    await engine.drain()
    assert engine.sync_status is SyncStatus.SYNCED
    assert backend.save_calls[-1].responses["remarks"] == "changed while offline"
    assert ev.NETWORK_RECONNECTED in events.types()
    engine.close()


@pytest.mark.anyio
async def test_debounce_restarts_on_every_edit(identity, backend, storage, network, scheduler, clock):
    engine, store, _, _ = _engine(identity, backend, storage, network, scheduler, clock)
    store.set("a", "1")
    engine.notify_edit()
    scheduler.advance(1.5)
    store.set("a", "2")
    engine.notify_edit()
    scheduler.advance(1.5)
    await engine.drain()
    assert backend.save_calls == []

    scheduler.advance(0.5)
    await engine.drain()
    assert len(backend.save_calls) == 1
    assert backend.save_calls[0].responses == {"a": "2"}
    engine.close()


@pytest.mark.anyio
async def test_interval_fires_only_with_unsynced_changes(identity, backend, storage, network, scheduler, clock):
    engine, store, _, events = _engine(identity, backend, storage, network, scheduler, clock)
    scheduler.advance(30)
    await engine.drain()
    assert backend.save_calls == []

    store.set("a", "1")
    scheduler.advance(30)
    await engine.drain()
    assert len(backend.save_calls) == 1

    scheduler.advance(30)
    await engine.drain()
    assert len(backend.save_calls) == 1
    engine.close()


@pytest.mark.anyio
async def test_push_failure_is_soft_and_keeps_local_copy(identity, backend, storage, network, scheduler, clock):
    engine, store, persistence, events = _engine(identity, backend, storage, network, scheduler, clock)
    backend.save_error = backend_error(500)
    store.set("a", "1")
    result = await engine.sync(MANUAL)
    assert result.status is SyncStatus.PENDING
    assert result.warning
    assert ev.SYNC_WARNING in events.types()
    assert store.get("a") == "1"
    assert persistence.load(identity).sync_status is SyncStatus.PENDING
    engine.close()


@pytest.mark.anyio
async def test_backend_rejection_is_treated_as_failure(identity, backend, storage, network, scheduler, clock):
    engine, store, _, _ = _engine(identity, backend, storage, network, scheduler, clock)
    backend.save_result = SaveDraftResult(success=False, message="locked by reviewer")
    store.set("a", "1")
    result = await engine.sync(MANUAL)
    assert result.status is SyncStatus.PENDING
    assert result.warning == "locked by reviewer"
    engine.close()


@pytest.mark.anyio
async def test_push_timeout_is_treated_as_failure(identity, backend, storage, network, scheduler, clock):
    engine, store, _, _ = _engine(identity, backend, storage, network, scheduler, clock, timeout=0.05)
    backend.save_hang = asyncio.Event()
    store.set("a", "1")
    result = await engine.sync(MANUAL)
    assert result.status is SyncStatus.PENDING
    assert "timed out" in result.warning
    engine.close()


@pytest.mark.anyio
async def test_edits_are_not_blocked_by_in_flight_push(identity, backend, storage, network, scheduler, clock):
    engine, store, persistence, _ = _engine(identity, backend, storage, network, scheduler, clock, timeout=5)
    backend.save_hang = asyncio.Event()
    store.set("a", "1")
    task = engine.trigger(MANUAL)
    await _settle()
    assert len(backend.save_calls) == 1

    store.set("a", "2")
    assert store.get("a") == "2"

    backend.save_hang.set()
    result = await task
    assert result.pushed is True
    assert store.get("a") == "2"
    # The acknowledged push predates the edit, so the draft stays pending
    assert engine.sync_status is SyncStatus.PENDING
    assert persistence.load(identity).answers == {"a": "2"}
    engine.close()


@pytest.mark.anyio
async def test_each_run_pushes_the_latest_full_snapshot(identity, backend, storage, network, scheduler, clock):
    engine, store, _, _ = _engine(identity, backend, storage, network, scheduler, clock, timeout=5)
    backend.save_hang = asyncio.Event()
    store.set("a", "1")
    first = engine.trigger(MANUAL)
    await _settle()
    store.set_many({"a": "2", "b": "3"})
    second = engine.trigger(DEBOUNCE)
    backend.save_hang.set()
    await asyncio.gather(first, second)
    assert backend.save_calls[-1].responses == {"a": "2", "b": "3"}
    engine.close()


@pytest.mark.anyio
async def test_close_cancels_timers_and_ignores_later_triggers(
    identity, backend, storage, network, scheduler, clock
):
    engine, store, persistence, _ = _engine(identity, backend, storage, network, scheduler, clock)
    store.set("a", "1")
    engine.notify_edit()
    engine.close()

    assert scheduler.pending() == []
    assert network.listener_count == 0
    assert engine.trigger(INTERVAL) is None
    scheduler.advance(120)
    network.set_online(False)
    network.set_online(True)
    await engine.drain()
    assert backend.save_calls == []
    assert persistence.load(identity) is None


@pytest.mark.anyio
async def test_close_during_push_writes_nothing_more(identity, backend, storage, network, scheduler, clock):
    engine, store, persistence, events = _engine(identity, backend, storage, network, scheduler, clock, timeout=5)
    backend.save_hang = asyncio.Event()
    store.set("a", "1")
    task = engine.trigger(MANUAL)
    await _settle()
    engine.close()
    await engine.drain()
    assert task.cancelled()
    assert ev.DRAFT_SYNCED not in events.types()
    assert persistence.load(identity).sync_status is SyncStatus.PENDING


@pytest.mark.anyio
async def test_reconnect_without_pending_does_not_push(identity, backend, storage, network, scheduler, clock):
    engine, _, _, events = _engine(identity, backend, storage, network, scheduler, clock)
    network.set_online(False)
    network.set_online(True)
    await engine.drain()
    assert backend.save_calls == []
    assert events.types() == [ev.NETWORK_DISCONNECTED, ev.NETWORK_RECONNECTED]
    engine.close()


@pytest.mark.anyio
async def test_storage_degradation_is_reported_once(identity, backend, network, scheduler, clock):
    storage = InMemoryDraftStorage()
    storage.disabled = True
    engine, store, _, events = _engine(identity, backend, storage, network, scheduler, clock)
    store.set("a", "1")
    await engine.sync(MANUAL)
    await engine.sync(RECONNECT)
    assert events.types().count(ev.STORAGE_DEGRADED) == 1
    assert engine.sync_status is SyncStatus.SYNCED
    engine.close()


def test_event_buffer_drops_oldest_beyond_limit():
    events = EventPublisher(buffer_limit=3)
    for i in range(5):
        events.publish(ev.DRAFT_SAVED_LOCALLY, {"n": i})
    buffered = events.get_buffered_events(clear=False)
    assert [e["payload"]["n"] for e in buffered] == [2, 3, 4]
    assert len(events.types()) == 3


def test_default_event_buffer_is_bounded():
    events = EventPublisher()
    for i in range(ev.EVENT_BUFFER_LIMIT + 10):
        events.publish(ev.SYNC_PENDING, {"n": i})
    buffered = events.get_buffered_events()
    assert len(buffered) == ev.EVENT_BUFFER_LIMIT
    assert buffered[0]["payload"]["n"] == 10
    assert events.types() == []
