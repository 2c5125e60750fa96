"""Functional tests for the Field Value Store precedence and change tracking."""

from __future__ import annotations

import pytest

from questionnaire_engine.errors import ReadOnlyError
from questionnaire_engine.logic.answer_values import canonicalize_answer_value
from questionnaire_engine.logic.field_store import FieldValueStore, effective_value


def test_precedence_edit_over_persisted_over_auto():
    edits = {"a": "edit"}
    persisted = {"a": "stored", "b": "stored"}
    auto = {"a": "auto", "b": "auto", "c": "auto"}
    assert effective_value("a", edits, persisted, auto) == "edit"
    assert effective_value("b", edits, persisted, auto) == "stored"
    assert effective_value("c", edits, persisted, auto) == "auto"
    assert effective_value("d", edits, persisted, auto) is None


def test_cleared_edit_masks_lower_layers():
    store = FieldValueStore()
    store.hydrate_persisted({"remarks": "old"})
    store.set("remarks", "")
    assert store.get("remarks") == ""
    assert "remarks" not in store.snapshot()


def test_late_auto_source_never_clobbers_edit():
    store = FieldValueStore()
    store.set("flash_point", "manual 40 C")
    applied = store.apply_auto_source({"flash_point": "23 C", "boiling_point": "100"})
    assert store.get("flash_point") == "manual 40 C"
    assert applied == ["boiling_point"]


def test_late_auto_source_never_clobbers_persisted_answer():
    store = FieldValueStore()
    store.hydrate_persisted({"flash_point": "recovered"})
    store.apply_auto_source({"flash_point": "23 C"})
    assert store.get("flash_point") == "recovered"


def test_auto_source_shows_through_where_no_manual_value():
    store = FieldValueStore()
    store.apply_auto_source({"is_flammable": "yes", "flash_point": "Data not available"})
    assert store.snapshot() == {"is_flammable": "yes"}


def test_hydrate_skips_empty_values():
    store = FieldValueStore()
    loaded = store.hydrate_persisted({"a": "x", "b": "", "c": [], "d": None, "e": "  "})
    assert loaded == 1
    assert store.snapshot() == {"a": "x"}


def test_edits_apply_in_order_given():
    store = FieldValueStore()
    store.set_many({"a": "1"})
    store.set_many({"a": "2"})
    store.set("a", "3")
    assert store.get("a") == "3"


def test_values_are_canonicalized():
    assert canonicalize_answer_value(True) == "true"
    assert canonicalize_answer_value(12.0) == "12"
    assert canonicalize_answer_value(["b", "a", "b"]) == ["b", "a"]
    store = FieldValueStore()
    store.set("ppe", ("gloves", "goggles"))
    assert store.get("ppe") == ["gloves", "goggles"]


def test_unsupported_value_type_is_rejected():
    store = FieldValueStore()
    with pytest.raises(TypeError):
        store.set("a", {"nested": 1})


def test_listeners_receive_changed_names_and_can_unsubscribe():
    store = FieldValueStore()
    seen = []
    unsubscribe = store.subscribe(seen.append)
    store.set_many({"a": "1", "b": "2"})
    store.set("a", "1")  # unchanged
    unsubscribe()
    store.set("c", "3")
    assert seen == [["a", "b"]]


def test_version_advances_on_every_mutation():
    store = FieldValueStore()
    v0 = store.version
    store.set("a", "1")
    store.hydrate_persisted({"b": "2"})
    store.apply_auto_source({"c": "3"})
    assert store.version == v0 + 3


def test_read_only_store_rejects_writes():
    store = FieldValueStore()
    store.set("a", "1")
    store.make_read_only()
    with pytest.raises(ReadOnlyError):
        store.set("a", "2")
    with pytest.raises(ReadOnlyError):
        store.apply_auto_source({"b": "x"})
    assert store.snapshot() == {"a": "1"}
