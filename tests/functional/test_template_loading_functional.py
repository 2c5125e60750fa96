"""Functional tests for template loading, fallback and auto-source annotation."""

from __future__ import annotations

import pytest

from conftest import FakeBackend, backend_error
from questionnaire_engine.errors import TemplateUnavailable
from questionnaire_engine.logic.fallback_template import default_template
from questionnaire_engine.logic.template_loader import (
    fetch_auto_source_values,
    load_template,
    load_template_or_fallback,
    parse_template_payload,
    resolve_auto_sources,
)
from questionnaire_engine.models.backend_types import TemplatePayload
from questionnaire_engine.models.field_kind import FieldKind


@pytest.mark.anyio
async def test_load_template_maps_wire_types_onto_field_kinds(backend: FakeBackend):
    template = await load_template(backend, "MAT-7", "P01")
    assert template.source == "backend"
    assert template.step_count == 3
    assert template.field("msds_available").kind is FieldKind.SINGLE_CHOICE
    assert template.field("missing_info").kind is FieldKind.TEXT
    assert template.field("flash_point").auto_source is True


@pytest.mark.anyio
async def test_load_template_raises_when_backend_fails(backend: FakeBackend):
    backend.template_error = backend_error(500)
    with pytest.raises(TemplateUnavailable):
        await load_template(backend, "MAT-7", "P01")


@pytest.mark.anyio
async def test_fallback_template_substitutes_on_failure(backend: FakeBackend):
    backend.template_error = backend_error(503)
    template = await load_template_or_fallback(backend, "MAT-7", "P01")
    assert template.source == "fallback"
    assert [s.title for s in template.steps] == [s.title for s in default_template().steps]


@pytest.mark.anyio
async def test_fallback_reports_the_load_failure_to_the_caller(backend: FakeBackend):
    backend.template_error = backend_error(503)
    failures = []
    template = await load_template_or_fallback(backend, "MAT-7", "P01", on_fallback=failures.append)
    assert template.source == "fallback"
    assert len(failures) == 1
    assert isinstance(failures[0], TemplateUnavailable)


@pytest.mark.anyio
async def test_fallback_callback_is_not_called_on_success(backend: FakeBackend):
    failures = []
    template = await load_template_or_fallback(backend, "MAT-7", "P01", on_fallback=failures.append)
    assert template.source == "backend"
    assert failures == []


def test_parse_rejects_empty_step_list():
    with pytest.raises(TemplateUnavailable):
        parse_template_payload(TemplatePayload(steps=[]))


def test_parse_rejects_unknown_field_type():
    payload = TemplatePayload.model_validate(
        {"steps": [{"title": "S1", "fields": [{"name": "a", "type": "hologram"}]}]}
    )
    with pytest.raises(TemplateUnavailable):
        parse_template_payload(payload)


def test_parse_rejects_duplicate_field_names():
    payload = TemplatePayload.model_validate(
        {
            "steps": [
                {"title": "S1", "fields": [{"name": "a", "type": "input"}]},
                {"title": "S2", "fields": [{"name": "a", "type": "textarea"}]},
            ]
        }
    )
    with pytest.raises(TemplateUnavailable):
        parse_template_payload(payload)


def test_parse_uses_step_title_then_step_number():
    payload = TemplatePayload.model_validate(
        {
            "steps": [
                {"stepTitle": "From stepTitle", "fields": []},
                {"stepNumber": 7, "fields": []},
            ]
        }
    )
    template = parse_template_payload(payload)
    assert [s.title for s in template.steps] == ["From stepTitle", "Step 7"]


def test_parse_accepts_legacy_auto_populated_flag():
    payload = TemplatePayload.model_validate(
        {"steps": [{"title": "S", "fields": [{"name": "a", "type": "input", "cqsAutoPopulated": True}]}]}
    )
    assert parse_template_payload(payload).field("a").auto_source is True


def test_fallback_template_has_unique_names_and_auto_fields():
    template = default_template()
    names = template.field_names()
    assert len(names) == len(set(names))
    assert template.step_count == 10
    assert any(f.auto_source for f in template.iter_fields())


def test_resolved_auto_source_field_is_locked_and_unresolved_stays_editable(template):
    resolved = resolve_auto_sources(template, {"flash_point": "23 C", "is_flammable": ""})
    assert resolved.field("flash_point").editable is False
    assert resolved.field("flash_point").auto_value == "23 C"
    assert resolved.field("is_flammable").editable is True
    # The input template is left untouched
    assert template.field("flash_point").auto_value is None


def test_placeholder_and_non_auto_values_are_ignored(template):
    resolved = resolve_auto_sources(
        template, {"flash_point": "Data not available", "boiling_point": "100", "unknown": "x"}
    )
    assert resolved.auto_source_values() == {}


@pytest.mark.anyio
async def test_auto_source_failure_degrades_to_empty_map(backend: FakeBackend):
    backend.cqs_error = backend_error(502)
    assert await fetch_auto_source_values(backend, "MAT-7", "P01") == {}
