"""Functional tests for configuration precedence and validation."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError as PydanticValidationError

from questionnaire_engine.config import load_config


def test_defaults(isolated_config):
    cfg = load_config()
    assert cfg.backend.base_url == "http://localhost:8080/api"
    assert cfg.backend.request_timeout_seconds == 10
    assert cfg.sync.debounce_seconds == 2
    assert cfg.sync.autosave_interval_seconds == 30
    assert cfg.draft.retention_days == 7
    assert cfg.draft.schema_version == "2.0"
    assert cfg.completion.submit_threshold_percent == 80
    assert cfg.completion.step_leniency_ratio == 0.5


def test_precedence_env_over_file_over_json(isolated_config, monkeypatch):
    (isolated_config / "engine_config.json").write_text(
        json.dumps({"backend": {"base_url": "http://json.example/api"}, "sync": {"debounce_seconds": 5}}),
        encoding="utf-8",
    )
    cfg = load_config()
    assert cfg.backend.base_url == "http://json.example/api"
    assert cfg.sync.debounce_seconds == 5

    (isolated_config / "config").mkdir()
    (isolated_config / "config" / "backend.url").write_text("http://file.example/api\n", encoding="utf-8")
    assert load_config().backend.base_url == "http://file.example/api"

    monkeypatch.setenv("QE_BACKEND_URL", "https://env.example/api/")
    assert load_config().backend.base_url == "https://env.example/api"


def test_invalid_values_are_rejected(isolated_config, monkeypatch):
    monkeypatch.setenv("QE_SUBMIT_THRESHOLD_PERCENT", "140")
    with pytest.raises(PydanticValidationError):
        load_config()


def test_non_http_backend_url_is_rejected(isolated_config, monkeypatch):
    monkeypatch.setenv("QE_BACKEND_URL", "ftp://nope")
    with pytest.raises(PydanticValidationError):
        load_config()


def test_malformed_json_falls_back_to_defaults(isolated_config):
    (isolated_config / "engine_config.json").write_text("{broken", encoding="utf-8")
    assert load_config().backend.base_url == "http://localhost:8080/api"
