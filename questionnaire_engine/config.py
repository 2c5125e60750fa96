"""Configuration utilities for the questionnaire draft engine.

This module loads engine configuration with the following rules:
- Primary source: `engine_config.json` at the project root.
- Overrides: environment variables, then optional text files under `config/`.
- Validation: Pydantic models enforce required fields and value constraints.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator


CONFIG_DIR = Path("config")
ROOT_ENGINE_CONFIG = Path("engine_config.json")
logger = logging.getLogger(__name__)


def _read_config_file(rel_path: str) -> Optional[str]:
    path = CONFIG_DIR / rel_path
    try:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read override %s: %s", path, e)
        return None
    return None


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)


class BackendConfig(BaseModel):
    base_url: str
    request_timeout_seconds: float = Field(default=10.0, gt=0)

    @field_validator("base_url")
    @classmethod
    def base_url_must_be_http(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("backend.base_url must be a non-empty string")
        if not v.startswith(("http://", "https://")):
            raise ValueError("backend.base_url must start with http:// or https://")
        return v.rstrip("/")


class SyncConfig(BaseModel):
    debounce_seconds: float = Field(default=2.0, gt=0)
    autosave_interval_seconds: float = Field(default=30.0, gt=0)


class DraftConfig(BaseModel):
    store_url: str = "sqlite+pysqlite:///:memory:"
    retention_days: int = Field(default=7, gt=0)
    schema_version: str = "2.0"

    @field_validator("schema_version")
    @classmethod
    def schema_version_non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("draft.schema_version must be a non-empty string")
        return v.strip()


class CompletionConfig(BaseModel):
    submit_threshold_percent: int = Field(default=80, ge=0, le=100)
    step_leniency_ratio: float = Field(default=0.5, ge=0, le=1)


class EngineConfig(BaseModel):
    backend: BackendConfig
    sync: SyncConfig = Field(default_factory=SyncConfig)
    draft: DraftConfig = Field(default_factory=DraftConfig)
    completion: CompletionConfig = Field(default_factory=CompletionConfig)


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


def load_config() -> EngineConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables
    2) Text files in `config/` (optional)
    3) engine_config.json at project root (primary base)
    4) Safe defaults for development
    """

    base = _read_json_file(ROOT_ENGINE_CONFIG)

    def _base(path: str, default: Optional[str] = None) -> Optional[str]:
        cur: object = base
        for key in path.split("."):
            if not isinstance(cur, dict) or key not in cur:
                return default
            cur = cur[key]
        return str(cur) if cur is not None else default

    def _pick(env_key: str, file_key: str, base_key: str, default: str) -> str:
        return str(_env(env_key) or _read_config_file(file_key) or _base(base_key, default)).strip()

    base_url = _pick("QE_BACKEND_URL", "backend.url", "backend.base_url", "http://localhost:8080/api")
    timeout_text = _pick("QE_REQUEST_TIMEOUT_SECONDS", "backend.timeout", "backend.request_timeout_seconds", "10")
    debounce_text = _pick("QE_DEBOUNCE_SECONDS", "sync.debounce", "sync.debounce_seconds", "2")
    interval_text = _pick("QE_AUTOSAVE_INTERVAL_SECONDS", "sync.interval", "sync.autosave_interval_seconds", "30")
    store_url = _pick("QE_DRAFT_STORE_URL", "draft.store_url", "draft.store_url", "sqlite+pysqlite:///:memory:")
    retention_text = _pick("QE_DRAFT_RETENTION_DAYS", "draft.retention_days", "draft.retention_days", "7")
    schema_version = _pick("QE_SCHEMA_VERSION", "draft.schema_version", "draft.schema_version", "2.0")
    threshold_text = _pick(
        "QE_SUBMIT_THRESHOLD_PERCENT", "completion.threshold", "completion.submit_threshold_percent", "80"
    )
    leniency_text = _pick(
        "QE_STEP_LENIENCY_RATIO", "completion.leniency", "completion.step_leniency_ratio", "0.5"
    )

    try:
        cfg = EngineConfig(
            backend=BackendConfig(base_url=base_url, request_timeout_seconds=float(timeout_text)),
            sync=SyncConfig(
                debounce_seconds=float(debounce_text),
                autosave_interval_seconds=float(interval_text),
            ),
            draft=DraftConfig(
                store_url=store_url,
                retention_days=int(retention_text),
                schema_version=schema_version,
            ),
            completion=CompletionConfig(
                submit_threshold_percent=int(threshold_text),
                step_leniency_ratio=float(leniency_text),
            ),
        )
        return cfg
    except (PydanticValidationError, ValueError) as e:
        logger.error("Invalid engine configuration: %s", e)
        raise


__all__ = [
    "EngineConfig",
    "BackendConfig",
    "SyncConfig",
    "DraftConfig",
    "CompletionConfig",
    "load_config",
]
