"""Central logging configuration for the engine and its reference backend.

Installs one stdout handler on the root logger so every module logger emits
`event_name key=value` lines without per-module setup. The level comes from
`QE_LOG_LEVEL` (default INFO). Chatty third-party loggers (httpx request
lines, SQLAlchemy engine echo) are held at WARNING.
"""
from __future__ import annotations
import logging
import os
from logging.config import dictConfig


def _dict_config(level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "engine": {"format": "%(asctime)s %(levelname)-7s %(name)s %(message)s"},
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "engine",
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": level, "handlers": ["stdout"]},
        "loggers": {
            "questionnaire_engine": {"level": level},
            "httpx": {"level": "WARNING"},
            "sqlalchemy.engine": {"level": "WARNING"},
            "uvicorn.error": {"level": level},
            "uvicorn.access": {"level": "WARNING"},
        },
    }


def configure_logging(level: str | None = None) -> None:
    """Configure logging once per process.

    Returns early when the root logger already has handlers (test runners,
    host applications that configured logging themselves).
    """
    if logging.getLogger().hasHandlers():
        return
    resolved = (level or os.getenv("QE_LOG_LEVEL") or "INFO").upper()
    dictConfig(_dict_config(resolved))


__all__ = ["configure_logging"]
