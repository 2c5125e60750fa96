"""SQLAlchemy engine construction for the local draft store.

Drafts are kept in a single key/value table. SQLite (file or in-memory) is the
default; any SQLAlchemy URL works. No declarative models are defined here;
this module only manages connection lifecycle.
"""

from __future__ import annotations

import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

DEFAULT_STORE_URL = "sqlite+pysqlite:///:memory:"


def _store_url() -> str:
    return os.getenv("QE_DRAFT_STORE_URL") or DEFAULT_STORE_URL


# Module-level cache so repeated lookups share one Engine per URL
_ENGINES: dict[str, Engine] = {}


def get_engine(url: str | None = None) -> Engine:
    """Return a cached SQLAlchemy Engine for the given URL.

    For SQLite in-memory URLs, use a StaticPool to keep a single connection
    alive so every session sees the same database.
    """
    resolved_url = url or _store_url()
    engine = _ENGINES.get(resolved_url)
    if engine is None:
        engine = create_engine(resolved_url, **_engine_kwargs(resolved_url))
        _ENGINES[resolved_url] = engine
        logger.info("draft_store_engine_created dialect=%s", engine.dialect.name)
    return engine


def new_engine(url: str) -> Engine:
    """Build an uncached Engine (isolated stores in tests)."""
    return create_engine(url, **_engine_kwargs(url))


def _engine_kwargs(url: str) -> dict:
    kwargs: dict = {"future": True, "pool_pre_ping": True}
    if url.startswith("sqlite") and ":memory:" in url:
        kwargs.update({
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        })
    return kwargs


def dispose_engines() -> None:
    for engine in _ENGINES.values():
        engine.dispose()
    _ENGINES.clear()


__all__ = ["DEFAULT_STORE_URL", "get_engine", "new_engine", "dispose_engines"]
