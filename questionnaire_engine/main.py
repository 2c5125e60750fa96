"""Reference backend application factory.

Builds a FastAPI app that implements the plant questionnaire backend
contract on in-memory state. The engine's HTTP client talks to it in tests
(through `httpx.ASGITransport`) and in local development (through uvicorn).
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError

from questionnaire_engine.http.problem import (
    handle_http_exception,
    handle_request_validation_error,
    handle_unexpected_error,
)
from questionnaire_engine.http.request_id import RequestIdMiddleware
from questionnaire_engine.logging_setup import configure_logging
from questionnaire_engine.logic.reference_state import ReferenceBackendState
from questionnaire_engine.routes import api_router

logger = logging.getLogger(__name__)

API_PREFIX = "/api"


def create_app(state: Optional[ReferenceBackendState] = None) -> FastAPI:
    configure_logging()
    app = FastAPI(title="Plant Questionnaire Reference Backend")
    app.state.reference_backend = state or ReferenceBackendState()
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.add_middleware(RequestIdMiddleware)

    @app.get("/health", include_in_schema=False)
    def health() -> dict:
        return {"status": "ok"}

    app.include_router(api_router, prefix=API_PREFIX)
    logger.info("reference_backend_created routes=%s", len(app.routes))
    return app


def serve() -> None:
    """Run the reference backend with uvicorn (`qe-reference-backend`)."""
    import uvicorn

    host = os.getenv("QE_REFERENCE_HOST", "127.0.0.1")
    port = int(os.getenv("QE_REFERENCE_PORT", "8080"))
    uvicorn.run(create_app(), host=host, port=port)


__all__ = ["create_app", "serve", "API_PREFIX"]
