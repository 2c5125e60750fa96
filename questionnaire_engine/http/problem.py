"""Problem+JSON utilities and global exception handlers.

Defines the RFC7807 media type and the handler callables that turn errors
raised by the reference backend into application/problem+json responses.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

PROBLEM_MEDIA_TYPE = "application/problem+json"

logger = logging.getLogger(__name__)


def problem(status: int, title: str, detail: str = "", **extra: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"title": title, "status": status}
    if detail:
        body["detail"] = detail
    body.update(extra)
    return body


def problem_exception(status: int, title: str, detail: str = "", **extra: Any) -> HTTPException:
    return HTTPException(status_code=status, detail=problem(status, title, detail, **extra))


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:  # noqa: D401
    status_code = int(exc.status_code or 500)
    if isinstance(exc.detail, dict):
        body = dict(exc.detail)
    else:
        body = problem(status_code, "Error", str(exc.detail or ""))
    headers = {str(k): str(v) for k, v in (exc.headers or {}).items()}
    return JSONResponse(body, status_code=status_code, media_type=PROBLEM_MEDIA_TYPE, headers=headers or None)


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:  # noqa: D401
    logger.info("request_validation_failed path=%s errors=%s", request.url.path, len(exc.errors()))
    body = problem(422, "Invalid Request", "Request validation failed", errors=list(exc.errors()))
    return JSONResponse(body, status_code=422, media_type=PROBLEM_MEDIA_TYPE)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:  # noqa: D401
    logger.error("unexpected_error path=%s", request.url.path, exc_info=True)
    return JSONResponse(problem(500, "Internal Server Error"), status_code=500, media_type=PROBLEM_MEDIA_TYPE)


__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "problem",
    "problem_exception",
    "handle_http_exception",
    "handle_request_validation_error",
    "handle_unexpected_error",
]
