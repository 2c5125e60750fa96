"""Correlation id middleware for the reference backend.

The caller's X-Request-Id is reused when present, otherwise a uuid4 is
minted. The id is exposed to handlers as `request.state.request_id` and
returned on the response.
"""

from __future__ import annotations

import uuid
from typing import Iterable, Optional, Tuple

REQUEST_ID_HEADER = "X-Request-Id"


def _find_header(headers: Iterable[Tuple[bytes, bytes]], key: bytes) -> Optional[bytes]:
    for name, value in headers:
        if name.lower() == key:
            return value
    return None


class RequestIdMiddleware:
    """Pure ASGI middleware; non-HTTP scopes pass straight through."""

    def __init__(self, app, header: str = REQUEST_ID_HEADER) -> None:  # type: ignore[no-untyped-def]
        self.app = app
        self._raw_header = header.encode("latin-1")
        self._key = header.lower().encode("latin-1")

    async def __call__(self, scope, receive, send):  # type: ignore[no-untyped-def]
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        request_id = _find_header(scope.get("headers") or [], self._key) or uuid.uuid4().hex.encode("latin-1")
        scope.setdefault("state", {})["request_id"] = request_id.decode("latin-1")

        async def send_with_id(event):  # type: ignore[no-untyped-def]
            if event["type"] == "http.response.start":
                headers = list(event.get("headers") or [])
                if _find_header(headers, self._key) is None:
                    headers.append((self._raw_header, request_id))
                event = dict(event, headers=headers)
            await send(event)

        await self.app(scope, receive, send_with_id)


__all__ = ["RequestIdMiddleware", "REQUEST_ID_HEADER"]
