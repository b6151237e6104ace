from __future__ import annotations

import os
import time
import uuid
from collections.abc import Awaitable, Callable, MutableMapping
from typing import Any

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars

Message = MutableMapping[str, Any]
Scope = MutableMapping[str, Any]
Receive = Callable[[], Awaitable[Message]]
Send = Callable[[Message], Awaitable[None]]
ASGIApp = Callable[[Scope, Receive, Send], Awaitable[None]]


class RequestIDMiddleware:
    """Bind a request ID plus request metadata to the structlog context."""

    def __init__(self, app: ASGIApp, header_name: str | None = None) -> None:
        self.app = app
        self.header_name = header_name or os.getenv("REQUEST_ID_HEADER", "X-Request-ID")
        self._header_key = self.header_name.lower().encode("latin-1")
        self.log = structlog.get_logger("bookchat.request")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id = self._incoming_id(scope.get("headers") or []) or uuid.uuid4().hex
        scope.setdefault("state", {})["request_id"] = request_id
        clear_contextvars()
        bind_contextvars(
            request_id=request_id,
            path=scope.get("path", ""),
            method=scope.get("method", ""),
            status=None,
            latency_ms=None,
        )

        started = time.perf_counter()
        status_code: int | None = None

        def _finish(code: int) -> None:
            latency = round((time.perf_counter() - started) * 1000, 3)
            bind_contextvars(status=code, latency_ms=latency)

        async def send_with_id(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = int(message.get("status", 500))
                headers = list(message.get("headers") or [])
                if not any(key.lower() == self._header_key for key, _ in headers):
                    headers.append(
                        (self.header_name.encode("latin-1"), request_id.encode("latin-1"))
                    )
                message["headers"] = headers
                bind_contextvars(status=status_code)
            elif message["type"] == "http.response.body" and not message.get("more_body", False):
                _finish(status_code or 200)
                self.log.info("http.request")
            await send(message)

        try:
            await self.app(scope, receive, send_with_id)
        except Exception:
            _finish(status_code or 500)
            self.log.exception("http.request.error")
            raise
        finally:
            clear_contextvars()

    def _incoming_id(self, headers: list[tuple[bytes, bytes]]) -> str | None:
        for key, value in headers:
            if key.lower() == self._header_key:
                decoded = value.decode("latin-1").strip()
                return decoded or None
        return None
