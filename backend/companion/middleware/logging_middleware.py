"""
Request logging middleware.

Pure ASGI (not BaseHTTPMiddleware) so websocket scopes pass through untouched
apart from a connect/close log line. Logs method, path, status and duration
for HTTP; request bodies are logged at DEBUG with sensitive keys masked. The
``token`` query parameter is always masked.
"""

import json
import logging
import time
from typing import Dict, Optional
from urllib.parse import parse_qsl

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..core.logging_config import filter_sensitive_data, truncate_large_data

logger = logging.getLogger(__name__)


def _masked_query(scope: Scope) -> Optional[Dict[str, str]]:
    query_string = scope.get("query_string", b"").decode("utf-8", errors="ignore")
    if not query_string:
        return None
    return filter_sensitive_data(dict(parse_qsl(query_string)))


def _sanitize_body(body: bytes) -> str:
    text = body.decode("utf-8", errors="ignore")
    try:
        payload = filter_sensitive_data(json.loads(text))
        return truncate_large_data(json.dumps(payload, ensure_ascii=False), max_length=5000)
    except json.JSONDecodeError:
        return truncate_large_data(text, max_length=5000)


class RequestLoggingMiddleware:
    """Pure ASGI middleware to log API requests and websocket connections."""

    def __init__(self, app: ASGIApp, exclude_paths: Optional[list] = None):
        self.app = app
        self.exclude_paths = exclude_paths or ["/health", "/"]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "websocket":
            await self._websocket(scope, receive, send)
            return
        if scope["type"] != "http" or scope.get("path", "") in self.exclude_paths:
            await self.app(scope, receive, send)
            return
        await self._http(scope, receive, send)

    async def _http(self, scope: Scope, receive: Receive, send: Send) -> None:
        start_time = time.time()
        request_id = id(scope)
        method = scope.get("method", "UNKNOWN")
        path = scope.get("path", "")
        client = scope.get("client")
        body_chunks = []
        status_code = 0

        async def logging_receive() -> Message:
            message = await receive()
            if message["type"] == "http.request":
                body_chunks.append(message.get("body", b""))
            return message

        async def logging_send(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 0)
            await send(message)

        logger.info(
            f"Request started: {method} {path}",
            extra={"extra_fields": {
                "request_id": request_id,
                "method": method,
                "path": path,
                "query_params": _masked_query(scope),
                "client": client[0] if client else None,
            }}
        )

        try:
            await self.app(scope, logging_receive, logging_send)
        except Exception as e:
            logger.error(
                f"Request failed: {method} {path} - {e}",
                exc_info=True,
                extra={"extra_fields": {
                    "request_id": request_id,
                    "duration_ms": round((time.time() - start_time) * 1000, 2),
                    "error": str(e),
                }}
            )
            raise

        body = b"".join(body_chunks)
        if body and logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"Request body: {_sanitize_body(body)}",
                extra={"extra_fields": {"request_id": request_id}}
            )

        level = logging.WARNING if status_code >= 400 else logging.INFO
        logger.log(
            level,
            f"Request completed: {method} {path} - {status_code}",
            extra={"extra_fields": {
                "request_id": request_id,
                "status_code": status_code,
                "duration_ms": round((time.time() - start_time) * 1000, 2),
            }}
        )

    async def _websocket(self, scope: Scope, receive: Receive, send: Send) -> None:
        start_time = time.time()
        path = scope.get("path", "")
        close_code = None

        async def logging_send(message: Message) -> None:
            nonlocal close_code
            if message["type"] == "websocket.close":
                close_code = message.get("code", 1000)
            await send(message)

        logger.info(
            f"Websocket connecting: {path}",
            extra={"extra_fields": {"path": path, "query_params": _masked_query(scope)}}
        )
        try:
            await self.app(scope, receive, logging_send)
        finally:
            logger.info(
                f"Websocket finished: {path}",
                extra={"extra_fields": {
                    "path": path,
                    "close_code": close_code,
                    "duration_ms": round((time.time() - start_time) * 1000, 2),
                }}
            )
