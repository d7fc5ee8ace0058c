"""JSON logging with a per-request context.

``RequestLoggingMiddleware`` opens a context holding the request id, path and
method. Authentication binds the caller into it (``user_id`` for devices,
``admin_id`` for administrators), and ``RequestContextFilter`` copies those
fields onto every record emitted while the request is handled, including
records from the sync and matcher services.
"""

from __future__ import annotations

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

_request_context: ContextVar[Optional[Dict[str, Any]]] = ContextVar("attendance_request_context", default=None)

_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def current_request_context() -> Dict[str, Any]:
    return dict(_request_context.get() or {})


def bind_request_context(**fields: Any) -> None:
    """Attach caller fields to the request being handled; a no-op outside one."""
    context = _request_context.get()
    if context is None:
        return
    context.update({key: value for key, value in fields.items() if value is not None})


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in (_request_context.get() or {}).items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Anything passed through ``extra=`` or bound by the context filter.
        for key, value in vars(record).items():
            if key not in _RESERVED and not key.startswith("_"):
                payload[key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def configure_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    handler.addFilter(RequestContextFilter())
    logging.basicConfig(
        level=level,
        handlers=[handler],
        force=True,
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, logger_name: str = "request") -> None:
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        # Endpoint threads copy this context, so they share the dict.
        context: Dict[str, Any] = {
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
        }
        token = _request_context.set(context)
        start = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception:
                self.logger.exception(
                    "unhandled_exception",
                    extra={**context, "latency_ms": round((time.perf_counter() - start) * 1000, 2)},
                )
                raise

            fields = {
                **context,
                "status_code": response.status_code,
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
            }
            self.logger.info("request", extra=fields)
            if response.status_code in (401, 403):
                logging.getLogger("security").info("auth_rejected", extra=fields)
        finally:
            _request_context.reset(token)

        response.headers["X-Request-Id"] = request_id
        return response
