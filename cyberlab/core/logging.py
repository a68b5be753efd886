"""
Structured JSON Logging
========================
Configures Python's logging to emit JSON-structured log lines suitable
for production log aggregators.

Usage:
    from cyberlab.core.logging import init_logging
    init_logging()

Each log line contains:
  - timestamp (ISO-8601 UTC)
  - level
  - logger (module name)
  - message
  - request_id (when emitted while serving an HTTP request)

Uses stdlib ``logging`` with a custom ``Formatter``; the request id travels
in a contextvar set by ``RequestContextMiddleware``.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from cyberlab.core.config import settings

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")

_http_logger = logging.getLogger("cyberlab.http")


class _JSONFormatter(logging.Formatter):
    """Emit each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_ctx.get()
        if request_id:
            payload["request_id"] = request_id

        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def init_logging(*, level: str | None = None, json_lines: bool | None = None) -> None:
    """
    Attach a single stdout handler to the root logger.

    Parameters
    ----------
    level : str, optional
        Override log level (DEBUG, INFO, WARNING, ERROR).
    json_lines : bool, optional
        Override ``settings.log_json``.
    """
    level = level or settings.log_level
    json_lines = settings.log_json if json_lines is None else json_lines

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root.handlers[:]:
        root.handlers.remove(handler)

    handler = logging.StreamHandler(sys.stdout)
    if json_lines:
        handler.setFormatter(_JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        ))
    root.addHandler(handler)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign a request id, log request start / end, echo ``X-Request-ID``."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        token = request_id_ctx.set(request_id)
        request.state.request_id = request_id
        try:
            _http_logger.info("request_start %s %s", request.method, request.url.path)
            response = await call_next(request)
            _http_logger.info(
                "request_end %s %s status=%d",
                request.method,
                request.url.path,
                response.status_code,
            )
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            request_id_ctx.reset(token)
