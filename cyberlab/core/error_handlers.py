"""
Unified exception handlers for the FastAPI app.

All errors return:
    {
        "error": "<short message>",
        "code": "<machine code>",
        "detail": {...},
        "request_id": "<hex | null>"
    }

Stack traces are never exposed in the response body; unexpected errors are
logged server-side with traceback.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from cyberlab.core.config import settings
from cyberlab.core.errors import CustodyError

_log = logging.getLogger("cyberlab.errors")


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _err_body(message: str, code: str, request: Request, detail=None) -> dict:
    return {
        "error": message,
        "code": code,
        "detail": jsonable_encoder(detail or {}),
        "request_id": _request_id(request),
    }


def register_error_handlers(app: FastAPI) -> None:
    """Attach all unified error handlers to the given FastAPI app."""

    @app.exception_handler(CustodyError)
    async def custody_error_handler(request: Request, exc: CustodyError) -> JSONResponse:
        level = logging.ERROR if exc.status_code >= 500 else logging.INFO
        _log.log(
            level,
            "%s %s request_id=%s path=%s",
            exc.code,
            exc.message,
            _request_id(request),
            request.url.path,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_err_body(exc.message, exc.code, request, exc.detail),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail = str(exc.detail) if exc.detail else "Request error"
        return JSONResponse(
            status_code=exc.status_code,
            content=_err_body(detail, "http_error", request),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        _log.warning(
            "Validation error request_id=%s path=%s",
            _request_id(request),
            request.url.path,
        )
        detail = {} if settings.app_env == "production" else {"errors": exc.errors()}
        return JSONResponse(
            status_code=422,
            content=_err_body("Invalid request body or parameters", "validation_error", request, detail),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        _log.exception(
            "Unhandled exception request_id=%s path=%s",
            _request_id(request),
            request.url.path,
        )
        return JSONResponse(
            status_code=500,
            content=_err_body("Unexpected server error", "internal_error", request),
        )
