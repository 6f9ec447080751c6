from __future__ import annotations

import time
import uuid

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from aggregator_engine.errors import (
    AggregatorError,
    DuplicateError,
    NotFoundError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = b"x-request-id"


class RequestIDMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        incoming = dict(scope.get("headers") or []).get(REQUEST_ID_HEADER)
        request_id = incoming.decode("latin-1") if incoming else uuid.uuid4().hex
        scope.setdefault("state", {})
        scope["state"]["request_id"] = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start = time.perf_counter()
        status = {"code": 500}

        async def send_wrapper(message):
            if message.get("type") == "http.response.start":
                status["code"] = message.get("status", 500)
                headers = message.setdefault("headers", [])
                headers.append((REQUEST_ID_HEADER, request_id.encode("latin-1")))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            dur_ms = int((time.perf_counter() - start) * 1000)
            logger.info(
                "request_completed",
                method=scope.get("method", ""),
                path=scope.get("path", ""),
                status=status["code"],
                duration_ms=dur_ms,
            )
            structlog.contextvars.unbind_contextvars("request_id")


def status_for(exc: AggregatorError) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, DuplicateError):
        return 409
    return 500


def _error_body(message: str, error: str | None = None) -> dict:
    body = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    return body


async def aggregator_exception_handler(request: Request, exc: AggregatorError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("request_failed", error=exc.message, code=exc.code)
        settings = request.app.state.settings
        detail = None if settings.is_production else exc.message
        return JSONResponse(status_code=status_code, content=_error_body("Internal server error", detail))
    return JSONResponse(status_code=status_code, content=_error_body(exc.message, exc.code))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = "Route not found"
    else:
        message = str(exc.detail)
    # Header added by RequestIDMiddleware; avoid duplicates here
    return JSONResponse(status_code=exc.status_code, content=_error_body(message))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", error=str(exc))
    settings = request.app.state.settings
    detail = None if settings.is_production else str(exc)
    return JSONResponse(status_code=500, content=_error_body("Internal server error", detail))
