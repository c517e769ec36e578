"""Request context middleware and JSON error handlers.

Every request gets:
- an id (``X-Request-ID``, taken from the caller when supplied)
- a structlog context carrying that id and the caller's ``X-Actor-Id``,
  so engine and service log lines can be joined to the request
- an ``X-Process-Time`` header and one access log line

AutomationException subclasses become ``{"detail", "request_id"}`` bodies
with the exception's status code.
"""

import logging
import time
from typing import Optional
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import get_settings
from core.constants import ACTOR_ID_HEADER, REQUEST_ID_HEADER
from core.exceptions import AutomationException

logger = logging.getLogger(__name__)

# Probe endpoints that are not worth an access log line.
QUIET_PATHS = ("/api/health", "/api/v1/health", "/api/v1/health/ready")


def error_response(status_code: int, detail: str, request_id: Optional[str]) -> JSONResponse:
    headers = {REQUEST_ID_HEADER: request_id} if request_id else None
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "request_id": request_id},
        headers=headers,
    )


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
        request.state.request_id = request_id
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            actor_id=request.headers.get(ACTOR_ID_HEADER),
        )
        started = time.monotonic()

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                f"Unhandled error on {request.method} {request.url.path}: {exc}",
                extra={"request_id": request_id},
                exc_info=True,
            )
            detail = "Internal server error"
            if not get_settings().is_production and str(exc):
                detail = str(exc)
            return error_response(500, detail, request_id)

        elapsed_ms = (time.monotonic() - started) * 1000
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Process-Time"] = f"{elapsed_ms:.2f}ms"

        if request.url.path not in QUIET_PATHS:
            logger.log(
                logging.WARNING if response.status_code >= 400 else logging.INFO,
                f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.0f}ms)",
                extra={"request_id": request_id, "status_code": response.status_code},
            )
        return response


def setup_exception_handlers(app: FastAPI) -> None:
    """Register JSON handlers for domain errors."""

    @app.exception_handler(AutomationException)
    async def automation_error_handler(request: Request, exc: AutomationException):
        if exc.status_code >= 500:
            logger.warning(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        return error_response(exc.status_code, exc.message, getattr(request.state, "request_id", None))

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return error_response(400, str(exc), getattr(request.state, "request_id", None))
