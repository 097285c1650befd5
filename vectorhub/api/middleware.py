"""API middleware: CORS, request logging, and error handling.

Error bodies are always ``{"code", "message", "details"}``:

* :class:`VectorHubError` subclasses map to their own ``code`` and
  ``status_code`` through an exception handler registered on the app.
* Request validation failures become ``400 VALIDATION_ERROR`` with a
  per-field ``details`` map (``INVALID_JSON`` when the body does not parse).
* Anything else is caught by :class:`ErrorHandlingMiddleware`, logged with
  its traceback, and answered with a generic ``500 INTERNAL_ERROR``.

Middleware order (set in ``main.create_app``)::

    Client -> RequestLogging -> ErrorHandling -> route handler
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from vectorhub.api.schemas import ErrorResponse
from vectorhub.utils.errors import RateLimitError, VectorHubError
from vectorhub.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

# Location prefixes FastAPI adds to validation errors; clients only care
# about the field path inside the body or query string.
_LOCATION_PREFIXES = frozenset({"body", "query", "path", "header"})


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware to the FastAPI application.

    Parameters
    ----------
    app:
        The FastAPI application instance.
    allowed_origins:
        Explicit list of allowed origins.  Defaults to ``["*"]``.
    """
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "Retry-After",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
        ],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=duration_ms,
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


def error_response(
    status_code: int,
    code: str,
    message: str,
    details: dict[str, list[str]] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ErrorResponse(code=code, message=message, details=details)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


def _rate_limit_headers(exc: RateLimitError) -> dict[str, str]:
    headers = {"Retry-After": str(exc.retry_after), "X-RateLimit-Remaining": "0"}
    if exc.limit is not None:
        headers["X-RateLimit-Limit"] = str(exc.limit)
    if exc.reset_at is not None:
        headers["X-RateLimit-Reset"] = str(int(exc.reset_at))
    return headers


async def handle_vectorhub_error(request: Request, exc: VectorHubError) -> JSONResponse:
    """Convert an application error into its structured JSON response."""
    log = _logger.error if exc.status_code >= 500 else _logger.warning
    log(
        "application_error",
        error_type=type(exc).__name__,
        code=exc.code,
        message=exc.message,
        provider=exc.provider_name,
        path=str(request.url.path),
    )
    headers = _rate_limit_headers(exc) if isinstance(exc, RateLimitError) else None
    return error_response(exc.status_code, exc.code, exc.message, exc.details, headers)


def _validation_details(exc: RequestValidationError) -> dict[str, list[str]]:
    details: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ())]
        if loc and loc[0] in _LOCATION_PREFIXES:
            loc = loc[1:]
        key = ".".join(loc) or "body"
        details.setdefault(key, []).append(err.get("msg", "Invalid value"))
    return details


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Answer malformed requests with 400 and a per-field error map."""
    if any(err.get("type") == "json_invalid" for err in exc.errors()):
        return error_response(400, "INVALID_JSON", "Request body must be valid JSON")
    details = _validation_details(exc)
    _logger.info("request_validation_failed", path=str(request.url.path), fields=list(details))
    return error_response(400, "VALIDATION_ERROR", "Request validation failed", details)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the VectorHubError and validation-error handlers on *app*."""
    app.add_exception_handler(VectorHubError, handle_vectorhub_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Last line of defence for exceptions no handler claimed.

    Stack traces are logged server-side only; the client sees a generic
    ``INTERNAL_ERROR`` body.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except VectorHubError as exc:
            return await handle_vectorhub_error(request, exc)
        except Exception:
            _logger.exception(
                "unhandled_error",
                method=request.method,
                path=str(request.url.path),
            )
            return error_response(500, "INTERNAL_ERROR", "An unexpected error occurred")
