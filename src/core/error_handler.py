"""Centralized error handling and logging for the FreezeFrame API.

This module provides:
- Global exception handler for FastAPI
- Structured logging with correlation IDs
- Environment-aware error responses (generic in production, detailed in dev)
- Redaction of credentials and image payloads from logs and error bodies
"""

import logging
import sys
import traceback
import uuid
from contextvars import ContextVar
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pythonjsonlogger.json import JsonFormatter
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from core.config import get_settings
from core.security_config import (
    get_allowed_error_fields,
    is_payload_key,
    is_sensitive_key,
    summarize_payload,
)
from schemas.api import ErrorResponse
from services.ai.exceptions import AnalysisError


# Context variable for correlation ID tracking across async calls
_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

logger = logging.getLogger(__name__)


def get_correlation_id() -> str:
    """Get or create a correlation ID for request tracing."""
    correlation_id: str | None = _correlation_id_var.get()
    if not correlation_id:
        correlation_id = str(uuid.uuid4())
        _correlation_id_var.set(correlation_id)
    return correlation_id


def set_correlation_id(correlation_id: str | None) -> None:
    """Set the correlation ID for the current context."""
    _correlation_id_var.set(correlation_id)


def sanitize_log_data(data: Any) -> Any:
    """Return a copy of `data` safe to log.

    Credential-like keys are replaced by "[REDACTED]" and image payload keys
    (data URLs, thumbnail lists) by a size summary.
    """
    if isinstance(data, dict):
        sanitized: dict[str, Any] = {}
        for key, value in data.items():
            key_str = str(key)
            if is_sensitive_key(key_str):
                sanitized[key_str] = "[REDACTED]"
            elif is_payload_key(key_str):
                sanitized[key_str] = summarize_payload(value)
            else:
                sanitized[key_str] = sanitize_log_data(value)
        return sanitized
    if isinstance(data, list | tuple):
        return [sanitize_log_data(item) for item in data]
    return data


class StructuredLogger:
    """Structured logger that includes correlation IDs and sanitized data."""

    def __init__(self, logger_name: str):
        self.logger = logging.getLogger(logger_name)

    def _log_with_context(
        self,
        level: int,
        message: str,
        extra_data: dict[str, Any] | None = None,
        exc_info: bool = False,
    ) -> None:
        correlation_id = get_correlation_id()
        log_data = {
            "correlation_id": correlation_id,
            **sanitize_log_data(extra_data or {}),
        }

        if get_settings().ENVIRONMENT == "production":
            # JsonFormatter merges `extra` keys into the emitted object
            self.logger.log(level, message, extra=log_data, exc_info=exc_info)
        else:
            details = " ".join(
                f"{k}={v}" for k, v in log_data.items() if k != "correlation_id"
            )
            text = f"[{correlation_id}] {message}"
            self.logger.log(
                level, f"{text} {details}" if details else text, exc_info=exc_info
            )

    def info(self, message: str, **kwargs: Any) -> None:
        self._log_with_context(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log_with_context(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log_with_context(logging.ERROR, message, kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self._log_with_context(logging.ERROR, message, kwargs, exc_info=True)


structured_logger = StructuredLogger(__name__)


class ExceptionNormalizationMiddleware(BaseHTTPMiddleware):
    """Catch any uncaught Exception and delegate to global_exception_handler."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:  # noqa: BLE001
            return await global_exception_handler(request, exc)


def _build_error_response(
    *,
    correlation_id: str,
    error_type: str,
    message: str,
    environment: str,
    code: str | None = None,
    details: dict[str, Any] | None = None,
    traceback_str: str | None = None,
    exception_type: str | None = None,
    validation_errors: Any | None = None,
    status_code: int = 500,
) -> JSONResponse:
    """Construct a sanitized JSON error response respecting environment rules."""
    allowed_fields = get_allowed_error_fields(environment)

    error_body: dict[str, Any] = {
        "correlation_id": correlation_id,
        "type": error_type,
    }
    if code:
        error_body["code"] = code

    if "details" in allowed_fields and details:
        error_body["details"] = details
    if "traceback" in allowed_fields and traceback_str:
        error_body["traceback"] = traceback_str
    if "exception_type" in allowed_fields and exception_type:
        error_body["exception_type"] = exception_type
    if "validation_errors" in allowed_fields and validation_errors is not None:
        error_body["validation_errors"] = validation_errors

    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            message=message,
            error=error_body,
            success=False,
        ).model_dump(),
        headers={"X-Correlation-ID": correlation_id},
    )


def _validation_details(exc: ValidationError | RequestValidationError) -> list[Any]:
    """Validation errors without the offending input, which may be an image."""
    cleaned = []
    for err in exc.errors():
        entry = {k: v for k, v in err.items() if k not in {"input", "ctx", "url"}}
        if "loc" in entry:
            entry["loc"] = [str(part) for part in entry["loc"]]
        cleaned.append(entry)
    return cleaned


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler providing structured, sanitized responses.

    Analysis domain errors keep their status and machine-readable code,
    validation errors become 422, anything else a generic 500.
    """
    environment = get_settings().ENVIRONMENT
    correlation_id = get_correlation_id()

    if isinstance(exc, AnalysisError):
        log = (
            structured_logger.error
            if exc.http_status >= 500
            else structured_logger.warning
        )
        log(
            "Analysis request rejected",
            code=exc.error_code,
            path=request.url.path,
            error=exc.message,
        )
        return _build_error_response(
            correlation_id=correlation_id,
            error_type="analysis_error",
            message=exc.message,
            environment=environment,
            code=exc.error_code,
            details={"retryable": exc.retryable},
            status_code=exc.http_status,
        )

    if isinstance(exc, StarletteHTTPException):
        return _build_error_response(
            correlation_id=correlation_id,
            error_type="http_error",
            message="An HTTP error occurred",
            environment=environment,
            details={"detail": exc.detail},
            exception_type=exc.__class__.__name__,
            status_code=exc.status_code,
        )

    if isinstance(exc, ValidationError | RequestValidationError):
        validation_errors = _validation_details(exc)
        structured_logger.warning(
            "Validation error",
            path=request.url.path,
            validation_errors=validation_errors,
        )
        return _build_error_response(
            correlation_id=correlation_id,
            error_type="validation_error",
            message="Invalid request data provided",
            environment=environment,
            code="VALIDATION_ERROR",
            validation_errors=validation_errors,
            status_code=422,
        )

    structured_logger.exception(
        "Unhandled exception", exception_type=exc.__class__.__name__, error=str(exc)
    )
    traceback_str: str | None = None
    if environment != "production":
        traceback_str = "".join(traceback.format_exception(exc)).strip()

    return _build_error_response(
        correlation_id=correlation_id,
        error_type="internal_server_error",
        message="An internal error occurred",
        environment=environment,
        code="INTERNAL_ERROR",
        traceback_str=traceback_str,
        exception_type=exc.__class__.__name__,
    )


def setup_logging() -> None:
    """Configure root logging once: JSON in production, readable elsewhere."""
    settings = get_settings()
    log_level = logging.DEBUG if settings.ENVIRONMENT == "development" else logging.INFO
    root_logger = logging.getLogger()

    if root_logger.handlers:
        return

    formatter: logging.Formatter
    if settings.ENVIRONMENT == "production":
        formatter = JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"levelname": "level", "asctime": "timestamp"},
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.setLevel(log_level)

    root_logger.setLevel(log_level)
    root_logger.addHandler(handler)

    if settings.ENVIRONMENT == "production":
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("google_genai").setLevel(logging.WARNING)
