"""Middleware for request correlation IDs and access logging."""

import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from core.error_handler import set_correlation_id, structured_logger


CORRELATION_HEADER = "X-Correlation-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Attach a correlation ID to every request and log its outcome.

    A client-supplied `X-Correlation-ID` is reused, otherwise a new one is
    generated. The ID is stored in the logging context and on
    `request.state`, and echoed back in the response headers. For SSE
    responses the logged duration covers time to first byte only.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id

        started = time.perf_counter()
        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id

        structured_logger.info(
            "Request handled",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=int((time.perf_counter() - started) * 1000),
        )
        return response
