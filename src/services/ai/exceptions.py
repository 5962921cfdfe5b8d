"""Domain exceptions for image analysis and product ranking.

The taxonomy separates configuration problems, request validation problems
and provider failures. Each exception carries a stable `error_code` that is
sent to clients (SSE `error` events and JSON error envelopes) and an
`http_status` used when the error surfaces before a stream is opened.
Provider errors are never retried here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx


logger = logging.getLogger(__name__)

# Upstream text forwarded to clients is cut to this length
MAX_ERROR_MESSAGE_CHARS = 200


@dataclass(slots=True, eq=False)
class AnalysisError(Exception):
    """Base class for analysis domain errors."""

    message: str
    error_code: str
    http_status: int = 500
    retryable: bool = False

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.error_code}: {self.message}"


# --- configuration -----------------------------------------------------------


class ProviderConfigError(AnalysisError):
    def __init__(self, message: str = "Invalid provider configuration") -> None:
        super().__init__(message=message, error_code="PROVIDER_CONFIG_ERROR")


class RankingNotSupportedError(AnalysisError):
    def __init__(self, provider: str) -> None:
        super().__init__(
            message=(
                f"Provider '{provider}' does not support product ranking. "
                "Configure ANALYSIS_PROVIDER=gemini to enable ranking."
            ),
            error_code="RANKING_NOT_SUPPORTED",
            http_status=501,
        )


# --- input validation --------------------------------------------------------


class InvalidImageError(AnalysisError):
    def __init__(self, message: str = "Invalid image data") -> None:
        super().__init__(message=message, error_code="INVALID_IMAGE", http_status=400)


class InvalidRequestError(AnalysisError):
    def __init__(self, message: str) -> None:
        super().__init__(message=message, error_code="INVALID_REQUEST", http_status=400)


class SessionNotFoundError(AnalysisError):
    def __init__(self, session_id: str) -> None:
        super().__init__(
            message=f"Session not found: {session_id}",
            error_code="SESSION_NOT_FOUND",
            http_status=404,
        )


# --- provider ----------------------------------------------------------------


class ProviderAuthError(AnalysisError):
    def __init__(self, message: str = "Provider rejected the credentials") -> None:
        super().__init__(
            message=message, error_code="PROVIDER_AUTH_ERROR", http_status=502
        )


class ProviderRateLimitError(AnalysisError):
    def __init__(self, message: str = "Provider rate limit exceeded") -> None:
        super().__init__(
            message=message,
            error_code="PROVIDER_RATE_LIMIT",
            http_status=429,
            retryable=True,
        )


class ProviderTimeoutError(AnalysisError):
    def __init__(self, message: str = "Provider request timed out") -> None:
        super().__init__(
            message=message,
            error_code="PROVIDER_TIMEOUT",
            http_status=504,
            retryable=True,
        )


class ProviderApiError(AnalysisError):
    def __init__(self, message: str = "Provider request failed") -> None:
        super().__init__(
            message=message, error_code="PROVIDER_API_ERROR", http_status=502
        )


class StreamingError(AnalysisError):
    def __init__(self, message: str = "Unexpected error during streaming") -> None:
        super().__init__(message=message, error_code="STREAMING_ERROR")


def _status_of(exc: BaseException) -> int | None:
    for attr in ("status_code", "status", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def map_provider_error(exc: BaseException) -> AnalysisError:
    """Translate a raw provider/SDK exception into the analysis taxonomy.

    Classification looks at an HTTP status first (the OpenAI, Google and
    pydantic-ai HTTP errors all expose one), then at timeout types, then at
    well-known message fragments.
    """
    if isinstance(exc, AnalysisError):
        return exc

    status = _status_of(exc)
    if status in (401, 403):
        return ProviderAuthError()
    if status == 429:
        return ProviderRateLimitError()
    if status in (408, 504):
        return ProviderTimeoutError()

    if isinstance(exc, TimeoutError | httpx.TimeoutException):
        return ProviderTimeoutError()

    text = str(exc).lower()
    if "unauthorized" in text or "api key" in text or "permission" in text:
        return ProviderAuthError()
    if "rate limit" in text or "quota" in text or "resource_exhausted" in text:
        return ProviderRateLimitError()
    if "timeout" in text or "timed out" in text:
        return ProviderTimeoutError()

    if status is not None:
        return ProviderApiError(f"Provider request failed with status {status}")
    message = str(exc) or exc.__class__.__name__
    if len(message) > MAX_ERROR_MESSAGE_CHARS:
        logger.warning("Provider error truncated for client: %s", message)
        message = message[: MAX_ERROR_MESSAGE_CHARS - 3] + "..."
    return StreamingError(message)
