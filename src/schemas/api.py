"""API response schemas.

This module defines the common API response formats used across the application.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


# Type variable for generic response types
T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Standard API response wrapper.

    Attributes:
        success: Whether the request was successful.
        data: The actual response data (when success is True).
        message: A human-readable message about the response.
        error: Error details (when success is False).
    """

    success: bool = True
    data: T | None = None
    message: str = "Operation completed successfully"
    error: dict[str, Any] | None = None


class ErrorResponse(ApiResponse[None]):
    """Error API response; `error` carries `code` and `correlation_id`."""

    success: bool = False
    message: str = "An error occurred"
    error: dict[str, Any] | None = None


class _CamelPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SessionImage(_CamelPayload):
    session_id: str
    image: str


class SessionEnded(_CamelPayload):
    session_id: str
    existed: bool


class HealthStatus(_CamelPayload):
    status: str
    uptime_seconds: float
    environment: str
    version: str
    provider: str
    ranking_supported: bool
    active_sessions: int
