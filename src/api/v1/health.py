import time

from fastapi import APIRouter, Request

from core.config import SUPPORTED_PROVIDERS
from dependencies.services import SessionStoreDep, SettingsDep
from schemas.api import ApiResponse, HealthStatus
from services.ai.providers import provider_supports_ranking


router = APIRouter()


@router.get("/health", response_model=ApiResponse[HealthStatus])
def health_check(
    request: Request, sessions: SessionStoreDep, settings: SettingsDep
) -> ApiResponse[HealthStatus]:
    """Health check endpoint for monitoring and load balancer health checks.

    Reports the configured provider without requiring its credentials, so a
    misconfigured key does not fail the health check.
    """
    provider = settings.ANALYSIS_PROVIDER
    return ApiResponse(
        data=HealthStatus(
            status="healthy" if provider in SUPPORTED_PROVIDERS else "degraded",
            uptime_seconds=round(time.monotonic() - request.app.state.started_at, 3),
            environment=settings.ENVIRONMENT,
            version=settings.APP_VERSION,
            provider=provider,
            ranking_supported=provider_supports_ranking(provider),
            active_sessions=sessions.active_count,
        ),
        message="Health check successful",
    )
