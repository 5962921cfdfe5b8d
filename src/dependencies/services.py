"""FastAPI dependencies for process-wide services living on `app.state`."""

from typing import Annotated

from fastapi import Depends, Request

from core.config import Settings, get_settings
from services.ai.orchestrator import StreamingOrchestrator
from services.ai.providers import GenerationProvider, get_analysis_provider
from services.sessions import SessionStore
from services.statistics import StatisticsService


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_statistics(request: Request) -> StatisticsService:
    return request.app.state.statistics


def get_provider(
    settings: Annotated[Settings, Depends(get_settings)],
) -> GenerationProvider:
    """Resolve the configured provider.

    Raises ProviderConfigError per request, so a missing key fails analysis
    calls without taking the process down.
    """
    return get_analysis_provider(settings)


def get_orchestrator(
    provider: Annotated[GenerationProvider, Depends(get_provider)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> StreamingOrchestrator:
    return StreamingOrchestrator(
        provider,
        min_confidence=settings.MIN_ITEM_CONFIDENCE,
        max_rankings=settings.MAX_RANKINGS,
    )


SessionStoreDep = Annotated[SessionStore, Depends(get_session_store)]
StatisticsDep = Annotated[StatisticsService, Depends(get_statistics)]
OrchestratorDep = Annotated[StreamingOrchestrator, Depends(get_orchestrator)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
