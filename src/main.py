import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.v1.api import api_router
from core.config import get_settings
from core.error_handler import (
    ExceptionNormalizationMiddleware,
    global_exception_handler,
    setup_logging,
)
from core.middleware import CorrelationIdMiddleware
from core.scheduler import scheduler_lifespan
from services.ai.exceptions import AnalysisError
from services.sessions import SessionStore
from services.statistics import StatisticsService


logger = logging.getLogger(__name__)


def validate_cors_origins(origins: list[str]) -> list[str]:
    """Drop CORS origins that are not absolute http(s) URLs."""

    def is_valid_url(url: str) -> bool:
        parsed = urlparse(url)
        return bool(parsed.scheme in {"http", "https"} and parsed.netloc)

    validated_origins = []
    for origin in origins:
        if is_valid_url(origin):
            validated_origins.append(origin)
        else:
            logger.warning(f"Invalid CORS origin '{origin}' ignored")
    return validated_origins


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    store = SessionStore(
        ttl_seconds=settings.SESSION_TTL_SECONDS,
        max_sessions=settings.MAX_SESSIONS,
    )
    app.state.session_store = store
    app.state.statistics = StatisticsService()
    app.state.started_at = time.monotonic()
    logger.info(
        f"{settings.APP_NAME} starting (provider={settings.ANALYSIS_PROVIDER}, "
        f"environment={settings.ENVIRONMENT})"
    )
    async with scheduler_lifespan(store, settings.SESSION_SWEEP_INTERVAL_SECONDS):
        yield
    logger.info(f"{settings.APP_NAME} stopped")


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging()

    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="Streams products recognized in screenshots over SSE",
        version=settings.APP_VERSION,
        docs_url=None,  # We'll mount docs under /api/v1/docs
        redoc_url=None,
        lifespan=lifespan,
    )

    # Starlette applies middleware in reverse order of registration
    app.add_middleware(ExceptionNormalizationMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=validate_cors_origins(list(settings.CORS_ORIGINS)),
        allow_credentials=settings.ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-ID"],
    )

    app.add_exception_handler(AnalysisError, global_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, global_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, global_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, global_exception_handler)

    app.include_router(api_router, prefix="/api/v1")

    # Mount OpenAPI docs under /api/v1/docs and /api/v1/redoc
    @app.get("/api/v1/docs", include_in_schema=False)
    def custom_swagger_ui_html():
        return get_swagger_ui_html(
            openapi_url="/openapi.json", title=f"{settings.APP_NAME} API Docs"
        )

    @app.get("/api/v1/redoc", include_in_schema=False)
    def redoc_html():
        return get_redoc_html(
            openapi_url="/openapi.json", title=f"{settings.APP_NAME} API Redoc"
        )

    @app.get("/")
    def read_root() -> dict[str, str]:
        return {"message": f"{settings.APP_NAME} API is running"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
