"""Application settings and CORS configuration."""

import json
import os
from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


SUPPORTED_PROVIDERS = ("gemini", "openai", "openrouter", "requesty")

# Rankings per request never exceed this, whatever MAX_RANKINGS says
RANKING_LIMIT = 10


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env"), env_file_encoding="utf-8")

    # App
    APP_NAME: str = "FreezeFrame"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"  # development | production | test

    # CORS
    # Accept list or CSV/JSON string from env; normalized to list[str] by validators
    CORS_ORIGINS: list[str] | str = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]
    ALLOW_CREDENTIALS: bool = True

    # AI / vision provider configuration
    ANALYSIS_PROVIDER: str = "gemini"  # gemini | openai | openrouter | requesty
    GEMINI_API_KEY: str | None = None
    GEMINI_MODEL: str = "gemini-2.5-flash"
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENROUTER_API_KEY: str | None = None
    OPENROUTER_MODEL: str = "anthropic/claude-3.7-sonnet"
    REQUESTY_API_KEY: str | None = None
    REQUESTY_MODEL: str = "openai/gpt-4o-mini"
    MAX_OUTPUT_TOKENS: int = 20000

    # Optional per-request deadline for provider consumption (seconds)
    ANALYSIS_DEADLINE_SECONDS: float | None = None

    # Session cache
    SESSION_TTL_SECONDS: int = 600
    MAX_SESSIONS: int = 100
    SESSION_SWEEP_INTERVAL_SECONDS: int = 60

    # Record limits
    MIN_ITEM_CONFIDENCE: int = 6
    MAX_RANKINGS: int = 10
    MAX_THUMBNAILS: int = 50
    MAX_IMAGE_BYTES: int = 10 * 1024 * 1024

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: object) -> list[str]:
        """Allow list, CSV string, or JSON array string for CORS origins."""
        if isinstance(v, list):
            return [str(i).strip() for i in v]
        if isinstance(v, str):
            s = v.strip()
            if not s:
                return []
            if s.startswith("["):
                try:
                    parsed = json.loads(s)
                except json.JSONDecodeError as e:
                    raise ValueError(
                        "CORS_ORIGINS must be a CSV list or JSON array string"
                    ) from e
                if not isinstance(parsed, list):
                    raise ValueError("CORS_ORIGINS JSON must be a list")
                return [str(i).strip() for i in parsed]
            return [i.strip() for i in s.split(",") if i.strip()]
        raise ValueError("Invalid CORS_ORIGINS type; expected str or list[str]")

    @field_validator("ANALYSIS_PROVIDER", mode="before")
    @classmethod
    def normalize_provider(cls, v: object) -> str:
        """Lower-case the provider name; unknown names are rejected later.

        Rejection happens when the provider is built so that a bad value fails
        the analysis request rather than the whole process.
        """
        return str(v or "gemini").strip().lower()

    @field_validator("MAX_RANKINGS")
    @classmethod
    def clamp_max_rankings(cls, v: int) -> int:
        return max(1, min(v, RANKING_LIMIT))

    @model_validator(mode="after")
    def _validate_cors_credentials(self) -> "Settings":
        """Ensure wildcard origins are not used when credentials are allowed."""
        if isinstance(self.CORS_ORIGINS, str):
            self.CORS_ORIGINS = self.assemble_cors_origins(self.CORS_ORIGINS)
        if self.ALLOW_CREDENTIALS and any(
            o.strip() == "*" for o in (self.CORS_ORIGINS or [])
        ):
            raise ValueError(
                "CORS configuration error: ALLOW_CREDENTIALS=True but "
                "CORS_ORIGINS contains '*'. Use explicit origins when credentials "
                "are allowed."
            )
        return self


@lru_cache
def get_settings() -> Settings:
    env = os.getenv("ENVIRONMENT", "development").lower()
    if env not in {"development", "production", "test"}:
        raise ValueError("ENVIRONMENT must be 'development', 'production', or 'test'")

    if env == "production":
        env_file = ".env.prod"
    elif env == "development":
        env_file = ".env.dev"
    else:
        # test environment - no env file needed, use defaults
        env_file = ""

    # The Settings initializer accepts a runtime-only `_env_file` kwarg used by
    # pydantic-settings; mypy's stub doesn't allow this call argument.
    return Settings(_env_file=env_file or None)  # type: ignore[call-arg]
