"""Streaming generation providers backed by pydantic-ai models.

Every backend exposes the same small surface: a `name`, a typed
`supports_ranking` capability flag and `stream(prompt, images)`, an async
iterator of `StreamChunk`s. Text chunks arrive as the model produces them;
the final chunk carries token usage.

Usage:
    from services.ai.providers import get_analysis_provider

    provider = get_analysis_provider(get_settings())
    async for chunk in provider.stream(prompt, [image]):
        ...
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING, Any, ClassVar, Protocol, cast

from pydantic_ai import Agent
from pydantic_ai.messages import BinaryContent
from pydantic_ai.models import Model
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.models.openai import OpenAIModel
from pydantic_ai.providers.google import GoogleProvider
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.providers.openrouter import OpenRouterProvider

from core.config import SUPPORTED_PROVIDERS
from schemas.analysis import TokenUsage
from services.ai.exceptions import ProviderConfigError


if TYPE_CHECKING:
    from core.config import Settings
    from services.images.data_url import DecodedImage

logger = logging.getLogger(__name__)

REQUESTY_BASE_URL = "https://router.requesty.ai/v1"


@dataclass(frozen=True, slots=True)
class StreamChunk:
    text: str = ""
    usage: TokenUsage | None = None


class GenerationProvider(Protocol):
    """Anything that can turn a prompt plus images into a text stream."""

    name: str
    supports_ranking: bool

    def stream(
        self, prompt: str, images: Sequence[DecodedImage]
    ) -> AsyncGenerator[StreamChunk, None]:
        """Yield text fragments, then one chunk carrying usage."""
        ...


def usage_from(usage: object) -> TokenUsage | None:
    """Normalize a pydantic-ai usage object (old or new field names)."""
    if usage is None:
        return None

    def _first(*names: str) -> int | None:
        for name in names:
            value = getattr(usage, name, None)
            if isinstance(value, int):
                return value
        return None

    prompt = _first("input_tokens", "request_tokens", "prompt_tokens")
    completion = _first("output_tokens", "response_tokens", "completion_tokens")
    total = _first("total_tokens")
    if prompt is None and completion is None and total is None:
        return None
    prompt = prompt or 0
    completion = completion or 0
    return TokenUsage(
        prompt_tokens=prompt,
        completion_tokens=completion,
        total_tokens=total if total is not None else prompt + completion,
    )


class PydanticAIStreamProvider:
    """Base adapter running a plain-text pydantic-ai agent in streaming mode."""

    name: ClassVar[str] = "base"
    supports_ranking: ClassVar[bool] = False

    def __init__(self, api_key: str, model_name: str, max_output_tokens: int) -> None:
        self.model_name = model_name
        self.max_output_tokens = max_output_tokens
        self._api_key = api_key
        # Lazy init so constructing the provider never touches the network
        self._agent: Agent[None, str] | None = None

    def _build_model(self) -> Model:
        raise NotImplementedError

    def _get_agent(self) -> Agent[None, str]:
        if self._agent is None:
            self._agent = Agent(self._build_model(), output_type=str)
        return self._agent

    async def stream(
        self, prompt: str, images: Sequence[DecodedImage]
    ) -> AsyncGenerator[StreamChunk, None]:
        content: list[Any] = [prompt]
        content.extend(
            BinaryContent(data=img.data, media_type=img.media_type) for img in images
        )
        agent = self._get_agent()
        async with agent.run_stream(
            content, model_settings={"max_tokens": self.max_output_tokens}
        ) as result:
            async for delta in result.stream_text(delta=True):
                if delta:
                    yield StreamChunk(text=delta)
            yield StreamChunk(usage=usage_from(result.usage()))


class GeminiStreamProvider(PydanticAIStreamProvider):
    name = "gemini"
    supports_ranking = True

    def _build_model(self) -> Model:
        provider = GoogleProvider(api_key=self._api_key)
        return cast(Model, GoogleModel(self.model_name, provider=provider))


class OpenAIStreamProvider(PydanticAIStreamProvider):
    name = "openai"

    def _build_model(self) -> Model:
        provider = OpenAIProvider(api_key=self._api_key)
        return OpenAIModel(self.model_name, provider=provider)


class OpenRouterStreamProvider(PydanticAIStreamProvider):
    name = "openrouter"

    def _build_model(self) -> Model:
        provider = OpenRouterProvider(api_key=self._api_key)
        return OpenAIModel(self.model_name, provider=provider)


class RequestyStreamProvider(PydanticAIStreamProvider):
    """Requesty router, which speaks the OpenAI chat completions API."""

    name = "requesty"

    def _build_model(self) -> Model:
        provider = OpenAIProvider(base_url=REQUESTY_BASE_URL, api_key=self._api_key)
        return OpenAIModel(self.model_name, provider=provider)


_PROVIDERS: dict[str, tuple[type[PydanticAIStreamProvider], str, str]] = {
    "gemini": (GeminiStreamProvider, "GEMINI_API_KEY", "GEMINI_MODEL"),
    "openai": (OpenAIStreamProvider, "OPENAI_API_KEY", "OPENAI_MODEL"),
    "openrouter": (OpenRouterStreamProvider, "OPENROUTER_API_KEY", "OPENROUTER_MODEL"),
    "requesty": (RequestyStreamProvider, "REQUESTY_API_KEY", "REQUESTY_MODEL"),
}


def provider_supports_ranking(name: str) -> bool:
    """Capability lookup by configured name, without building the provider."""
    entry = _PROVIDERS.get(name)
    return entry is not None and entry[0].supports_ranking


@lru_cache(maxsize=8)
def _build_provider(
    name: str, api_key: str, model_name: str, max_output_tokens: int
) -> PydanticAIStreamProvider:
    cls = _PROVIDERS[name][0]
    logger.info(f"Using {name} analysis model: {model_name}")
    return cls(api_key, model_name, max_output_tokens)


def get_analysis_provider(settings: Settings) -> PydanticAIStreamProvider:
    """Build (or reuse) the provider selected by `ANALYSIS_PROVIDER`.

    Raises:
        ProviderConfigError: If the provider is unknown or its API key is missing
    """
    name = settings.ANALYSIS_PROVIDER
    if name not in _PROVIDERS:
        raise ProviderConfigError(
            f"Unknown ANALYSIS_PROVIDER '{name}'. "
            f"Expected one of: {', '.join(SUPPORTED_PROVIDERS)}"
        )
    _, key_setting, model_setting = _PROVIDERS[name]
    api_key = getattr(settings, key_setting)
    if not api_key:
        raise ProviderConfigError(f"{key_setting} is not configured")
    return _build_provider(
        name, api_key, getattr(settings, model_setting), settings.MAX_OUTPUT_TOKENS
    )


def clear_provider_cache() -> None:
    """Drop cached providers, e.g. after settings change in tests."""
    _build_provider.cache_clear()
