"""Shared test fixtures for pytest.

The environment is pinned to `test` before anything imports the settings so
no `.env` file is read, and real model requests are disabled globally.
"""

import asyncio
import base64
import io
import os
from collections.abc import AsyncGenerator, Callable, Generator, Sequence
from typing import Any

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from PIL import Image


os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")

from pydantic_ai import models  # noqa: E402

from dependencies.services import get_provider  # noqa: E402
from main import app, lifespan  # noqa: E402
from schemas.analysis import TokenUsage  # noqa: E402
from services.ai.providers import StreamChunk  # noqa: E402


models.ALLOW_MODEL_REQUESTS = False


class FakeProvider:
    """Scripted stand-in for a generation provider.

    Yields `chunks` as text fragments, then either raises `error`, blocks
    forever (`hang=True`) or finishes with a usage chunk. Records whether the
    stream was closed so tests can check upstream release.
    """

    def __init__(
        self,
        chunks: Sequence[str] = (),
        *,
        name: str = "gemini",
        supports_ranking: bool = True,
        error: BaseException | None = None,
        hang: bool = False,
        usage: TokenUsage | None = None,
    ) -> None:
        self.name = name
        self.supports_ranking = supports_ranking
        self.chunks = list(chunks)
        self.error = error
        self.hang = hang
        self.usage = usage or TokenUsage(
            prompt_tokens=120, completion_tokens=80, total_tokens=200
        )
        self.calls: list[tuple[str, list[Any]]] = []
        self.yielded = 0
        self.closed = False

    async def stream(self, prompt: str, images: Sequence[Any]):
        self.calls.append((prompt, list(images)))
        try:
            for chunk in self.chunks:
                yield StreamChunk(text=chunk)
                self.yielded += 1
            if self.error is not None:
                raise self.error
            if self.hang:
                await asyncio.Event().wait()
            yield StreamChunk(usage=self.usage)
        finally:
            self.closed = True


def make_image_bytes(
    fmt: str = "PNG", size: tuple[int, int] = (32, 32), color: str = "red"
) -> bytes:
    image = Image.new("RGB", size, color=color)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def make_data_url(fmt: str = "PNG", mime: str | None = None, **kwargs: Any) -> str:
    data = make_image_bytes(fmt, **kwargs)
    mime = mime or f"image/{fmt.lower()}"
    return f"data:{mime};base64,{base64.b64encode(data).decode()}"


@pytest.fixture
def fake_provider() -> type[FakeProvider]:
    """The FakeProvider class, for tests that build scripted providers."""
    return FakeProvider


@pytest.fixture
def data_url() -> Callable[..., str]:
    """Factory building a real image data URL with Pillow."""
    return make_data_url


@pytest.fixture
def image_bytes() -> Callable[..., bytes]:
    return make_image_bytes


@pytest.fixture
def use_provider() -> Generator[Callable[[Any], Any], None, None]:
    """Route the API to a given provider for the duration of a test."""

    def _use(provider: Any) -> Any:
        app.dependency_overrides[get_provider] = lambda: provider
        return provider

    yield _use
    app.dependency_overrides.pop(get_provider, None)


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI application (runs the lifespan)."""
    with TestClient(app) as client:
        yield client


@pytest_asyncio.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Async client with the application lifespan (session store, scheduler)."""
    async with lifespan(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(
            transport=transport, base_url="http://testserver"
        ) as client:
            yield client
