"""Streaming orchestrator tying provider output to record callbacks.

The orchestrator pulls text fragments from a `GenerationProvider`, feeds
them to a per-run extractor and forwards every record to the caller the
moment it is recognized. Each run ends in exactly one of `on_complete` or
`on_error`, unless the task is cancelled (client disconnect), in which case
the cancellation propagates into the provider call and no callback fires.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncGenerator, Awaitable, Callable, Sequence
from contextlib import aclosing
from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar

from schemas.analysis import (
    Category,
    RankedCandidate,
    RecognizedItem,
    StreamMetrics,
    TokenUsage,
)
from services.ai.exceptions import (
    AnalysisError,
    ProviderTimeoutError,
    RankingNotSupportedError,
    map_provider_error,
)
from services.ai.item_parser import PartialItemParser
from services.ai.prompts import build_analysis_prompt, build_ranking_prompt
from services.ai.providers import GenerationProvider, StreamChunk
from services.ai.ranking_parser import PartialRankingParser
from services.ai.sanitizer import DEFAULT_MIN_CONFIDENCE
from services.images.data_url import DecodedImage


logger = logging.getLogger(__name__)

DEFAULT_MAX_RANKINGS = 10


class _TerminalCallbacks(Protocol):
    async def on_complete(self, metrics: StreamMetrics) -> None: ...

    async def on_error(self, error: AnalysisError) -> None: ...


class AnalysisCallbacks(_TerminalCallbacks, Protocol):
    async def on_item(self, item: RecognizedItem) -> None: ...


class RankingCallbacks(_TerminalCallbacks, Protocol):
    async def on_ranking(self, candidate: RankedCandidate) -> None: ...


@dataclass(frozen=True, slots=True)
class RankingJob:
    """A validated ranking request with its images already decoded."""

    original_image: DecodedImage
    product_name: str
    category: Category | str
    thumbnails: Sequence[tuple[str, DecodedImage]]


@dataclass(slots=True)
class _RunState:
    started: float
    first_token: float | None = None
    usage: TokenUsage | None = None
    forwarded: int = 0
    limit: int | None = None

    @property
    def capped(self) -> bool:
        return self.limit is not None and self.forwarded >= self.limit


R = TypeVar("R")


@dataclass(slots=True)
class _Extraction(Generic[R]):
    parse: Callable[[str], list[R]]
    forward: Callable[[R], Awaitable[None]]
    flush: Callable[[], list[R]] | None = None
    limit: int | None = None
    kind: str = "analysis"


class StreamingOrchestrator:
    """Runs one provider stream per call against a fresh extractor."""

    def __init__(
        self,
        provider: GenerationProvider,
        *,
        min_confidence: int = DEFAULT_MIN_CONFIDENCE,
        max_rankings: int = DEFAULT_MAX_RANKINGS,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.provider = provider
        self.min_confidence = min_confidence
        self.max_rankings = max_rankings
        self._clock = clock

    async def run_analysis(
        self,
        image: DecodedImage,
        callbacks: AnalysisCallbacks,
        deadline_seconds: float | None = None,
    ) -> None:
        parser = PartialItemParser(self.min_confidence)
        stream = self.provider.stream(build_analysis_prompt(), [image])
        await self._run(
            stream,
            _Extraction(parse=parser.parse, forward=callbacks.on_item),
            callbacks,
            deadline_seconds,
        )

    async def run_ranking(
        self,
        job: RankingJob,
        callbacks: RankingCallbacks,
        deadline_seconds: float | None = None,
    ) -> None:
        """Stream similarity rankings, forwarding at most `max_rankings`.

        Raises:
            RankingNotSupportedError: Before any stream is opened, when the
                provider lacks the ranking capability
        """
        if not self.provider.supports_ranking:
            raise RankingNotSupportedError(self.provider.name)

        parser = PartialRankingParser()
        ids = [thumb_id for thumb_id, _ in job.thumbnails]
        prompt = build_ranking_prompt(job.product_name, str(job.category), ids)
        images = [job.original_image, *(img for _, img in job.thumbnails)]
        await self._run(
            self.provider.stream(prompt, images),
            _Extraction(
                parse=parser.parse,
                forward=callbacks.on_ranking,
                flush=parser.flush,
                limit=self.max_rankings,
                kind="ranking",
            ),
            callbacks,
            deadline_seconds,
        )

    async def _run(
        self,
        stream: AsyncGenerator[StreamChunk, None],
        extraction: _Extraction,
        callbacks: _TerminalCallbacks,
        deadline_seconds: float | None,
    ) -> None:
        state = _RunState(started=self._clock(), limit=extraction.limit)
        error: AnalysisError | None = None
        try:
            async with asyncio.timeout(deadline_seconds):
                await self._consume(stream, extraction, state)
        except TimeoutError:
            error = ProviderTimeoutError(
                f"No complete response within {deadline_seconds} seconds"
            )
        except Exception as exc:
            error = map_provider_error(exc)

        if error is not None:
            logger.warning(
                "%s stream failed after %d records: %s",
                extraction.kind,
                state.forwarded,
                error,
            )
            await callbacks.on_error(error)
            return

        await callbacks.on_complete(self._metrics(state))

    async def _consume(
        self,
        stream: AsyncGenerator[StreamChunk, None],
        extraction: _Extraction,
        state: _RunState,
    ) -> None:
        # aclosing releases the upstream request on early exit or cancellation
        async with aclosing(stream) as chunks:
            async for chunk in chunks:
                if chunk.usage is not None:
                    state.usage = chunk.usage
                if not chunk.text:
                    continue
                if state.first_token is None:
                    state.first_token = self._clock()
                await self._forward(extraction.parse(chunk.text), extraction, state)
                if state.capped:
                    logger.info(
                        "Reached %d %s records, closing provider stream",
                        state.limit,
                        extraction.kind,
                    )
                    break

        if extraction.flush is not None:
            await self._forward(extraction.flush(), extraction, state)

    async def _forward(
        self, records: list, extraction: _Extraction, state: _RunState
    ) -> None:
        for record in records:
            if state.capped:
                return
            await extraction.forward(record)
            state.forwarded += 1

    def _metrics(self, state: _RunState) -> StreamMetrics:
        now = self._clock()
        first_token_ms = (
            int((state.first_token - state.started) * 1000)
            if state.first_token is not None
            else None
        )
        return StreamMetrics(
            first_token_ms=first_token_ms,
            processing_time_ms=int((now - state.started) * 1000),
            total_records=state.forwarded,
            usage=state.usage,
        )
