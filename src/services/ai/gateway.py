"""Bridge between orchestrator callbacks and an SSE response body."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable

from schemas.analysis import RankedCandidate, RecognizedItem, StreamMetrics
from schemas.streaming import AnalysisSseEvent
from services.ai.exceptions import AnalysisError, StreamingError, map_provider_error


logger = logging.getLogger(__name__)


class SseEventGateway:
    """Collects orchestrator callbacks into an ordered SSE channel.

    The orchestrator runs as a separate task and pushes events onto a queue;
    `events()` drains the queue into SSE frames. The channel always starts
    with `start` and ends with exactly one `complete` or `error`. If the
    response is closed early (client went away) the orchestrator task is
    cancelled, which in turn closes the provider stream.
    """

    def __init__(self, provider: str, session_id: str | None = None) -> None:
        self.provider = provider
        self.session_id = session_id
        self._queue: asyncio.Queue[AnalysisSseEvent] = asyncio.Queue()
        self._terminated = False

    @property
    def terminated(self) -> bool:
        return self._terminated

    async def on_item(self, item: RecognizedItem) -> None:
        await self._push(AnalysisSseEvent.item(item))

    async def on_ranking(self, candidate: RankedCandidate) -> None:
        await self._push(AnalysisSseEvent.ranking(candidate))

    async def on_complete(self, metrics: StreamMetrics) -> None:
        await self._push(AnalysisSseEvent.complete(metrics))

    async def on_error(self, error: AnalysisError) -> None:
        await self._push(AnalysisSseEvent.error(error.message, error.error_code))

    async def _push(self, event: AnalysisSseEvent) -> None:
        if self._terminated:
            logger.warning("Dropping %s event after terminal event", event.event)
            return
        if event.is_terminal:
            self._terminated = True
        await self._queue.put(event)

    async def _drive(self, run: Callable[[SseEventGateway], Awaitable[None]]) -> None:
        try:
            await run(self)
        except Exception as exc:
            logger.exception("Analysis task failed outside the provider stream")
            if not self._terminated:
                await self.on_error(map_provider_error(exc))
        if not self._terminated:
            await self.on_error(StreamingError("Stream ended without a result"))

    async def events(
        self, run: Callable[[SseEventGateway], Awaitable[None]]
    ) -> AsyncGenerator[str, None]:
        """Yield SSE frames for one orchestrator run.

        Args:
            run: Coroutine function invoked with this gateway as its callbacks
        """
        yield AnalysisSseEvent.start(self.provider, self.session_id).to_sse()
        task = asyncio.create_task(self._drive(run))
        try:
            while True:
                event = await self._queue.get()
                try:
                    frame = event.to_sse()
                except ValueError:
                    logger.error("Could not frame %s event, ending the channel", event.event)
                    self._terminated = True
                    yield AnalysisSseEvent.error(
                        "Event payload too large", "STREAMING_ERROR"
                    ).to_sse()
                    break
                yield frame
                if event.is_terminal:
                    break
            await task
        finally:
            if not task.done():
                logger.info("SSE channel closed early, cancelling analysis")
                task.cancel()
