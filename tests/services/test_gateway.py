"""Tests for the SSE event gateway."""

import asyncio
import json

import pytest

from services.ai.exceptions import ProviderRateLimitError, StreamingError, map_provider_error
from services.ai.gateway import SseEventGateway
from services.ai.orchestrator import StreamingOrchestrator
from services.images.data_url import DecodedImage


IMAGE = DecodedImage(media_type="image/png", data=b"png")

ITEM = json.dumps(
    {
        "name": "Red Mug",
        "iconCategory": "mug",
        "category": "kitchen_dining",
        "brand": "",
        "primaryColor": "red",
        "secondaryColors": [],
        "features": [],
        "targetGender": "unisex",
        "searchTerms": "red mug",
        "confidence": 8,
    }
)


def _parse_frames(frames: list[str]) -> list[tuple[str, dict]]:
    parsed = []
    for frame in frames:
        assert frame.endswith("\n\n")
        event_line, data_line = frame.strip().split("\n")
        assert event_line.startswith("event: ")
        assert data_line.startswith("data: ")
        parsed.append((event_line[7:], json.loads(data_line[6:])))
    return parsed


async def _collect(gateway: SseEventGateway, run) -> list[tuple[str, dict]]:
    return _parse_frames([frame async for frame in gateway.events(run)])


@pytest.mark.asyncio
async def test_events_are_framed_and_ordered(fake_provider):
    orchestrator = StreamingOrchestrator(fake_provider([ITEM[:30], ITEM[30:]]))
    gateway = SseEventGateway("gemini", session_id="s-1")

    events = await _collect(
        gateway, lambda cb: orchestrator.run_analysis(IMAGE, cb)
    )

    assert [name for name, _ in events] == ["start", "item", "complete"]
    start = events[0][1]
    assert start["provider"] == "gemini"
    assert start["sessionId"] == "s-1"
    assert "timestamp" in start
    assert events[1][1]["name"] == "Red Mug"
    assert events[2][1]["totalRecords"] == 1
    assert events[2][1]["usage"]["totalTokens"] == 200


@pytest.mark.asyncio
async def test_start_omits_session_id_when_not_session_based(fake_provider):
    orchestrator = StreamingOrchestrator(fake_provider([]))
    events = await _collect(
        SseEventGateway("openai"), lambda cb: orchestrator.run_analysis(IMAGE, cb)
    )
    assert "sessionId" not in events[0][1]


@pytest.mark.asyncio
async def test_error_event_carries_message_and_code(fake_provider):
    provider = fake_provider([ITEM], error=ProviderRateLimitError())
    orchestrator = StreamingOrchestrator(provider)

    events = await _collect(
        SseEventGateway("gemini"), lambda cb: orchestrator.run_analysis(IMAGE, cb)
    )

    assert [name for name, _ in events] == ["start", "item", "error"]
    assert events[-1][1] == {
        "message": "Provider rate limit exceeded",
        "code": "PROVIDER_RATE_LIMIT",
    }


@pytest.mark.asyncio
async def test_run_failure_outside_the_stream_still_terminates():
    async def run(_callbacks):
        raise RuntimeError("boom")

    events = await _collect(SseEventGateway("gemini"), run)

    assert [name for name, _ in events] == ["start", "error"]
    assert events[-1][1]["code"] == "STREAMING_ERROR"


@pytest.mark.asyncio
async def test_run_returning_without_terminal_event_reports_error():
    async def run(_callbacks):
        return None

    events = await _collect(SseEventGateway("gemini"), run)
    assert [name for name, _ in events] == ["start", "error"]


@pytest.mark.asyncio
async def test_second_terminal_event_is_dropped():
    async def run(callbacks):
        await callbacks.on_error(StreamingError("first"))
        await callbacks.on_error(StreamingError("second"))

    events = await _collect(SseEventGateway("gemini"), run)
    assert [name for name, _ in events] == ["start", "error"]
    assert events[-1][1]["message"] == "first"


@pytest.mark.asyncio
async def test_closing_the_channel_cancels_the_provider_stream(fake_provider):
    provider = fake_provider([ITEM], hang=True)
    orchestrator = StreamingOrchestrator(provider)
    gateway = SseEventGateway("gemini")
    frames = gateway.events(lambda cb: orchestrator.run_analysis(IMAGE, cb))

    assert (await anext(frames)).startswith("event: start")
    assert (await anext(frames)).startswith("event: item")
    await frames.aclose()

    for _ in range(100):
        if provider.closed:
            break
        await asyncio.sleep(0)
    assert provider.closed
    assert not gateway.terminated


@pytest.mark.asyncio
async def test_long_upstream_error_is_truncated_and_terminates():
    async def run(callbacks):
        await callbacks.on_error(map_provider_error(RuntimeError("upstream said: " + "x" * 20000)))

    events = await _collect(SseEventGateway("gemini"), run)

    assert [name for name, _ in events] == ["start", "error"]
    assert events[-1][1]["code"] == "STREAMING_ERROR"
    assert events[-1][1]["message"].startswith("upstream said: ")
    assert len(events[-1][1]["message"]) <= 200


@pytest.mark.asyncio
async def test_event_too_large_to_frame_ends_the_channel_with_an_error():
    async def run(callbacks):
        await callbacks.on_error(StreamingError("x" * 20000))

    gateway = SseEventGateway("gemini")
    events = await _collect(gateway, run)

    assert [name for name, _ in events] == ["start", "error"]
    assert events[-1][1] == {"message": "Event payload too large", "code": "STREAMING_ERROR"}
    assert gateway.terminated
