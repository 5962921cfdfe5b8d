"""Streaming endpoints for product recognition and similarity ranking.

Both endpoints answer with `text/event-stream`. Each frame is

    event: <start|item|ranking|complete|error>
    data: <json>

Request validation, image decoding and provider configuration are checked
before the stream opens; those failures come back as a regular JSON error
envelope with a 4xx/5xx status. Once `start` has been sent, failures are
reported as a single `error` event.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from core.error_handler import structured_logger
from dependencies.services import (
    OrchestratorDep,
    SessionStoreDep,
    SettingsDep,
    StatisticsDep,
)
from schemas.analysis import AnalyzeRequest, RankingRequest
from services.ai.exceptions import (
    InvalidImageError,
    InvalidRequestError,
    RankingNotSupportedError,
    SessionNotFoundError,
)
from services.ai.gateway import SseEventGateway
from services.ai.orchestrator import RankingJob
from services.images.data_url import decode_data_url
from services.statistics import UsageKind


router = APIRouter(prefix="/analyze", tags=["analysis"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.post(
    "/stream",
    summary="Stream products recognized in an image via Server-Sent Events",
    response_class=StreamingResponse,
)
async def analyze_stream(
    body: AnalyzeRequest,
    orchestrator: OrchestratorDep,
    sessions: SessionStoreDep,
    statistics: StatisticsDep,
    settings: SettingsDep,
) -> StreamingResponse:
    """Stream `item` events as products are recognized.

    When `sessionId` is given the image is cached under it so a follow-up
    ranking request can refer to it instead of uploading it again.
    """
    image = decode_data_url(body.image, settings.MAX_IMAGE_BYTES)

    if body.session_id:
        sessions.create(body.session_id, body.image)
        statistics.increment(UsageKind.SESSIONS_REGISTERED)
    statistics.increment(UsageKind.IMAGE_ANALYSES)

    provider_name = orchestrator.provider.name
    structured_logger.info(
        "Starting image analysis",
        provider=provider_name,
        session_id=body.session_id,
        image_bytes=len(image.data),
    )

    async def run(callbacks: SseEventGateway) -> None:
        await orchestrator.run_analysis(
            image, callbacks, settings.ANALYSIS_DEADLINE_SECONDS
        )

    gateway = SseEventGateway(provider_name, body.session_id)
    return StreamingResponse(
        gateway.events(run), media_type="text/event-stream", headers=SSE_HEADERS
    )


@router.post(
    "/rank/stream",
    summary="Stream similarity rankings of candidate thumbnails",
    response_class=StreamingResponse,
)
async def rank_stream(
    body: RankingRequest,
    orchestrator: OrchestratorDep,
    sessions: SessionStoreDep,
    statistics: StatisticsDep,
    settings: SettingsDep,
) -> StreamingResponse:
    """Stream at most ten `ranking` events, best match first.

    The original image comes from `originalImage` or, failing that, from the
    session registered by a previous analysis.
    """
    provider = orchestrator.provider
    if not provider.supports_ranking:
        raise RankingNotSupportedError(provider.name)

    if len(body.thumbnails) > settings.MAX_THUMBNAILS:
        raise InvalidRequestError(
            f"At most {settings.MAX_THUMBNAILS} thumbnails can be ranked at once"
        )

    original = body.original_image
    if not original and body.session_id:
        session = sessions.get(body.session_id)
        if session is None:
            raise SessionNotFoundError(body.session_id)
        original = session.image
    if not original:
        raise InvalidRequestError("Either originalImage or sessionId is required")

    original_image = decode_data_url(original, settings.MAX_IMAGE_BYTES)
    thumbnails = []
    for thumb in body.thumbnails:
        try:
            thumbnails.append(
                (thumb.id, decode_data_url(thumb.image, settings.MAX_IMAGE_BYTES))
            )
        except InvalidImageError as e:
            raise InvalidImageError(f"Thumbnail '{thumb.id}': {e.message}") from e

    job = RankingJob(
        original_image=original_image,
        product_name=body.product_name,
        category=body.category,
        thumbnails=thumbnails,
    )
    statistics.increment(UsageKind.RANKINGS)
    structured_logger.info(
        "Starting product ranking",
        provider=provider.name,
        session_id=body.session_id,
        thumbnail_count=len(thumbnails),
    )

    async def run(callbacks: SseEventGateway) -> None:
        await orchestrator.run_ranking(job, callbacks, settings.ANALYSIS_DEADLINE_SECONDS)

    gateway = SseEventGateway(provider.name, body.session_id)
    return StreamingResponse(
        gateway.events(run), media_type="text/event-stream", headers=SSE_HEADERS
    )
