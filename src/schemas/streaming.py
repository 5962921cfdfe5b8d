"""Schemas for analysis SSE streaming."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from schemas.analysis import RankedCandidate, RecognizedItem, StreamMetrics


MAX_SSE_EVENT_BYTES: int = 16_384

SseEventType = Literal["start", "item", "ranking", "complete", "error"]
TERMINAL_EVENTS: frozenset[str] = frozenset({"complete", "error"})


class AnalysisSseEvent(BaseModel):
    """One server-sent event on an analysis or ranking channel.

    Every channel is `start`, then zero or more `item`/`ranking` events, then
    exactly one `complete` or `error`. Keep payloads small: records and
    metrics only, never image data.
    """

    event: SseEventType
    data: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")

    @property
    def is_terminal(self) -> bool:
        return self.event in TERMINAL_EVENTS

    def to_sse(self) -> str:
        """Serialize event to SSE format with size validation."""
        payload = json.dumps(self.data, separators=(",", ":"), default=str)
        if len(payload.encode("utf-8")) > MAX_SSE_EVENT_BYTES:
            raise ValueError("SSE payload exceeded MAX_SSE_EVENT_BYTES")
        return f"event: {self.event}\ndata: {payload}\n\n"

    @classmethod
    def start(cls, provider: str, session_id: str | None = None) -> AnalysisSseEvent:
        data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "provider": provider,
        }
        if session_id:
            data["sessionId"] = session_id
        return cls(event="start", data=data)

    @classmethod
    def item(cls, item: RecognizedItem) -> AnalysisSseEvent:
        return cls(event="item", data=item.to_wire())

    @classmethod
    def ranking(cls, candidate: RankedCandidate) -> AnalysisSseEvent:
        return cls(event="ranking", data=candidate.to_wire())

    @classmethod
    def complete(cls, metrics: StreamMetrics) -> AnalysisSseEvent:
        return cls(event="complete", data=metrics.to_wire())

    @classmethod
    def error(cls, message: str, code: str) -> AnalysisSseEvent:
        return cls(event="error", data={"message": message, "code": code})
