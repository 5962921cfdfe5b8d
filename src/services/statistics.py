"""Process-local usage counters."""

from __future__ import annotations

import logging
import threading
from collections import Counter
from enum import StrEnum


logger = logging.getLogger(__name__)


class UsageKind(StrEnum):
    IMAGE_ANALYSES = "image_analyses"
    RANKINGS = "rankings"
    SESSIONS_REGISTERED = "sessions_registered"


class StatisticsService:
    """Fire-and-forget counters; `increment` never raises into the caller."""

    def __init__(self) -> None:
        self._counts: Counter[str] = Counter()
        self._lock = threading.Lock()

    def increment(self, kind: UsageKind | str, amount: int = 1) -> None:
        try:
            key = UsageKind(kind).value
        except ValueError:
            logger.warning("Ignoring unknown usage counter %r", kind)
            return
        with self._lock:
            self._counts[key] += amount

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return {kind.value: self._counts[kind.value] for kind in UsageKind}
