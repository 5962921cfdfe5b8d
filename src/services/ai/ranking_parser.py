"""Incremental extraction of ranked candidates from line-delimited JSON."""

from __future__ import annotations

import json
import logging
from typing import Any

from schemas.analysis import RankedCandidate


logger = logging.getLogger(__name__)


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _as_id(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        as_int = _as_int(value)
        return str(as_int if as_int is not None else value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


class PartialRankingParser:
    """Parse one ranking record per line as the stream grows.

    Each call decodes every complete line and keeps the trailing partial line
    for the next call. Ids already returned are dropped silently. There is no
    cap here; callers decide how many candidates they want.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._seen: set[str] = set()

    @property
    def parsed_count(self) -> int:
        return len(self._seen)

    def parse(self, fragment: str) -> list[RankedCandidate]:
        if not fragment:
            return []
        self._buffer += fragment
        *lines, self._buffer = self._buffer.split("\n")
        results: list[RankedCandidate] = []
        for line in lines:
            candidate = self._parse_line(line)
            if candidate is not None:
                results.append(candidate)
        return results

    def flush(self) -> list[RankedCandidate]:
        """Decode whatever is left as a final line; the buffer is always cleared."""
        remaining, self._buffer = self._buffer, ""
        candidate = self._parse_line(remaining)
        return [candidate] if candidate is not None else []

    def reset(self) -> None:
        self._buffer = ""
        self._seen.clear()

    def _parse_line(self, line: str) -> RankedCandidate | None:
        line = line.strip()
        if not line:
            return None
        try:
            data = json.loads(line)
        except ValueError:
            logger.warning("Skipping malformed ranking line: %.80s", line)
            return None
        if not isinstance(data, dict):
            logger.warning("Skipping non-object ranking line: %.80s", line)
            return None

        candidate_id = _as_id(data.get("id"))
        score = _as_int(data.get("similarityScore"))
        rank = _as_int(data.get("rank"))
        if (
            candidate_id is None
            or score is None
            or not 0 <= score <= 100
            or rank is None
            or not 1 <= rank <= 10
        ):
            logger.warning("Skipping invalid ranking record: %.80s", line)
            return None

        if candidate_id in self._seen:
            return None
        self._seen.add(candidate_id)
        return RankedCandidate(id=candidate_id, similarity_score=score, rank=rank)
