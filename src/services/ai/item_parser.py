"""Incremental extraction of recognized items from a streamed model response.

The model is asked for a JSON array of product objects, but text arrives in
arbitrary fragments. `PartialItemParser` scans the accumulated text once,
tracking object and array nesting (string and escape aware), and decodes each
object as soon as its closing brace arrives.

Candidates that sit directly in an array, or at the top level, are emitted
immediately, so `{"products": [...]}` streams one item at a time. A candidate
that is the value of another object's key waits for the enclosing object:
if that one is a candidate too, the outer record wins.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from schemas.analysis import RecognizedItem
from services.ai.sanitizer import DEFAULT_MIN_CONFIDENCE, sanitize_item


logger = logging.getLogger(__name__)

REQUIRED_KEYS = ("name", "iconCategory", "category")

# Longest stretch an outermost container may stay open before it is treated
# as misaligned and rescanned.
DEFAULT_MAX_OBJECT_CHARS = 65_536

_OPENER_FOR = {"}": "{", "]": "["}


def _is_candidate(value: Any) -> bool:
    return isinstance(value, dict) and all(k in value for k in REQUIRED_KEYS)


@dataclass
class _Container:
    kind: str
    start: int
    # (buffer offset, raw candidate) found as values of this object's keys
    nested: list[tuple[int, dict[str, Any]]] = field(default_factory=list)


class PartialItemParser:
    """Resumable scanner over a growing text buffer.

    Scan state survives between calls, so the text is scanned once no matter
    how it is fragmented. When an object fails to decode, a closer does not
    match its opener, or an outermost container stays open longer than
    `max_object_chars`, the scanner drops its nesting and string state and
    resumes one character after the outermost opener. Offsets of emitted
    objects are remembered, so rescanning never emits an item twice.
    Never raises.
    """

    def __init__(
        self,
        min_confidence: int = DEFAULT_MIN_CONFIDENCE,
        max_object_chars: int = DEFAULT_MAX_OBJECT_CHARS,
    ) -> None:
        self.min_confidence = min_confidence
        self.max_object_chars = max_object_chars
        self._buffer = ""
        self._cursor = 0
        # Characters already trimmed from the front of the buffer
        self._offset = 0
        self._stack: list[_Container] = []
        self._in_string = False
        self._escaped = False
        self._seen: set[int] = set()

    @property
    def buffered(self) -> str:
        return self._buffer

    def parse(self, fragment: str) -> list[RecognizedItem]:
        if not fragment:
            return []
        self._buffer += fragment
        buf = self._buffer
        emitted: list[RecognizedItem] = []

        i = self._cursor
        while i < len(buf):
            ch = buf[i]
            if not self._stack:
                # Outside any object: only an opening brace matters.
                if ch == "{":
                    self._stack.append(_Container("{", i))
            elif self._in_string:
                if self._escaped:
                    self._escaped = False
                elif ch == "\\":
                    self._escaped = True
                elif ch == '"':
                    self._in_string = False
            elif ch == '"':
                self._in_string = True
            elif ch in "{[":
                self._stack.append(_Container(ch, i))
            elif ch in "}]":
                if not self._close(ch, i, emitted):
                    i = self._rescan(emitted)
                    continue

            if self._stack and i - self._stack[0].start >= self.max_object_chars:
                logger.debug("Open object exceeded %d chars, rescanning", self.max_object_chars)
                i = self._rescan(emitted)
                continue
            i += 1

        self._cursor = i
        self._trim()
        return emitted

    def _close(self, ch: str, end: int, emitted: list[RecognizedItem]) -> bool:
        """Pop the container closed at `end`. False means the text is misaligned."""
        top = self._stack[-1]
        if top.kind != _OPENER_FOR[ch]:
            return False
        if ch == "]":
            self._stack.pop()
            return True

        try:
            value = json.loads(self._buffer[top.start : end + 1])
        except ValueError:
            return False

        self._stack.pop()
        if _is_candidate(value):
            # Candidates nested in a candidate are part of it
            self._release([(top.start, value)], emitted)
        else:
            self._release(top.nested, emitted)
        return True

    def _release(
        self, found: list[tuple[int, dict[str, Any]]], emitted: list[RecognizedItem]
    ) -> None:
        if not found:
            return
        parent = self._stack[-1] if self._stack else None
        if parent is not None and parent.kind == "{":
            parent.nested.extend(found)
            return
        for start, raw in found:
            self._emit(start, raw, emitted)

    def _rescan(self, emitted: list[RecognizedItem]) -> int:
        """Abandon all open containers; return where scanning resumes."""
        for container in self._stack:
            for start, raw in container.nested:
                self._emit(start, raw, emitted)
        resume = self._stack[0].start + 1
        self._stack.clear()
        self._in_string = False
        self._escaped = False
        return resume

    def _emit(self, start: int, raw: dict[str, Any], emitted: list[RecognizedItem]) -> None:
        position = self._offset + start
        if position in self._seen:
            return
        self._seen.add(position)
        item = sanitize_item(raw, self.min_confidence)
        if item is None:
            logger.debug("Discarded item candidate %r", raw.get("name"))
            return
        emitted.append(item)

    def _trim(self) -> None:
        keep_from = self._stack[0].start if self._stack else self._cursor
        if keep_from == 0:
            return
        self._buffer = self._buffer[keep_from:]
        self._cursor -= keep_from
        self._offset += keep_from
        for container in self._stack:
            container.start -= keep_from
            container.nested = [(start - keep_from, raw) for start, raw in container.nested]
        self._seen = {pos for pos in self._seen if pos >= self._offset}
