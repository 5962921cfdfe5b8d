"""Validation and sanitization of raw recognized-item candidates.

Model output is untrusted: every candidate decoded from the stream goes
through `sanitize_item` before it reaches a client.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from schemas.analysis import (
    ICON_CATEGORIES,
    Category,
    RecognizedItem,
    TargetGender,
)


logger = logging.getLogger(__name__)

DEFAULT_MIN_CONFIDENCE = 6

_STRING_FIELDS = (
    "name",
    "iconCategory",
    "category",
    "brand",
    "primaryColor",
    "targetGender",
    "searchTerms",
)
_LIST_FIELDS = ("secondaryColors", "features")

_ICONS = frozenset(ICON_CATEGORIES)
_CATEGORIES = frozenset(c.value for c in Category)
_GENDERS = frozenset(g.value for g in TargetGender)


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, int | float)
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def is_valid_candidate(raw: Any) -> bool:
    """Check that a decoded candidate has the right JSON type for every field."""
    if not isinstance(raw, dict):
        return False
    if any(not isinstance(raw.get(f), str) for f in _STRING_FIELDS):
        return False
    if any(not isinstance(raw.get(f), list) for f in _LIST_FIELDS):
        return False
    confidence = raw.get("confidence")
    return _is_number(confidence) and 1 <= confidence <= 10


def _clip(value: str, limit: int) -> str:
    return value[:limit].strip()


def _clip_list(values: list[Any], max_items: int, limit: int) -> list[str]:
    clipped = [_clip(v, limit) for v in values if isinstance(v, str)]
    return [v for v in clipped if v][:max_items]


def sanitize_item(
    raw: Any, min_confidence: int = DEFAULT_MIN_CONFIDENCE
) -> RecognizedItem | None:
    """Turn a raw candidate into a `RecognizedItem`, or None to discard it.

    Out-of-vocabulary icon categories, categories and genders fall back to
    "other", "other" and "unisex". Candidates below `min_confidence` are
    dropped.
    """
    if not is_valid_candidate(raw):
        return None

    confidence = max(1, min(10, math.floor(raw["confidence"] + 0.5)))
    if confidence < min_confidence:
        logger.debug(
            "Dropping low-confidence item %r (%d)", raw.get("name"), confidence
        )
        return None

    name = _clip(raw["name"], 100)
    if not name:
        return None

    icon = raw["iconCategory"].strip().lower()
    category = raw["category"].strip().lower()
    gender = raw["targetGender"].strip().lower()

    return RecognizedItem(
        name=name,
        icon_category=icon if icon in _ICONS else "other",
        category=category if category in _CATEGORIES else Category.OTHER,
        brand=_clip(raw["brand"], 50),
        primary_color=_clip(raw["primaryColor"], 30),
        secondary_colors=_clip_list(raw["secondaryColors"], 3, 30),
        features=_clip_list(raw["features"], 5, 50),
        target_gender=gender if gender in _GENDERS else TargetGender.UNISEX,
        search_terms=_clip(raw["searchTerms"], 200),
        confidence=confidence,
    )
