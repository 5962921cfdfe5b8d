"""Prompt text for product recognition and similarity ranking."""

from __future__ import annotations

from schemas.analysis import ICON_CATEGORIES, Category, TargetGender


def build_analysis_prompt() -> str:
    categories = ", ".join(c.value for c in Category)
    genders = ", ".join(g.value for g in TargetGender)
    icons = ", ".join(ICON_CATEGORIES)
    return f"""You are a product recognition assistant. Identify every distinct,
purchasable product clearly visible in the image.

Respond with a JSON array only, no prose and no markdown fences. Write one
product object at a time, each with exactly these fields:

  "name": short descriptive product name (max 100 characters)
  "iconCategory": one of [{icons}]
  "category": one of [{categories}]
  "brand": brand name if visible, otherwise ""
  "primaryColor": dominant color
  "secondaryColors": up to 3 additional colors
  "features": up to 5 short distinguishing features
  "targetGender": one of [{genders}]
  "searchTerms": a concise shopping search query for this exact product
  "confidence": integer 1-10, how sure you are of the identification

Only include products you can identify with reasonable confidence. Order the
products from most to least prominent in the image."""


def build_ranking_prompt(product_name: str, category: str, thumbnail_ids: list[str]) -> str:
    ids = ", ".join(thumbnail_ids)
    return f"""The first image shows a product: "{product_name}" (category: {category}).
The following images are candidate search results, given in this order of ids:
[{ids}].

Rate how visually similar each candidate is to the product in the first image.
Output one JSON object per line, with no surrounding array, no prose and no
markdown fences. Each line must look like:

{{"id": "<candidate id>", "similarityScore": <integer 0-100>, "rank": <integer 1-10>}}

Output at most 10 lines, best match first (rank 1), and omit candidates that
are clearly a different product."""
