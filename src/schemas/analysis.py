"""Schemas for image analysis and product ranking.

Records produced by the streaming extractors (`RecognizedItem`,
`RankedCandidate`), end-of-stream metrics, and the request bodies accepted by
the analysis endpoints. Everything is serialized with camelCase aliases since
that is the client contract.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class Category(StrEnum):
    CLOTHING = "clothing"
    ELECTRONICS = "electronics"
    FURNITURE = "furniture"
    ACCESSORIES = "accessories"
    FOOTWEAR = "footwear"
    HOME_DECOR = "home_decor"
    BOOKS_MEDIA = "books_media"
    SPORTS_FITNESS = "sports_fitness"
    BEAUTY_PERSONAL_CARE = "beauty_personal_care"
    KITCHEN_DINING = "kitchen_dining"
    OTHER = "other"


class TargetGender(StrEnum):
    MEN = "men"
    WOMEN = "women"
    UNISEX = "unisex"
    BOY = "boy"
    GIRL = "girl"


# Fine-grained icon categories the client has artwork for. "other" is the
# fallback for anything the model invents.
ICON_CATEGORIES: tuple[str, ...] = (
    "t-shirt",
    "shirt",
    "sweater",
    "hoodie",
    "jacket",
    "coat",
    "dress",
    "skirt",
    "pants",
    "jeans",
    "shorts",
    "suit",
    "sneakers",
    "boots",
    "heels",
    "sandals",
    "hat",
    "cap",
    "scarf",
    "gloves",
    "belt",
    "tie",
    "bag",
    "backpack",
    "wallet",
    "watch",
    "glasses",
    "sunglasses",
    "jewelry",
    "necklace",
    "ring",
    "earrings",
    "smartphone",
    "laptop",
    "tablet",
    "headphones",
    "speaker",
    "camera",
    "television",
    "monitor",
    "keyboard",
    "game-console",
    "sofa",
    "chair",
    "table",
    "desk",
    "bed",
    "shelf",
    "lamp",
    "rug",
    "curtains",
    "vase",
    "plant",
    "painting",
    "clock",
    "pillow",
    "mirror",
    "book",
    "vinyl",
    "ball",
    "bicycle",
    "dumbbell",
    "yoga-mat",
    "perfume",
    "makeup",
    "skincare",
    "hair-dryer",
    "mug",
    "cup",
    "glass",
    "bottle",
    "plate",
    "bowl",
    "cutlery",
    "pan",
    "pot",
    "knife",
    "coffee-machine",
    "toaster",
    "blender",
    "kettle",
    "toy",
    "car",
    "other",
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump with camelCase keys for SSE/JSON output."""
        return self.model_dump(by_alias=True, mode="json")


class RecognizedItem(_CamelModel):
    """A sanitized product recognized in the analysed image."""

    name: str = Field(..., max_length=100)
    icon_category: str
    category: Category
    brand: str = Field(default="", max_length=50)
    primary_color: str = Field(default="", max_length=30)
    secondary_colors: list[str] = Field(default_factory=list, max_length=3)
    features: list[str] = Field(default_factory=list, max_length=5)
    target_gender: TargetGender = TargetGender.UNISEX
    search_terms: str = Field(default="", max_length=200)
    confidence: int = Field(..., ge=1, le=10)


class RankedCandidate(_CamelModel):
    """One thumbnail's similarity to the product being searched for."""

    id: str = Field(..., min_length=1)
    similarity_score: int = Field(..., ge=0, le=100)
    rank: int = Field(..., ge=1, le=10)


class TokenUsage(_CamelModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class StreamMetrics(_CamelModel):
    """Aggregated once when a provider stream finishes successfully."""

    first_token_ms: int | None = None
    processing_time_ms: int
    total_records: int
    usage: TokenUsage | None = None


# --- requests -----------------------------------------------------------------


class AnalyzeRequest(_CamelModel):
    """Request body for streaming product recognition."""

    image: str = Field(..., min_length=1, description="Base64 image data URL")
    session_id: str | None = Field(
        default=None,
        max_length=128,
        description="Optional client-generated id used to cache the image",
    )
    metadata: dict[str, Any] | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("session_id")
    @classmethod
    def _blank_session_is_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


class Thumbnail(_CamelModel):
    id: str = Field(..., min_length=1, max_length=128)
    image: str = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid")

    @field_validator("id")
    @classmethod
    def _strip_id(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("thumbnail id must not be blank")
        return stripped


class RankingRequest(_CamelModel):
    """Request body for streaming similarity ranking of candidate thumbnails."""

    original_image: str | None = Field(default=None, description="Base64 data URL")
    session_id: str | None = Field(default=None, max_length=128)
    product_name: str = Field(..., min_length=1, max_length=200)
    category: Category = Category.OTHER
    thumbnails: list[Thumbnail] = Field(..., min_length=1, max_length=50)

    model_config = ConfigDict(extra="forbid")

    @field_validator("product_name")
    @classmethod
    def _strip_product_name(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("productName must not be blank")
        return stripped

    @model_validator(mode="after")
    def _require_image_source(self) -> RankingRequest:
        if not self.original_image and not self.session_id:
            raise ValueError("Either originalImage or sessionId is required")
        return self
