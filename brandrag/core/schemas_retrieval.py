"""Pydantic schemas for personalized brand-content retrieval."""

from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ContentType = Literal["product", "recipe", "editorial", "support", "brand"]
IntentType = Literal["product_info", "recipe", "comparison", "support", "general"]
DedupeMode = Literal["by-sku", "by-url", "similarity"]
RetrievalStrategy = Literal["semantic", "catalog", "filtered", "comprehensive", "ingredient"]
RAGQuality = Literal["high", "medium", "low"]

CONTENT_TYPES: tuple[str, ...] = ("product", "recipe", "editorial", "support", "brand")
DEFAULT_CONTENT_TYPE = "editorial"


class CamelModel(BaseModel):
    """Base for wire models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def merge_terms(first: list[str] | None, second: list[str] | None) -> list[str] | None:
    """Order-preserving union of two term lists, case-insensitive.

    Returns None only when both sides are absent, so "no signal" survives a merge.
    """
    if first is None and second is None:
        return None

    merged: list[str] = []
    seen: set[str] = set()
    for term in [*(first or []), *(second or [])]:
        key = term.strip().lower()
        if key and key not in seen:
            seen.add(key)
            merged.append(term.strip())
    return merged


# =============================================================================
# User context
# =============================================================================


class ContextGroup(CamelModel):
    """A nested group of string-list signals (dietary, health, ...)."""

    def merge(self, other: "ContextGroup | None"):
        if other is None:
            return self.model_copy(deep=True)
        values = {
            name: merge_terms(getattr(self, name), getattr(other, name)) or []
            for name in type(self).model_fields
        }
        return type(self)(**values)


class DietaryContext(ContextGroup):
    avoid: list[str] = Field(default_factory=list, description="Ingredients to exclude")
    preferences: list[str] = Field(
        default_factory=list, description="Dietary lifestyles: vegan, keto, gluten-free, paleo"
    )


class HealthContext(ContextGroup):
    conditions: list[str] = Field(default_factory=list, description="diabetes, heart-health, ...")
    goals: list[str] = Field(default_factory=list, description="weight-loss, muscle-gain, ...")
    considerations: list[str] = Field(default_factory=list, description="low-sodium, ...")


class HouseholdContext(ContextGroup):
    picky_eaters: list[str] = Field(default_factory=list)
    texture: list[str] = Field(default_factory=list)
    spice_level: list[str] = Field(default_factory=list)
    portions: list[str] = Field(default_factory=list)


class CookingContext(ContextGroup):
    equipment: list[str] = Field(default_factory=list)
    skill_level: list[str] = Field(default_factory=list)
    kitchen: list[str] = Field(default_factory=list)


class CulturalContext(ContextGroup):
    cuisine: list[str] = Field(default_factory=list, description="mexican, thai, ...")
    religious: list[str] = Field(default_factory=list, description="halal, kosher, no-alcohol")
    regional: list[str] = Field(default_factory=list, description="southern, coastal, ...")


class UserContext(CamelModel):
    """Sparse personalization profile. A missing field means "no signal"."""

    # Dietary & health
    dietary: DietaryContext | None = None
    health: HealthContext | None = None

    # Audience & household
    audience: list[str] | None = None
    household: HouseholdContext | None = None

    # Cooking, cultural
    cooking: CookingContext | None = None
    cultural: CulturalContext | None = None

    # Time & occasion
    occasion: list[str] | None = None
    season: list[str] | None = None

    # Lifestyle & activity
    lifestyle: list[str] | None = None
    fitness_context: list[str] | None = None

    # Practical constraints
    constraints: list[str] | None = None
    budget: list[str] | None = None
    shopping: list[str] | None = None
    storage: list[str] | None = None

    # Ingredients on hand
    available: list[str] | None = None
    must_use: list[str] | None = None

    def merge(self, other: "UserContext | None") -> "UserContext":
        """Union this context with another, e.g. accumulated session context."""
        if other is None:
            return self.model_copy(deep=True)

        values: dict[str, Any] = {}
        for name in type(self).model_fields:
            mine = getattr(self, name)
            theirs = getattr(other, name)
            if isinstance(mine, ContextGroup):
                values[name] = mine.merge(theirs)
            elif isinstance(theirs, ContextGroup):
                values[name] = theirs.model_copy(deep=True)
            else:
                values[name] = merge_terms(mine, theirs)
        return UserContext(**values)


# =============================================================================
# Intent classification (produced upstream, read-only here)
# =============================================================================


class IntentEntities(CamelModel):
    products: list[str] = Field(default_factory=list)
    ingredients: list[str] = Field(default_factory=list)
    goals: list[str] = Field(default_factory=list)
    user_context: UserContext | None = None


class IntentClassification(CamelModel):
    """Upstream classification of a query's purpose plus extracted entities."""

    intent_type: IntentType
    confidence: float = 0.0
    layout_id: str | None = None
    content_types: list[ContentType] = Field(default_factory=list)
    entities: IntentEntities = Field(default_factory=IntentEntities)


# =============================================================================
# Retrieval plan
# =============================================================================


class PlanFilters(CamelModel):
    model_config = ConfigDict(frozen=True)

    content_types: list[ContentType] | None = None
    product_category: str | None = None
    recipe_category: str | None = None


class RetrievalPlan(CamelModel):
    """Retrieval strategy for one request. Immutable once planned."""

    model_config = ConfigDict(frozen=True)

    strategy: RetrievalStrategy
    semantic_query: str
    top_k: int = Field(..., ge=1)
    relevance_threshold: float = Field(..., ge=0, le=1)
    filters: PlanFilters = Field(default_factory=PlanFilters)
    dedupe_mode: DedupeMode = "similarity"
    max_results: int = Field(..., ge=1)
    boost_terms: list[str] = Field(default_factory=list)
    reasoning: str = ""


# =============================================================================
# Chunks + assembled context
# =============================================================================


def _clean_optional(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class ChunkMetadata(BaseModel):
    """Strict chunk metadata. Keys mirror what the crawler indexes."""

    model_config = ConfigDict(frozen=True)

    content_type: ContentType = DEFAULT_CONTENT_TYPE
    source_url: str = ""
    page_title: str = ""
    product_sku: str | None = None
    product_category: str | None = None
    recipe_category: str | None = None
    image_url: str | None = None
    indexed_at: str | None = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any] | None) -> "ChunkMetadata":
        """Build metadata from untyped index metadata, defaulting anything missing."""
        raw = raw or {}

        content_type = (_clean_optional(raw.get("content_type")) or "").lower()
        if content_type not in CONTENT_TYPES:
            content_type = DEFAULT_CONTENT_TYPE

        return cls(
            content_type=content_type,
            source_url=_clean_optional(raw.get("source_url")) or "",
            page_title=_clean_optional(raw.get("page_title")) or "",
            product_sku=_clean_optional(raw.get("product_sku")),
            product_category=_clean_optional(raw.get("product_category")),
            recipe_category=_clean_optional(raw.get("recipe_category")),
            image_url=_clean_optional(raw.get("image_url")),
            indexed_at=_clean_optional(raw.get("indexed_at")),
        )

    @property
    def category(self) -> str:
        return self.recipe_category or self.product_category or "other"


class RAGChunk(BaseModel):
    """A retrievable passage. Only the score changes between stages, via copies."""

    model_config = ConfigDict(frozen=True)

    id: str
    score: float
    text: str = ""
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)

    @classmethod
    def from_match(cls, match: Any) -> "RAGChunk":
        """Convert a vector index match (id, score, metadata) into a chunk."""
        raw = match.metadata or {}
        text = raw.get("chunk_text") or raw.get("text") or ""
        return cls(
            id=str(match.id),
            score=float(match.score),
            text=text if isinstance(text, str) else str(text),
            metadata=ChunkMetadata.from_raw(raw),
        )

    def with_score(self, score: float) -> "RAGChunk":
        return self.model_copy(update={"score": score})


class RAGContext(CamelModel):
    """Final retrieval output consumed by the generation layer."""

    chunks: list[RAGChunk] = Field(default_factory=list)
    total_relevance: float = 0.0
    has_product_info: bool = False
    has_recipes: bool = False
    source_urls: list[str] = Field(default_factory=list)
    quality: RAGQuality = "low"


# =============================================================================
# Requests
# =============================================================================


class RetrieveRequest(CamelModel):
    """One retrieval request (HTTP body and fan-out unit)."""

    query: str = Field(..., min_length=1)
    intent: dict[str, Any] | None = Field(
        default=None, description="Intent classification; malformed intents use a generic plan"
    )
    user_context: UserContext | None = None
