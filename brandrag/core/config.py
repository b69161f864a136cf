"""Configuration management for the Brand RAG engine."""

from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# A missing or unreadable .env is fine: real deployments set the environment directly
try:
    load_dotenv()
except OSError:
    pass


class Settings(BaseSettings):
    """Engine settings: credentials, embedding + cache backends and RAG heuristics."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")

    # OpenAI configuration (required)
    OPENAI_API_KEY: str = Field(..., description="OpenAI API key")

    # Environment
    BRAND_RAG_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")
    BRAND_NAME: str = Field(default="vitamix", description="Brand name used in planned queries")

    # Embedding configuration
    EMBEDDING_MODEL: str = Field(
        default="text-embedding-3-small", description="OpenAI embedding model"
    )
    EMBEDDING_DIM: int = Field(default=1536, description="Embedding vector dimension")

    # Vector index + embedding cache
    VECTOR_MATCH_RPC: str = Field(
        default="match_brand_chunks", description="Supabase RPC used for vector search"
    )
    EMBEDDING_CACHE_BACKEND: str = Field(
        default="memory", description="Embedding cache backend: memory or supabase"
    )
    EMBEDDING_CACHE_TABLE: str = Field(
        default="embedding_cache", description="Supabase table for cached query embeddings"
    )
    EMBEDDING_CACHE_TTL_SECONDS: int = Field(
        default=86_400, description="TTL for cached query embeddings"
    )

    # Retrieval heuristics
    RAG_RELEVANCE_THRESHOLD: float = Field(
        default=0.70, description="Default minimum similarity for semantic plans"
    )
    RAG_FRESHNESS_FLOOR: float = Field(default=0.85, description="Lowest freshness multiplier")
    RAG_FRESHNESS_DECAY_DAYS: float = Field(
        default=600.0, description="Days over which freshness decays linearly"
    )
    RAG_BOOST_PER_TERM: float = Field(default=0.15, description="Score boost per matched term")
    RAG_BOOST_CAP: float = Field(default=0.6, description="Max total boost per boost pass")
    RAG_CONFLICT_PENALTY: float = Field(
        default=0.7, description="Multiplier for chunks conflicting with user constraints"
    )
    RAG_SOURCE_PENALTY: float = Field(
        default=0.1, description="Score reduction for repeated source URLs in similarity dedupe"
    )
    RAG_DUPLICATE_JACCARD: float = Field(
        default=0.8, description="Word-set Jaccard similarity above which chunks are duplicates"
    )
    RAG_MAX_PER_SOURCE: int = Field(default=2, description="Diversity cap per source URL")
    RAG_MAX_PER_CATEGORY: int = Field(default=3, description="Diversity cap per category")
    RAG_MIN_DIVERSE_RESULTS: int = Field(
        default=5, description="Minimum results before diversity backfill stops"
    )
    RAG_MAX_CONTEXT_TOKENS: int = Field(
        default=2_500, description="Estimated token budget for assembled context"
    )
    RAG_AUGMENT_MAX_TERMS: int = Field(
        default=6, description="Max context-derived terms appended to the query"
    )
    RAG_ALLOW_SUBSTITUTE_PHRASES: bool = Field(
        default=True, description="Keep plant-based substitutes like 'almond milk' for dairy avoids"
    )
    RAG_METADATA_FILTERS_ENABLED: bool = Field(
        default=False, description="Send content-type filters to the vector index"
    )
    RAG_UPSTREAM_TIMEOUT_SECONDS: float | None = Field(
        default=None, description="Deadline for embedding and vector index calls"
    )


@dataclass(frozen=True)
class RetrievalTuning:
    """Heuristic tuning values threaded through the ranking stages."""

    relevance_threshold: float = 0.70
    freshness_floor: float = 0.85
    freshness_decay_days: float = 600.0
    boost_per_term: float = 0.15
    boost_cap: float = 0.6
    conflict_penalty: float = 0.7
    source_penalty: float = 0.1
    duplicate_jaccard: float = 0.8
    max_per_source: int = 2
    max_per_category: int = 3
    min_diverse_results: int = 5
    max_context_tokens: int = 2_500
    augment_max_terms: int = 6
    allow_substitute_phrases: bool = True
    metadata_filters_enabled: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetrievalTuning":
        return cls(
            relevance_threshold=settings.RAG_RELEVANCE_THRESHOLD,
            freshness_floor=settings.RAG_FRESHNESS_FLOOR,
            freshness_decay_days=settings.RAG_FRESHNESS_DECAY_DAYS,
            boost_per_term=settings.RAG_BOOST_PER_TERM,
            boost_cap=settings.RAG_BOOST_CAP,
            conflict_penalty=settings.RAG_CONFLICT_PENALTY,
            source_penalty=settings.RAG_SOURCE_PENALTY,
            duplicate_jaccard=settings.RAG_DUPLICATE_JACCARD,
            max_per_source=settings.RAG_MAX_PER_SOURCE,
            max_per_category=settings.RAG_MAX_PER_CATEGORY,
            min_diverse_results=settings.RAG_MIN_DIVERSE_RESULTS,
            max_context_tokens=settings.RAG_MAX_CONTEXT_TOKENS,
            augment_max_terms=settings.RAG_AUGMENT_MAX_TERMS,
            allow_substitute_phrases=settings.RAG_ALLOW_SUBSTITUTE_PHRASES,
            metadata_filters_enabled=settings.RAG_METADATA_FILTERS_ENABLED,
        )


@lru_cache
def get_settings() -> Settings:
    """Settings singleton. Raises ValidationError when SUPABASE_* or OPENAI_API_KEY is unset."""
    return Settings()
