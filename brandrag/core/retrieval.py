"""Personalized retrieval: ONE entry point every generation flow calls.

Pipeline: plan → augment → embed → vector query → score → filter → dedupe
→ diversify → limit → assemble.

Only the embedding call and the vector query leave the process. Either one
failing (or exceeding the deadline) raises RetrievalError; an empty context
always means "nothing relevant and safe was found".

Usage:
    from brandrag.core.retrieval import retrieve

    context = await retrieve(
        "smoothie recipe",
        {"intentType": "recipe", "contentTypes": ["recipe"]},
        {"dietary": {"preferences": ["vegan"]}},
    )
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, TypeVar

from brandrag.core.chunk_deduplication import (
    deduplicate_by_mode,
    enforce_diversity,
    get_category_distribution,
)
from brandrag.core.config import RetrievalTuning, get_settings
from brandrag.core.context_assembly import assemble_context, limit_context
from brandrag.core.context_filter import filter_chunks
from brandrag.core.embeddings import CachedEmbedder, OpenAIEmbeddingProvider
from brandrag.core.logging import get_logger, log_stage_counts, log_with_context
from brandrag.core.query_augmenter import augment_query
from brandrag.core.retrieval_clients import EmbeddingProvider, VectorIndex
from brandrag.core.retrieval_planner import DEFAULT_BRAND, plan_retrieval
from brandrag.core.schemas_retrieval import (
    IntentClassification,
    IntentEntities,
    PlanFilters,
    RAGChunk,
    RAGContext,
    RetrievalPlan,
    RetrieveRequest,
    UserContext,
)
from brandrag.core.scoring import score_candidates

logger = get_logger(__name__)

T = TypeVar("T")


class RetrievalError(Exception):
    """An upstream call (embedding or vector index) failed or timed out."""

    def __init__(self, stage: str, message: str):
        super().__init__(message)
        self.stage = stage


def build_metadata_filter(filters: PlanFilters, *, enabled: bool = False) -> dict[str, Any] | None:
    """
    Build a vector-index metadata filter from plan filters.

    Disabled by default: indexed metadata is not reliable, so planners fold
    categories into the semantic query instead.
    """
    if not enabled:
        return None

    result: dict[str, Any] = {}
    if filters.content_types:
        result["content_type"] = {"$in": list(filters.content_types)}
    if filters.product_category:
        result["product_category"] = {"$eq": filters.product_category}
    if filters.recipe_category:
        result["recipe_category"] = {"$eq": filters.recipe_category}
    return result or None


def _embedded_user_context(intent: Any) -> Any:
    """Raw entities.userContext from an intent, read independently of the other intent fields."""
    if isinstance(intent, IntentClassification):
        return intent.entities.user_context
    if not isinstance(intent, Mapping):
        return None
    entities = intent.get("entities")
    if isinstance(entities, IntentEntities):
        return entities.user_context
    if not isinstance(entities, Mapping):
        return None
    raw = entities.get("userContext")
    return raw if raw is not None else entities.get("user_context")


def resolve_user_context(
    intent: Any,
    user_context: UserContext | dict | None,
) -> UserContext | None:
    """
    Pick the user context for a request.

    An explicit context wins; otherwise intent.entities.userContext is used,
    even when the rest of the intent is malformed and planning falls back to
    the generic plan. A malformed context (explicit or embedded) raises
    ValidationError rather than silently dropping avoid terms.
    """
    raw = user_context if user_context is not None else _embedded_user_context(intent)
    if raw is None or isinstance(raw, UserContext):
        return raw
    return UserContext.model_validate(raw)


class Retriever:
    """
    Personalized retrieval pipeline with injected collaborators.

    Args:
        embedder: EmbeddingProvider (usually a CachedEmbedder)
        vector_index: VectorIndex to query
        tuning: Heuristic constants (defaults when omitted)
        brand: Brand name used in planned queries
        now_fn: Clock for freshness decay; fix it for deterministic output
        timeout_s: Default deadline for each upstream call
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        vector_index: VectorIndex,
        *,
        tuning: RetrievalTuning | None = None,
        brand: str = DEFAULT_BRAND,
        now_fn: Callable[[], datetime] | None = None,
        timeout_s: float | None = None,
    ):
        self.embedder = embedder
        self.vector_index = vector_index
        self.tuning = tuning or RetrievalTuning()
        self.brand = brand
        self.now_fn = now_fn or (lambda: datetime.now(timezone.utc))
        self.timeout_s = timeout_s

    def plan(self, query: str, intent: Any) -> RetrievalPlan:
        return plan_retrieval(
            query, intent, brand=self.brand, default_threshold=self.tuning.relevance_threshold
        )

    def augment(self, plan: RetrievalPlan, user_context: UserContext | None) -> str:
        return augment_query(plan.semantic_query, user_context, max_terms=self.tuning.augment_max_terms)

    async def _upstream(self, stage: str, call: Awaitable[T], timeout_s: float | None) -> T:
        try:
            if timeout_s is not None:
                return await asyncio.wait_for(call, timeout_s)
            return await call
        except asyncio.TimeoutError as e:
            raise RetrievalError(stage, f"{stage} timed out after {timeout_s}s") from e
        except Exception as e:
            raise RetrievalError(stage, f"{stage} failed: {e}") from e

    async def _search(
        self, semantic_query: str, plan: RetrievalPlan, timeout_s: float | None
    ) -> list[RAGChunk]:
        vectors = await self._upstream("embedding", self.embedder.embed([semantic_query]), timeout_s)
        if not vectors:
            raise RetrievalError("embedding", "Embedding provider returned no vectors")

        matches = await self._upstream(
            "vector_index",
            self.vector_index.query(
                vectors[0],
                top_k=plan.top_k,
                filter=build_metadata_filter(plan.filters, enabled=self.tuning.metadata_filters_enabled),
                return_metadata=True,
            ),
            timeout_s,
        )
        return [RAGChunk.from_match(m) for m in matches]

    async def retrieve(
        self,
        query: str,
        intent: IntentClassification | dict | None,
        user_context: UserContext | dict | None = None,
        *,
        timeout_s: float | None = None,
    ) -> RAGContext:
        """
        Retrieve a ranked, filtered, deduplicated context for a query.

        Args:
            query: Raw user query
            intent: Intent classification; malformed intents get a generic plan
            user_context: Personalization profile (defaults to intent.entities.userContext)
            timeout_s: Deadline per upstream call (overrides the retriever default)

        Returns:
            RAGContext (possibly empty, quality "low")

        Raises:
            RetrievalError: If embedding or vector search fails or times out
            ValidationError: If user_context or intent.entities.userContext is malformed
        """
        tuning = self.tuning
        deadline = timeout_s if timeout_s is not None else self.timeout_s
        context = resolve_user_context(intent, user_context)

        plan = self.plan(query, intent)
        semantic_query = self.augment(plan, context)

        log_with_context(
            logger,
            logging.INFO,
            f"Retrieval plan: {plan.strategy}",
            dedupe_mode=plan.dedupe_mode,
            top_k=plan.top_k,
            threshold=plan.relevance_threshold,
            max_results=plan.max_results,
            boost_terms=",".join(plan.boost_terms) or "-",
            augmented=semantic_query != plan.semantic_query,
        )

        candidates = await self._search(semantic_query, plan, deadline)

        scored = score_candidates(candidates, plan, context, now=self.now_fn(), tuning=tuning)
        safe = filter_chunks(scored, context, allow_substitutes=tuning.allow_substitute_phrases)
        deduped = deduplicate_by_mode(
            safe,
            plan.dedupe_mode,
            similarity_threshold=tuning.duplicate_jaccard,
            source_penalty=tuning.source_penalty,
        )
        diverse = enforce_diversity(
            deduped,
            max_per_source=tuning.max_per_source,
            max_per_category=tuning.max_per_category,
            min_results=tuning.min_diverse_results,
        )
        final = limit_context(diverse, max_results=plan.max_results, max_tokens=tuning.max_context_tokens)

        result = assemble_context(final)

        log_stage_counts(
            logger,
            query,
            {
                "matched": len(candidates),
                "scored": len(scored),
                "filtered": len(safe),
                "deduped": len(deduped),
                "diverse": len(diverse),
                "final": len(final),
            },
            strategy=plan.strategy,
            quality=result.quality,
            categories=get_category_distribution(final),
        )

        return result

    async def retrieve_many(
        self,
        requests: Iterable[RetrieveRequest],
        *,
        timeout_s: float | None = None,
    ) -> list[RAGContext]:
        """Run independent retrievals concurrently. The first failure propagates."""
        return list(
            await asyncio.gather(
                *(
                    self.retrieve(r.query, r.intent, r.user_context, timeout_s=timeout_s)
                    for r in requests
                )
            )
        )


@lru_cache(maxsize=1)
def build_default_retriever() -> Retriever:
    """Retriever wired from settings: OpenAI embeddings, cache backend, Supabase index."""
    from brandrag.db.embedding_cache import get_embedding_cache
    from brandrag.db.vector_index import SupabaseVectorIndex

    settings = get_settings()
    embedder = CachedEmbedder(
        OpenAIEmbeddingProvider(),
        get_embedding_cache(settings),
        model=settings.EMBEDDING_MODEL,
        dim=settings.EMBEDDING_DIM,
        ttl_seconds=settings.EMBEDDING_CACHE_TTL_SECONDS,
    )
    return Retriever(
        embedder,
        SupabaseVectorIndex(rpc_name=settings.VECTOR_MATCH_RPC),
        tuning=RetrievalTuning.from_settings(settings),
        brand=settings.BRAND_NAME,
        timeout_s=settings.RAG_UPSTREAM_TIMEOUT_SECONDS,
    )


async def retrieve(
    query: str,
    intent: IntentClassification | dict | None,
    user_context: UserContext | dict | None = None,
    *,
    timeout_s: float | None = None,
) -> RAGContext:
    """Retrieve with the default retriever built from settings."""
    return await build_default_retriever().retrieve(query, intent, user_context, timeout_s=timeout_s)
