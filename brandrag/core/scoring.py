"""Multi-signal scoring of retrieved candidates.

Stages, in order: relevance threshold, freshness decay, term boosting (plan
terms, personal ingredients, cuisine) and conflict penalization. Every stage
returns a new list sorted by descending score; chunks are never mutated.
"""

import logging
from datetime import datetime, timezone

from dateutil import parser as date_parser

from brandrag.core.config import RetrievalTuning
from brandrag.core.logging import get_logger, log_with_context
from brandrag.core.personalization_terms import (
    CONFLICT_PHRASES,
    INGREDIENT_QUALIFIERS,
    normalize_key,
    singularize,
    term_pattern,
)
from brandrag.core.schemas_retrieval import RAGChunk, RetrievalPlan, UserContext

logger = get_logger(__name__)


def sort_by_score(chunks: list[RAGChunk]) -> list[RAGChunk]:
    """Stable descending sort: ties keep their incoming order."""
    return sorted(chunks, key=lambda c: c.score, reverse=True)


def apply_relevance_threshold(chunks: list[RAGChunk], threshold: float) -> list[RAGChunk]:
    return sort_by_score([c for c in chunks if c.score >= threshold])


# =============================================================================
# Freshness
# =============================================================================


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def freshness_factor(
    indexed_at: str | None,
    *,
    now: datetime,
    floor: float = 0.85,
    decay_days: float = 600.0,
) -> float:
    """
    Freshness multiplier for a chunk's index timestamp.

    factor = max(floor, 1 - days / decay_days), with days the whole days since
    indexing (future timestamps count as 0). Missing or unparseable timestamps
    get 1.0 so unknown freshness never looks stale.
    """
    if not indexed_at:
        return 1.0
    try:
        indexed = _as_utc(date_parser.isoparse(indexed_at))
    except (ValueError, OverflowError, TypeError):
        logger.debug(f"Unparseable indexed_at {indexed_at!r}, skipping freshness decay")
        return 1.0

    days = max(0, (_as_utc(now) - indexed).days)
    return max(floor, 1.0 - days / decay_days)


def apply_freshness_decay(
    chunks: list[RAGChunk],
    *,
    now: datetime,
    floor: float = 0.85,
    decay_days: float = 600.0,
) -> list[RAGChunk]:
    return sort_by_score([
        c.with_score(
            c.score * freshness_factor(c.metadata.indexed_at, now=now, floor=floor, decay_days=decay_days)
        )
        for c in chunks
    ])


# =============================================================================
# Boosting
# =============================================================================


def normalize_ingredient_term(term: str) -> str:
    """
    Normalize a personal ingredient for substring matching.

    "Ripe-Bananas" -> "banana", "leftover rice" -> "rice", "almond milk" -> "almond milk".
    """
    words = [w for w in term.lower().replace("-", " ").split() if w not in INGREDIENT_QUALIFIERS]
    if not words:
        return ""
    words[-1] = singularize(words[-1])
    return " ".join(words)


def _clean_terms(terms: list[str]) -> list[str]:
    cleaned = (" ".join(t.lower().split()) for t in terms)
    return list(dict.fromkeys(t for t in cleaned if t))


def boost_by_terms(
    chunks: list[RAGChunk],
    terms: list[str],
    *,
    per_term: float = 0.15,
    cap: float = 0.6,
) -> list[RAGChunk]:
    """
    Boost chunks containing the given terms.

    score *= 1 + min(per_term * matches, cap), where matches is the number of
    distinct terms found as case-insensitive substrings of the chunk text.
    """
    unique = _clean_terms(terms)
    if not unique:
        return sort_by_score(chunks)

    boosted = []
    for chunk in chunks:
        text = chunk.text.lower()
        matches = sum(1 for t in unique if t in text)
        boosted.append(chunk.with_score(chunk.score * (1 + min(per_term * matches, cap))) if matches else chunk)
    return sort_by_score(boosted)


def ingredient_boost_terms(user_context: UserContext | None) -> list[str]:
    """Must-use ingredients first, then available ones, normalized."""
    if user_context is None:
        return []
    raw = [*(user_context.must_use or []), *(user_context.available or [])]
    return _clean_terms([normalize_ingredient_term(t) for t in raw])


def cuisine_boost_terms(user_context: UserContext | None) -> list[str]:
    if user_context is None or user_context.cultural is None:
        return []
    cultural = user_context.cultural
    return _clean_terms([*cultural.cuisine, *cultural.regional])


# =============================================================================
# Conflict penalization
# =============================================================================


def conflict_phrases(user_context: UserContext | None) -> list[str]:
    """Phrases that contradict the user's constraints, goals and preferences."""
    if user_context is None:
        return []

    keywords: list[str] = list(user_context.constraints or [])
    if user_context.health:
        keywords += user_context.health.goals + user_context.health.considerations
    if user_context.household:
        keywords += user_context.household.spice_level
    if user_context.cooking:
        keywords += user_context.cooking.skill_level

    phrases: list[str] = []
    for keyword in keywords:
        phrases.extend(CONFLICT_PHRASES.get(normalize_key(keyword), ()))
    return list(dict.fromkeys(phrases))


def penalize_conflicts(
    chunks: list[RAGChunk],
    user_context: UserContext | None,
    *,
    penalty: float = 0.7,
) -> list[RAGChunk]:
    """
    Demote chunks that contradict the user context. Never removes chunks.

    A chunk containing any conflicting phrase (word-boundary match) is
    multiplied by `penalty` once, however many phrases it contains.
    """
    phrases = conflict_phrases(user_context)
    if not phrases:
        return sort_by_score(chunks)

    patterns = [term_pattern(p) for p in phrases]
    penalized = 0
    result = []
    for chunk in chunks:
        if any(p.search(chunk.text) for p in patterns):
            penalized += 1
            result.append(chunk.with_score(chunk.score * penalty))
        else:
            result.append(chunk)

    if penalized:
        log_with_context(
            logger,
            logging.INFO,
            f"Penalized {penalized} conflicting chunks",
            penalized=penalized,
            phrases=len(phrases),
        )
    return sort_by_score(result)


def score_candidates(
    chunks: list[RAGChunk],
    plan: RetrievalPlan,
    user_context: UserContext | None,
    *,
    now: datetime,
    tuning: RetrievalTuning | None = None,
) -> list[RAGChunk]:
    """Run the full scoring pipeline in order."""
    tuning = tuning or RetrievalTuning()

    scored = apply_relevance_threshold(chunks, plan.relevance_threshold)
    scored = apply_freshness_decay(
        scored, now=now, floor=tuning.freshness_floor, decay_days=tuning.freshness_decay_days
    )

    for terms in (
        plan.boost_terms,
        ingredient_boost_terms(user_context),
        cuisine_boost_terms(user_context),
    ):
        if terms:
            scored = boost_by_terms(scored, terms, per_term=tuning.boost_per_term, cap=tuning.boost_cap)

    return penalize_conflicts(scored, user_context, penalty=tuning.conflict_penalty)
