"""Safety filter: drop chunks mentioning anything the user must avoid.

Avoid terms come from explicit exclusions, dietary preferences, religious
dietary law and allergen category expansions. Matching is word-boundary and
plural-tolerant; substring matching would let "carrot" hit "carrotized".
"""

import logging

from brandrag.core.logging import get_logger, log_with_context
from brandrag.core.personalization_terms import (
    ALLERGEN_ALIASES,
    ALLERGEN_CATEGORIES,
    DIET_EXCLUSIONS,
    RELIGIOUS_EXCLUSIONS,
    SUBSTITUTE_PHRASES,
    free_label_pattern,
    normalize_key,
    normalize_term,
    singularize,
    term_pattern,
)
from brandrag.core.schemas_retrieval import RAGChunk, UserContext

logger = get_logger(__name__)


def _allergen_category(term: str) -> str | None:
    key = normalize_key(term)
    if key in ALLERGEN_CATEGORIES:
        return key
    return ALLERGEN_ALIASES.get(key)


def build_avoid_terms(user_context: UserContext | None) -> frozenset[str]:
    """
    Build the expanded avoid-term set for a user context.

    Union of dietary.avoid, terms implied by dietary.preferences and
    cultural.religious, and allergen category expansions of all of them
    (e.g. "nuts" -> almond, walnut, cashew, ...).
    """
    if user_context is None:
        return frozenset()

    dietary = user_context.dietary
    avoid = list(dietary.avoid) if dietary else []
    preferences = list(dietary.preferences) if dietary else []
    religious = list(user_context.cultural.religious) if user_context.cultural else []

    terms: set[str] = {normalize_term(t) for t in avoid}
    for preference in preferences:
        terms.update(DIET_EXCLUSIONS.get(normalize_key(preference), ()))
    for law in religious:
        terms.update(RELIGIOUS_EXCLUSIONS.get(normalize_key(law), ()))

    # Allergen expansion over explicit avoids, preferences ("nut-free") and implied terms
    for term in [*terms, *preferences]:
        category = _allergen_category(term)
        if category:
            terms.update(ALLERGEN_CATEGORIES[category])

    return frozenset(t for t in terms if t)


def _mask_substitutes(text: str, term: str) -> str:
    """Blank out plant-based substitute phrases for the dairy word being tested."""
    for phrase in SUBSTITUTE_PHRASES.get(singularize(term), ()):
        text = term_pattern(phrase).sub(" ", text)
    return text


def find_avoid_term(
    text: str,
    avoid_terms: frozenset[str] | set[str],
    *,
    allow_substitutes: bool = True,
) -> str | None:
    """
    Return the first avoid term (sorted for determinism) present in text, else None.

    "<term>-free" labels never count as a mention of the term. Substitute
    phrases ("almond milk" for milk) are masked only when allow_substitutes is set.
    """
    if not text:
        return None
    for term in sorted(avoid_terms):
        haystack = free_label_pattern(term).sub(" ", text)
        if allow_substitutes:
            haystack = _mask_substitutes(haystack, term)
        if term_pattern(term).search(haystack):
            return term
    return None


def chunk_matches_avoid(
    chunk: RAGChunk,
    avoid_terms: frozenset[str] | set[str],
    *,
    allow_substitutes: bool = True,
) -> str | None:
    """Check chunk text and page title; returns the offending term or None."""
    return find_avoid_term(
        chunk.text, avoid_terms, allow_substitutes=allow_substitutes
    ) or find_avoid_term(chunk.metadata.page_title, avoid_terms, allow_substitutes=allow_substitutes)


def filter_chunks(
    chunks: list[RAGChunk],
    user_context: UserContext | None,
    *,
    allow_substitutes: bool = True,
) -> list[RAGChunk]:
    """
    Remove every chunk that mentions an expanded avoid term.

    Unconditional and exclusion-only. An empty result is valid; callers must
    not retry with relaxed filters.

    Args:
        chunks: Scored chunks, descending by score
        user_context: Personalization profile, or None
        allow_substitutes: Keep "almond milk"-style substitutes for dairy words

    Returns:
        Surviving chunks in their incoming order
    """
    avoid_terms = build_avoid_terms(user_context)
    if not avoid_terms:
        return list(chunks)

    kept = []
    removed: dict[str, int] = {}
    for chunk in chunks:
        hit = chunk_matches_avoid(chunk, avoid_terms, allow_substitutes=allow_substitutes)
        if hit is None:
            kept.append(chunk)
        else:
            removed[hit] = removed.get(hit, 0) + 1

    if removed:
        log_with_context(
            logger,
            logging.INFO,
            f"Filtered {len(chunks) - len(kept)} chunks with avoid terms",
            avoid_terms=len(avoid_terms),
            terms=",".join(sorted(removed)),
        )
    return kept
