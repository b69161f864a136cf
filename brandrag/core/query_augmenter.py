"""Context-aware query augmentation.

Appends search-helpful terms derived from the user context to the planned
semantic query. Lookup-table expansion only, so the result is deterministic.
"""

import re
from collections.abc import Iterable

from brandrag.core.personalization_terms import (
    CONSTRAINT_TERMS,
    DIETARY_PREFERENCE_TERMS,
    FITNESS_TERMS,
    HEALTH_CONDITION_TERMS,
    HEALTH_CONSIDERATION_TERMS,
    HEALTH_GOAL_TERMS,
    SEASON_TERMS,
    normalize_key,
)
from brandrag.core.schemas_retrieval import UserContext

DEFAULT_MAX_TERMS = 6


def _signals(user_context: UserContext) -> Iterable[tuple[list[str] | None, dict]]:
    """Signal lists paired with their lookup table, in a fixed order."""
    dietary = user_context.dietary
    health = user_context.health
    return (
        (dietary.preferences if dietary else None, DIETARY_PREFERENCE_TERMS),
        (health.conditions if health else None, HEALTH_CONDITION_TERMS),
        (health.goals if health else None, HEALTH_GOAL_TERMS),
        (health.considerations if health else None, HEALTH_CONSIDERATION_TERMS),
        (user_context.constraints, CONSTRAINT_TERMS),
        (user_context.season, SEASON_TERMS),
        (user_context.fitness_context, FITNESS_TERMS),
    )


def augmentation_terms(user_context: UserContext | None, *, max_terms: int = DEFAULT_MAX_TERMS) -> list[str]:
    """Candidate terms for a context: deduplicated case-insensitively and capped."""
    if user_context is None:
        return []

    terms: list[str] = []
    seen: set[str] = set()
    for values, table in _signals(user_context):
        for value in values or []:
            for term in table.get(normalize_key(value), ()):
                key = term.lower()
                if key not in seen:
                    seen.add(key)
                    terms.append(term)

    return terms[:max_terms]


def _contains_phrase(query: str, term: str) -> bool:
    return re.search(rf"\b{re.escape(term)}\b", query, re.IGNORECASE) is not None


def augment_query(
    query: str,
    user_context: UserContext | None,
    *,
    max_terms: int = DEFAULT_MAX_TERMS,
) -> str:
    """
    Expand a query with terms implied by the user context.

    The cap is applied before dropping terms the query already contains, so
    augmenting an augmented query returns it unchanged.

    Args:
        query: Planned semantic query (kept unchanged at the front)
        user_context: Personalization profile, or None
        max_terms: Maximum number of context terms considered

    Returns:
        Query with appended terms separated by single spaces
    """
    additions = [
        term
        for term in augmentation_terms(user_context, max_terms=max_terms)
        if not _contains_phrase(query, term)
    ]
    if not additions:
        return query
    return f"{query} {' '.join(additions)}"
