"""
Chunk deduplication and diversity utilities.

Provides post-scoring cleaning of retrieved chunks:
1. Mode-based deduplication (by SKU, by source URL, or by text similarity)
2. Diversity caps (max chunks per source URL and per category, with backfill)
3. Category distribution for logging
"""

from typing import Dict, List

from brandrag.core.schemas_retrieval import DedupeMode, RAGChunk


def _sort(chunks: List[RAGChunk]) -> List[RAGChunk]:
    return sorted(chunks, key=lambda c: c.score, reverse=True)


def text_similarity(text1: str, text2: str) -> float:
    """
    Word-set Jaccard similarity of two texts (lower-cased, split on whitespace).

    Two empty texts are identical (1.0); one empty text shares nothing (0.0).
    """
    words1 = set(text1.lower().split())
    words2 = set(text2.lower().split())

    if not words1 and not words2:
        return 1.0

    return len(words1 & words2) / len(words1 | words2)


def _keep_best_per_key(chunks: List[RAGChunk], key_fn) -> List[RAGChunk]:
    best: Dict[str, RAGChunk] = {}
    for chunk in chunks:
        key = key_fn(chunk)
        if key not in best or chunk.score > best[key].score:
            best[key] = chunk
    return _sort(list(best.values()))


def _sku_key(chunk: RAGChunk) -> str:
    meta = chunk.metadata
    if meta.product_sku:
        return f"sku:{meta.product_sku}"
    if meta.source_url:
        return f"url:{meta.source_url}"
    return f"id:{chunk.id}"


def _url_key(chunk: RAGChunk) -> str:
    return f"url:{chunk.metadata.source_url}" if chunk.metadata.source_url else f"id:{chunk.id}"


def deduplicate_by_similarity(
    chunks: List[RAGChunk],
    similarity_threshold: float = 0.8,
    source_penalty: float = 0.1,
) -> List[RAGChunk]:
    """
    Greedy text-similarity deduplication.

    Strategy:
    1. Walk chunks in score order, always keeping the first
    2. Drop a chunk whose Jaccard similarity to any kept chunk exceeds the threshold
    3. Keep chunks sharing a source URL with a kept chunk, at score * (1 - source_penalty)
    4. Re-sort by adjusted score

    Args:
        chunks: Chunks sorted descending by score
        similarity_threshold: Jaccard similarity above which chunks are duplicates
        source_penalty: Score reduction for repeated source URLs (applied once)

    Returns:
        Deduplicated chunks, descending by score
    """
    if len(chunks) <= 1:
        return list(chunks)

    selected: List[RAGChunk] = []

    for chunk in chunks:
        if any(text_similarity(chunk.text, s.text) > similarity_threshold for s in selected):
            continue

        url = chunk.metadata.source_url
        if url and any(s.metadata.source_url == url for s in selected):
            chunk = chunk.with_score(chunk.score * (1 - source_penalty))

        selected.append(chunk)

    return _sort(selected)


def deduplicate_by_mode(
    chunks: List[RAGChunk],
    mode: DedupeMode,
    *,
    similarity_threshold: float = 0.8,
    source_penalty: float = 0.1,
) -> List[RAGChunk]:
    """
    Deduplicate chunks based on the plan's dedupe mode.

    - by-sku: highest-scoring chunk per product SKU (catalog/comparison)
    - by-url: highest-scoring chunk per source URL (recipe collections)
    - similarity: greedy Jaccard deduplication (everything else)

    Chunks without a key fall back to their id, so they never collapse together.
    """
    if mode == "by-sku":
        return _keep_best_per_key(chunks, _sku_key)

    if mode == "by-url":
        return _keep_best_per_key(chunks, _url_key)

    return deduplicate_by_similarity(
        chunks, similarity_threshold=similarity_threshold, source_penalty=source_penalty
    )


def enforce_diversity(
    chunks: List[RAGChunk],
    max_per_source: int = 2,
    max_per_category: int = 3,
    min_results: int = 5,
) -> List[RAGChunk]:
    """
    Cap chunks per source URL and per category so no document dominates.

    Chunks over a cap are deferred, not dropped: when fewer than
    min(min_results, total) chunks pass the caps, deferred chunks are added
    back in score order. Pools of 3 or fewer chunks are returned unchanged.

    Args:
        chunks: Deduplicated chunks, descending by score
        max_per_source: Max chunks per source URL (empty URL counts per chunk)
        max_per_category: Max chunks per recipe/product category ("other" if none)
        min_results: Minimum result count before backfill stops

    Returns:
        Diversified chunks, descending by score

    Example:
        >>> diverse = enforce_diversity(chunks, max_per_source=2, max_per_category=3)
    """
    if len(chunks) <= 3:
        return list(chunks)

    per_source: Dict[str, int] = {}
    per_category: Dict[str, int] = {}
    accepted: List[RAGChunk] = []
    deferred: List[RAGChunk] = []

    for chunk in chunks:
        source = _url_key(chunk)
        category = chunk.metadata.category

        if per_source.get(source, 0) >= max_per_source or per_category.get(category, 0) >= max_per_category:
            deferred.append(chunk)
            continue

        per_source[source] = per_source.get(source, 0) + 1
        per_category[category] = per_category.get(category, 0) + 1
        accepted.append(chunk)

    target = min(min_results, len(chunks))
    if len(accepted) < target:
        accepted.extend(deferred[: target - len(accepted)])

    return _sort(accepted)


def get_category_distribution(chunks: List[RAGChunk]) -> Dict[str, int]:
    """
    Get distribution of chunks by category.

    Useful for debugging and understanding result diversity.

    Example:
        >>> get_category_distribution(chunks)
        {"smoothie": 3, "soup": 1, "other": 2}
    """
    distribution: Dict[str, int] = {}

    for chunk in chunks:
        category = chunk.metadata.category
        distribution[category] = distribution.get(category, 0) + 1

    return distribution
