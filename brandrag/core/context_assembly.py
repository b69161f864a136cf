"""Quality assessment, context budget and final RAGContext assembly."""

import math

from brandrag.core.schemas_retrieval import RAGChunk, RAGContext, RAGQuality


def assess_quality(chunks: list[RAGChunk]) -> RAGQuality:
    """
    Classify how trustworthy a final chunk set is for grounding.

    high: top > 0.85, mean > 0.75 and at least two chunks > 0.75
    medium: top > 0.70 or mean > 0.65
    low: anything else, including no chunks
    """
    if not chunks:
        return "low"

    scores = [c.score for c in chunks]
    top = max(scores)
    mean = sum(scores) / len(scores)
    strong = sum(1 for s in scores if s > 0.75)

    if top > 0.85 and mean > 0.75 and strong >= 2:
        return "high"
    if top > 0.70 or mean > 0.65:
        return "medium"
    return "low"


def estimate_tokens(text: str) -> int:
    """Rough token estimate: ~4 characters per token."""
    return math.ceil(len(text) / 4)


def limit_context(
    chunks: list[RAGChunk],
    *,
    max_results: int,
    max_tokens: int = 2_500,
) -> list[RAGChunk]:
    """
    Trim chunks to the result cap, then to the token budget.

    Stops at the first chunk that would push the estimate over max_tokens.
    The top-ranked chunk is always kept.
    """
    limited: list[RAGChunk] = []
    total_tokens = 0

    for chunk in chunks[:max_results]:
        tokens = estimate_tokens(chunk.text)
        if limited and total_tokens + tokens > max_tokens:
            break
        limited.append(chunk)
        total_tokens += tokens

    return limited


def assemble_context(chunks: list[RAGChunk]) -> RAGContext:
    """Build the final RAGContext from ranked chunks."""
    source_urls = list(dict.fromkeys(c.metadata.source_url for c in chunks if c.metadata.source_url))
    total_relevance = sum(c.score for c in chunks) / len(chunks) if chunks else 0.0

    return RAGContext(
        chunks=list(chunks),
        total_relevance=total_relevance,
        has_product_info=any(c.metadata.content_type == "product" for c in chunks),
        has_recipes=any(c.metadata.content_type == "recipe" for c in chunks),
        source_urls=source_urls,
        quality=assess_quality(chunks),
    )
