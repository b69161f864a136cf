"""Tests for quality assessment, context budget and assembly."""

import pytest

from brandrag.core.context_assembly import (
    assemble_context,
    assess_quality,
    estimate_tokens,
    limit_context,
)
from tests.fixtures_retrieval import make_chunk


def _chunks(*scores, **kwargs):
    return [make_chunk(f"c{i}", s, **kwargs) for i, s in enumerate(scores)]


@pytest.mark.parametrize(
    "scores,expected",
    [
        ((0.9, 0.8, 0.78, 0.72), "high"),
        ((0.95, 0.76), "high"),
        ((0.95,), "medium"),  # only one strong chunk
        ((0.72, 0.5), "medium"),
        ((0.70, 0.66), "medium"),  # mean above 0.65
        ((0.5, 0.4), "low"),
        ((), "low"),
    ],
)
def test_quality_bands(scores, expected):
    assert assess_quality(_chunks(*scores)) == expected


def test_quality_is_deterministic():
    chunks = _chunks(0.9, 0.8, 0.78)
    assert assess_quality(chunks) == assess_quality(list(chunks))


def test_estimate_tokens_rounds_up():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_limit_context_respects_result_cap():
    chunks = _chunks(0.9, 0.8, 0.7, 0.6)
    assert [c.id for c in limit_context(chunks, max_results=2)] == ["c0", "c1"]


def test_limit_context_stops_at_token_budget():
    chunks = [make_chunk(f"c{i}", 0.9 - i / 10, "x" * 400) for i in range(3)]
    assert [c.id for c in limit_context(chunks, max_results=10, max_tokens=250)] == ["c0", "c1"]


def test_limit_context_always_keeps_top_chunk():
    chunks = [make_chunk("huge", 0.9, "x" * 12_000), make_chunk("small", 0.8, "tiny")]
    assert [c.id for c in limit_context(chunks, max_results=5)] == ["huge"]


def test_assemble_context():
    chunks = [
        make_chunk("p", 0.9, content_type="product", url="https://x/a3500"),
        make_chunk("r1", 0.8, url="https://x/smoothie"),
        make_chunk("r2", 0.7, url="https://x/smoothie"),
        make_chunk("s", 0.6, content_type="support"),
    ]
    context = assemble_context(chunks)

    assert context.chunks == chunks
    assert context.total_relevance == pytest.approx(0.75)
    assert context.has_product_info is True
    assert context.has_recipes is True
    assert context.source_urls == ["https://x/a3500", "https://x/smoothie"]
    assert context.quality == "medium"


def test_assemble_empty_context():
    context = assemble_context([])

    assert context.chunks == []
    assert context.total_relevance == 0.0
    assert context.has_product_info is False
    assert context.has_recipes is False
    assert context.source_urls == []
    assert context.quality == "low"


def test_context_serializes_with_camel_case():
    data = assemble_context(_chunks(0.9)).model_dump(by_alias=True)
    assert {"totalRelevance", "hasProductInfo", "hasRecipes", "sourceUrls", "quality"} <= set(data)
