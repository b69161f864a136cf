"""
Tests for chunk deduplication and diversity utilities.
"""

import pytest

from brandrag.core.chunk_deduplication import (
    deduplicate_by_mode,
    deduplicate_by_similarity,
    enforce_diversity,
    get_category_distribution,
    text_similarity,
)
from tests.fixtures_retrieval import make_chunk


def _ids(chunks):
    return [c.id for c in chunks]


class TestTextSimilarity:
    """Tests for word-set Jaccard similarity."""

    def test_identical_texts(self):
        assert text_similarity("Blend the banana", "blend THE banana") == 1.0

    def test_disjoint_texts(self):
        assert text_similarity("banana smoothie", "tomato soup") == 0.0

    def test_partial_overlap(self):
        assert text_similarity("a b c", "b c d") == pytest.approx(0.5)

    def test_empty_texts(self):
        assert text_similarity("", "") == 1.0
        assert text_similarity("", "banana") == 0.0


class TestDeduplicateByMode:
    """Tests for key-based deduplication."""

    def test_by_sku_keeps_best_per_sku(self):
        chunks = [
            make_chunk("a1", 0.9, sku="A3500", url="https://x/a"),
            make_chunk("a2", 0.8, sku="A3500", url="https://x/a2"),
            make_chunk("b", 0.7, sku="E310"),
            make_chunk("u1", 0.6, url="https://x/u"),
            make_chunk("u2", 0.5, url="https://x/u"),
            make_chunk("k1", 0.4),
            make_chunk("k2", 0.3),
        ]
        assert _ids(deduplicate_by_mode(chunks, "by-sku")) == ["a1", "b", "u1", "k1", "k2"]

    def test_by_url_keeps_best_per_url(self):
        chunks = [
            make_chunk("low", 0.6, url="https://x/r"),
            make_chunk("high", 0.9, url="https://x/r"),
            make_chunk("other", 0.7, url="https://x/s"),
            make_chunk("nourl", 0.5),
        ]
        assert _ids(deduplicate_by_mode(chunks, "by-url")) == ["high", "other", "nourl"]

    def test_keyless_chunks_never_collapse(self):
        chunks = [make_chunk("a", 0.9), make_chunk("b", 0.8)]
        assert _ids(deduplicate_by_mode(chunks, "by-url")) == ["a", "b"]
        assert _ids(deduplicate_by_mode(chunks, "by-sku")) == ["a", "b"]

    def test_similarity_mode_delegates(self):
        chunks = [make_chunk("a", 0.9, "a b c d e f"), make_chunk("b", 0.8, "a b c d e f")]
        assert _ids(deduplicate_by_mode(chunks, "similarity")) == ["a"]


class TestDeduplicateBySimilarity:
    """Tests for greedy Jaccard deduplication."""

    def test_near_duplicate_dropped(self):
        chunks = [
            make_chunk("a", 0.9, "a b c d e f"),
            make_chunk("b", 0.8, "a b c d e"),
            make_chunk("c", 0.7, "x y z"),
        ]
        assert _ids(deduplicate_by_similarity(chunks)) == ["a", "c"]

    def test_threshold_is_exclusive(self):
        # 4/5 = 0.8 is not above 0.8
        chunks = [make_chunk("a", 0.9, "a b c d"), make_chunk("b", 0.8, "a b c d e")]
        assert _ids(deduplicate_by_similarity(chunks)) == ["a", "b"]

    def test_shared_source_penalized_once(self):
        chunks = [
            make_chunk("x", 0.90, "alpha", url="https://x/u"),
            make_chunk("y", 0.85, "beta", url="https://x/u"),
            make_chunk("z", 0.80, "gamma"),
            make_chunk("w", 0.79, "delta"),
        ]
        result = deduplicate_by_similarity(chunks)

        assert _ids(result) == ["x", "z", "w", "y"]
        assert result[3].score == pytest.approx(0.85 * 0.9)
        assert result[1].score == 0.80

    def test_single_chunk_returned(self):
        chunks = [make_chunk("a", 0.9, "alpha")]
        assert deduplicate_by_similarity(chunks) == chunks


class TestEnforceDiversity:
    """Tests for source and category caps."""

    def test_small_pool_unchanged(self):
        chunks = [make_chunk(c, 0.9 - i / 10, url="https://x/same") for i, c in enumerate("abc")]
        assert enforce_diversity(chunks) == chunks

    def test_category_cap_with_backfill(self):
        chunks = [
            make_chunk(f"s{i}", 0.9 - i / 100, url=f"https://x/{i}", recipe_category="smoothie")
            for i in range(6)
        ]
        result = enforce_diversity(chunks)

        # Three pass the cap, two are backfilled to reach five
        assert _ids(result) == ["s0", "s1", "s2", "s3", "s4"]

    def test_category_cap_without_backfill(self):
        chunks = [
            make_chunk(f"s{i}", 0.9 - i / 100, url=f"https://x/{i}", recipe_category="smoothie")
            for i in range(6)
        ]
        assert _ids(enforce_diversity(chunks, min_results=3)) == ["s0", "s1", "s2"]

    def test_source_cap(self):
        chunks = [
            make_chunk("u1", 0.95, url="https://x/u", recipe_category="soup"),
            make_chunk("u2", 0.94, url="https://x/u", recipe_category="smoothie"),
            make_chunk("u3", 0.93, url="https://x/u", recipe_category="dessert"),
            make_chunk("o1", 0.92, url="https://x/o1", recipe_category="breakfast"),
            make_chunk("o2", 0.91, url="https://x/o2", recipe_category="sauce"),
        ]
        assert _ids(enforce_diversity(chunks, min_results=4)) == ["u1", "u2", "o1", "o2"]
        assert _ids(enforce_diversity(chunks)) == ["u1", "u2", "u3", "o1", "o2"]

    def test_empty_urls_count_as_own_source(self):
        chunks = [
            make_chunk(str(i), 0.9 - i / 100, recipe_category=cat)
            for i, cat in enumerate(["soup", "smoothie", "dessert", "sauce"])
        ]
        assert len(enforce_diversity(chunks, max_per_source=1, min_results=0)) == 4

    def test_output_sorted(self):
        chunks = [make_chunk(str(i), 0.9 - i / 100, url=f"https://x/{i}") for i in range(8)]
        scores = [c.score for c in enforce_diversity(chunks)]
        assert scores == sorted(scores, reverse=True)


def test_category_distribution():
    chunks = [
        make_chunk("a", 0.9, recipe_category="smoothie"),
        make_chunk("b", 0.8, recipe_category="smoothie"),
        make_chunk("c", 0.7, product_category="blender"),
        make_chunk("d", 0.6),
    ]
    assert get_category_distribution(chunks) == {"smoothie": 2, "blender": 1, "other": 1}
