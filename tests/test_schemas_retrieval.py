"""Tests for retrieval schemas: user context merging, chunk metadata, wire aliases."""

import pytest
from pydantic import ValidationError

from brandrag.core.retrieval_clients import VectorMatch
from brandrag.core.schemas_retrieval import (
    ChunkMetadata,
    IntentClassification,
    RAGChunk,
    UserContext,
    merge_terms,
)


def test_merge_terms():
    assert merge_terms(None, None) is None
    assert merge_terms(["Quick", "easy"], ["quick", " budget "]) == ["Quick", "easy", "budget"]
    assert merge_terms(None, []) == []


def test_user_context_accepts_camel_and_snake_case():
    camel = UserContext.model_validate({"mustUse": ["kale"], "fitnessContext": ["recovery"]})
    snake = UserContext(must_use=["kale"], fitness_context=["recovery"])
    assert camel == snake


def test_user_context_merge_unions_groups_and_lists():
    session = UserContext.model_validate({
        "dietary": {"avoid": ["peanuts"]},
        "constraints": ["quick"],
    })
    request = UserContext.model_validate({
        "dietary": {"avoid": ["Peanuts", "kiwi"], "preferences": ["vegan"]},
        "season": ["summer"],
    })

    merged = session.merge(request)

    assert merged.dietary.avoid == ["peanuts", "kiwi"]
    assert merged.dietary.preferences == ["vegan"]
    assert merged.constraints == ["quick"]
    assert merged.season == ["summer"]
    assert merged.health is None
    # Inputs untouched
    assert session.season is None


def test_user_context_merge_with_none_copies():
    ctx = UserContext(constraints=["quick"])
    merged = ctx.merge(None)
    assert merged == ctx
    assert merged is not ctx


def test_intent_requires_known_type():
    with pytest.raises(ValidationError):
        IntentClassification.model_validate({"intentType": "bogus"})


def test_intent_entities_default():
    intent = IntentClassification.model_validate({"intentType": "support"})
    assert intent.entities.products == []
    assert intent.entities.user_context is None


def test_chunk_metadata_from_raw_defaults():
    meta = ChunkMetadata.from_raw({"content_type": "Webinar", "source_url": "  ", "product_sku": ""})

    assert meta.content_type == "editorial"
    assert meta.source_url == ""
    assert meta.product_sku is None
    assert meta.category == "other"
    assert ChunkMetadata.from_raw(None) == ChunkMetadata()


def test_chunk_metadata_category_prefers_recipe():
    meta = ChunkMetadata.from_raw({"recipe_category": "soup", "product_category": "blender"})
    assert meta.category == "soup"


def test_chunk_from_match():
    match = VectorMatch(
        id=42,
        score="0.83",
        metadata={"text": "Blend it", "content_type": "recipe", "page_title": "Soup", "extra": 1},
    )
    chunk = RAGChunk.from_match(match)

    assert chunk.id == "42"
    assert chunk.score == pytest.approx(0.83)
    assert chunk.text == "Blend it"
    assert chunk.metadata.content_type == "recipe"
    assert chunk.metadata.page_title == "Soup"


def test_chunk_with_score_copies():
    chunk = RAGChunk(id="a", score=0.5)
    rescored = chunk.with_score(0.9)

    assert rescored.score == 0.9
    assert chunk.score == 0.5
    with pytest.raises(ValidationError):
        chunk.score = 1.0
