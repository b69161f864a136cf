"""Tests for vector index implementations."""

from unittest.mock import MagicMock

import pytest

from brandrag.core.retrieval_clients import VectorIndex
from brandrag.db.vector_index import InMemoryVectorIndex, SupabaseVectorIndex


@pytest.fixture
def memory_index():
    index = InMemoryVectorIndex()
    index.add("smoothie", [1.0, 0.0, 0.0], {"content_type": "recipe", "chunk_text": "green smoothie"})
    index.add("soup", [0.7, 0.7, 0.0], {"content_type": "recipe", "chunk_text": "tomato soup"})
    index.add("a3500", [0.0, 1.0, 0.0], {"content_type": "product", "chunk_text": "A3500 blender"})
    index.add("warranty", [0.0, 0.0, 1.0], {"content_type": "support", "chunk_text": "warranty"})
    return index


@pytest.mark.asyncio
async def test_memory_index_ranks_by_cosine(memory_index):
    matches = await memory_index.query([1.0, 0.1, 0.0], top_k=3)

    assert [m.id for m in matches] == ["smoothie", "soup", "a3500"]
    assert matches[0].score == pytest.approx(0.995, abs=1e-3)
    assert matches[0].metadata["chunk_text"] == "green smoothie"


@pytest.mark.asyncio
async def test_memory_index_honors_filter(memory_index):
    matches = await memory_index.query(
        [1.0, 0.1, 0.0], top_k=10, filter={"content_type": {"$in": ["product", "support"]}}
    )
    assert [m.id for m in matches] == ["a3500", "warranty"]


@pytest.mark.asyncio
async def test_memory_index_eq_filter_and_no_metadata(memory_index):
    matches = await memory_index.query(
        [0.0, 1.0, 0.0], top_k=5, filter={"content_type": {"$eq": "product"}}, return_metadata=False
    )
    assert [(m.id, m.metadata) for m in matches] == [("a3500", {})]


@pytest.mark.asyncio
async def test_empty_memory_index():
    index = InMemoryVectorIndex()
    assert await index.query([1.0], top_k=5) == []
    assert len(index) == 0
    assert isinstance(index, VectorIndex)


@pytest.mark.asyncio
async def test_supabase_index_calls_rpc_and_maps_rows():
    client = MagicMock()
    client.rpc.return_value.execute.return_value = MagicMock(
        data=[
            {"id": "b", "similarity": 0.71, "content": "soup text", "metadata": {"content_type": "recipe"}},
            {"id": "a", "similarity": 0.93, "content": "smoothie text", "metadata": None},
            {"id": "c", "similarity": 0.50, "metadata": {"chunk_text": "kept", "page_title": "T"}},
        ]
    )
    index = SupabaseVectorIndex(rpc_name="match_chunks", client=client)

    matches = await index.query([0.1, 0.2], top_k=2, filter={"content_type": {"$in": ["recipe"]}})

    client.rpc.assert_called_once_with(
        "match_chunks",
        {"query_embedding": [0.1, 0.2], "match_count": 2, "filter": {"content_type": {"$in": ["recipe"]}}},
    )
    assert [m.id for m in matches] == ["a", "b"]
    assert matches[0].metadata == {"chunk_text": "smoothie text"}
    assert matches[1].metadata == {"content_type": "recipe", "chunk_text": "soup text"}


@pytest.mark.asyncio
async def test_supabase_index_without_metadata():
    client = MagicMock()
    client.rpc.return_value.execute.return_value = MagicMock(
        data=[{"id": 7, "similarity": 0.8, "content": "x", "metadata": {"a": 1}}]
    )

    matches = await SupabaseVectorIndex(client=client).query([0.1], top_k=5, return_metadata=False)

    assert matches[0].id == "7"
    assert matches[0].metadata == {}
    assert client.rpc.call_args[0][1]["filter"] == {}


@pytest.mark.asyncio
async def test_supabase_index_errors_propagate():
    client = MagicMock()
    client.rpc.return_value.execute.side_effect = TimeoutError("slow")

    with pytest.raises(TimeoutError):
        await SupabaseVectorIndex(client=client).query([0.1], top_k=5)
