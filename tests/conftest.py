"""Pytest configuration and fixtures."""

import os

import pytest

from tests.fakes.fake_retrieval import DictCache, FakeEmbedder, FakeVectorIndex
from tests.fixtures_retrieval import FIXED_NOW, RECIPE_MATCHES


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["SUPABASE_URL"] = "https://test.supabase.co"
    os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-key"
    os.environ["OPENAI_API_KEY"] = "test-openai-key"
    os.environ["BRAND_RAG_ENV"] = "test"


@pytest.fixture
def fake_index():
    """Vector index preloaded with the sample recipe matches."""
    return FakeVectorIndex(RECIPE_MATCHES)


@pytest.fixture
def retriever(fake_index):
    """Retriever over fakes with a fixed clock."""
    from brandrag.core.embeddings import CachedEmbedder
    from brandrag.core.retrieval import Retriever

    embedder = CachedEmbedder(FakeEmbedder(), DictCache(), model="fake-model", dim=8)
    return Retriever(embedder, fake_index, now_fn=lambda: FIXED_NOW)
