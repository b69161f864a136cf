"""Tests for the retrieval and RAG quality endpoints."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from brandrag.main import app
from tests.fakes.fake_retrieval import FakeVectorIndex
from tests.fixtures_retrieval import RECIPE_INTENT

client = TestClient(app)


@pytest.fixture
def patched_retriever(retriever):
    with patch("brandrag.api.retrieval.build_default_retriever", return_value=retriever):
        yield retriever


def test_retrieve_returns_camel_case_context(patched_retriever):
    response = client.post(
        "/v1/retrieve",
        json={
            "query": "smoothie recipe",
            "intent": RECIPE_INTENT,
            "userContext": {"dietary": {"preferences": ["vegan"]}},
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["quality"] == "high"
    assert data["hasRecipes"] is True
    assert "r1" not in [c["id"] for c in data["chunks"]]
    assert len(data["sourceUrls"]) == len(set(data["sourceUrls"]))


def test_retrieve_without_intent_uses_generic_plan(patched_retriever):
    response = client.post("/v1/retrieve", json={"query": "smoothie"})

    assert response.status_code == 200
    assert patched_retriever.vector_index.queries[0]["top_k"] == 10


def test_retrieve_rejects_empty_query(patched_retriever):
    response = client.post("/v1/retrieve", json={"query": ""})
    assert response.status_code == 422


def test_retrieve_rejects_malformed_user_context(patched_retriever):
    response = client.post(
        "/v1/retrieve",
        json={"query": "smoothie", "userContext": {"dietary": {"avoid": "milk"}}},
    )
    assert response.status_code == 422


def test_retrieve_rejects_malformed_context_inside_intent(patched_retriever):
    response = client.post(
        "/v1/retrieve",
        json={
            "query": "sauce",
            "intent": {"intentType": "recipe", "entities": {"userContext": {"dietary": {"avoid": "peanuts"}}}},
        },
    )

    assert response.status_code == 422
    assert "userContext" in response.json()["detail"]
    assert patched_retriever.vector_index.queries == []


def test_retrieve_upstream_failure_is_502(patched_retriever):
    patched_retriever.vector_index = FakeVectorIndex(error=RuntimeError("rpc failed"))

    response = client.post("/v1/retrieve", json={"query": "smoothie"})

    assert response.status_code == 502
    assert response.json()["detail"] == "Upstream vector_index failure"


def test_rag_quality_runs_selected_scenario(patched_retriever):
    response = client.get("/v1/rag-quality", params={"test": "filter-vegan", "verbose": "true"})

    assert response.status_code == 200
    data = response.json()
    assert data["summary"]["total"] == 1
    assert data["results"][0]["id"] == "filter-vegan"
    assert data["results"][0]["details"]["top_results"] is not None


def test_rag_quality_unknown_test_is_404(patched_retriever):
    response = client.get("/v1/rag-quality", params={"test": "nope"})

    assert response.status_code == 404
    detail = response.json()["detail"]
    assert detail["error"] == "No matching tests found"
    assert len(detail["availableTests"]) == 12


def test_rag_quality_upstream_failure_is_502(patched_retriever):
    patched_retriever.embedder.provider.error = ConnectionError("down")

    response = client.get("/v1/rag-quality", params={"test": "augment-quick"})

    assert response.status_code == 502
