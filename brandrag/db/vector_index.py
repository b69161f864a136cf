"""Vector index implementations: Supabase pgvector RPC and an exact in-memory index."""

import threading
from typing import Any

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity
from supabase import Client

from brandrag.core.logging import get_logger
from brandrag.core.retrieval_clients import VectorMatch
from brandrag.db.supabase_client import execute_async, get_supabase

logger = get_logger(__name__)


def _row_to_match(row: dict[str, Any], return_metadata: bool) -> VectorMatch:
    metadata: dict[str, Any] = {}
    if return_metadata:
        metadata = dict(row.get("metadata") or {})
        content = row.get("content") or row.get("chunk_text")
        if content and "chunk_text" not in metadata:
            metadata["chunk_text"] = content

    return VectorMatch(
        id=str(row.get("id") or row.get("chunk_id") or ""),
        score=float(row.get("similarity") or row.get("score") or 0.0),
        metadata=metadata,
    )


class SupabaseVectorIndex:
    """
    VectorIndex over a pgvector match RPC.

    The RPC is called as
        rpc(name, {"query_embedding": [...], "match_count": top_k, "filter": {...}})
    and must return rows with id, similarity, metadata and content. Filters are
    advisory: the RPC may ignore them.
    """

    def __init__(self, rpc_name: str = "match_brand_chunks", client: Client | None = None):
        self.rpc_name = rpc_name
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase()
        return self._client

    async def query(
        self,
        vector: list[float],
        *,
        top_k: int,
        filter: dict[str, Any] | None = None,
        return_metadata: bool = True,
    ) -> list[VectorMatch]:
        params = {
            "query_embedding": vector,
            "match_count": top_k,
            "filter": filter or {},
        }
        rows = await execute_async(self.client.rpc(self.rpc_name, params))

        matches = [_row_to_match(row, return_metadata) for row in rows]
        matches.sort(key=lambda m: m.score, reverse=True)

        logger.debug(f"{self.rpc_name} returned {len(matches)} matches (top_k={top_k})")
        return matches[:top_k]


def _matches_filter(metadata: dict[str, Any], filter: dict[str, Any] | None) -> bool:
    """Evaluate {$in}/{$eq} conditions (or bare values) against metadata."""
    for key, condition in (filter or {}).items():
        value = metadata.get(key)
        if isinstance(condition, dict):
            if "$in" in condition and value not in condition["$in"]:
                return False
            if "$eq" in condition and value != condition["$eq"]:
                return False
        elif value != condition:
            return False
    return True


class InMemoryVectorIndex:
    """Exact cosine-similarity index for local runs and tests."""

    def __init__(self):
        self._lock = threading.Lock()
        self._ids: list[str] = []
        self._vectors: list[list[float]] = []
        self._metadata: list[dict[str, Any]] = []

    def __len__(self) -> int:
        return len(self._ids)

    def add(self, chunk_id: str, vector: list[float], metadata: dict[str, Any] | None = None) -> None:
        with self._lock:
            self._ids.append(chunk_id)
            self._vectors.append(list(vector))
            self._metadata.append(dict(metadata or {}))

    async def query(
        self,
        vector: list[float],
        *,
        top_k: int,
        filter: dict[str, Any] | None = None,
        return_metadata: bool = True,
    ) -> list[VectorMatch]:
        with self._lock:
            ids = list(self._ids)
            vectors = list(self._vectors)
            metadata = list(self._metadata)

        if not ids:
            return []

        similarities = cosine_similarity(np.array([vector]), np.array(vectors))[0]

        candidates = [
            (i, float(similarities[i]))
            for i in range(len(ids))
            if _matches_filter(metadata[i], filter)
        ]
        # Stable: equal scores keep insertion order
        candidates.sort(key=lambda c: c[1], reverse=True)

        return [
            VectorMatch(id=ids[i], score=score, metadata=dict(metadata[i]) if return_metadata else {})
            for i, score in candidates[:top_k]
        ]
