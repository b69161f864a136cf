"""Fake collaborators for retrieval tests: embedder, vector index and caches."""

import asyncio
from typing import Any, Dict, List, Optional

from brandrag.core.retrieval_clients import VectorMatch


class FakeEmbedder:
    """Deterministic embedder: the same text always maps to the same vector."""

    def __init__(self, dim: int = 8, error: Optional[Exception] = None, delay: float = 0.0):
        self.dim = dim
        self.error = error
        self.delay = delay
        self.calls: List[List[str]] = []

    async def embed(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return [self._vector(t) for t in texts]

    def _vector(self, text: str) -> List[float]:
        codes = [ord(c) for c in text] or [0]
        return [float((sum(codes[i::self.dim]) % 97) + 1) for i in range(self.dim)]


class FakeVectorIndex:
    """Returns preset matches regardless of the query vector."""

    def __init__(self, matches: Optional[List[VectorMatch]] = None, error: Optional[Exception] = None, delay: float = 0.0):
        self.matches = list(matches or [])
        self.error = error
        self.delay = delay
        self.queries: List[Dict[str, Any]] = []

    async def query(
        self,
        vector: List[float],
        *,
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
        return_metadata: bool = True,
    ) -> List[VectorMatch]:
        self.queries.append({"vector": vector, "top_k": top_k, "filter": filter})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        ranked = sorted(self.matches, key=lambda m: m.score, reverse=True)
        return ranked[:top_k]


class DictCache:
    """Plain dict cache that records reads and writes."""

    def __init__(self, entries: Optional[Dict[str, Any]] = None):
        self.entries: Dict[str, Any] = dict(entries or {})
        self.gets: List[str] = []
        self.puts: List[tuple] = []

    async def get(self, key: str) -> Any:
        self.gets.append(key)
        return self.entries.get(key)

    async def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        self.puts.append((key, ttl_seconds))
        self.entries[key] = value


class BrokenCache:
    """Cache whose reads and/or writes raise."""

    def __init__(self, fail_get: bool = True, fail_put: bool = True):
        self.fail_get = fail_get
        self.fail_put = fail_put

    async def get(self, key: str) -> Any:
        if self.fail_get:
            raise ConnectionError("cache unavailable")
        return None

    async def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        if self.fail_put:
            raise ConnectionError("cache unavailable")
