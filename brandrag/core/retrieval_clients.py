"""Collaborator interfaces consumed by the retriever.

Implementations live in brandrag.core.embeddings (OpenAI provider, cached
embedder) and brandrag.db (vector indexes, embedding caches). Tests inject fakes.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class VectorMatch:
    """One nearest-neighbor hit as returned by a vector index."""

    id: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class EmbeddingProvider(Protocol):
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed texts in one batch; identical text yields identical vectors."""
        ...


@runtime_checkable
class VectorIndex(Protocol):
    async def query(
        self,
        vector: list[float],
        *,
        top_k: int,
        filter: dict[str, Any] | None = None,
        return_metadata: bool = True,
    ) -> list[VectorMatch]:
        """Return up to top_k matches, descending by score. Filters may be advisory."""
        ...


@runtime_checkable
class KeyValueCache(Protocol):
    async def get(self, key: str) -> Any | None:
        ...

    async def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        ...
