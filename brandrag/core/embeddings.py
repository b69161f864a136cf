"""OpenAI query embeddings with validation and best-effort caching."""

import asyncio
import hashlib
import logging
import numbers
from typing import Any

from openai import OpenAI

from brandrag.core.config import get_settings
from brandrag.core.logging import get_logger, log_with_context
from brandrag.core.retrieval_clients import EmbeddingProvider, KeyValueCache

logger = get_logger(__name__)


def _get_client() -> OpenAI:
    return OpenAI(api_key=get_settings().OPENAI_API_KEY)


def embed_texts(texts: list[str]) -> list[list[float]]:
    """
    Embed query texts with the configured OpenAI model, in one request.

    Args:
        texts: Query strings; output order matches input order

    Returns:
        One vector per text

    Raises:
        ValueError: If a vector does not have EMBEDDING_DIM dimensions
        openai.OpenAIError: If the API call fails
    """
    if not texts:
        return []

    settings = get_settings()
    model = settings.EMBEDDING_MODEL
    expected_dim = settings.EMBEDDING_DIM

    try:
        response = _get_client().embeddings.create(model=model, input=texts)
    except Exception as e:
        logger.error(f"OpenAI embedding request failed for {len(texts)} texts: {e}")
        raise

    vectors = [item.embedding for item in response.data]
    for i, vector in enumerate(vectors):
        if len(vector) != expected_dim:
            raise ValueError(
                f"Embedding dimension mismatch for text {i}: expected {expected_dim}, got {len(vector)}"
            )

    log_with_context(logger, logging.DEBUG, f"Embedded {len(vectors)} texts", model=model)
    return vectors


async def embed_texts_async(texts: list[str]) -> list[list[float]]:
    """Run embed_texts in a worker thread so the event loop stays free."""
    return await asyncio.to_thread(embed_texts, texts)


class OpenAIEmbeddingProvider:
    """EmbeddingProvider backed by the OpenAI embeddings API."""

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return await embed_texts_async(texts)


# =============================================================================
# Cache
# =============================================================================


def normalize_query_text(text: str) -> str:
    """Lower-case and collapse whitespace so trivially different queries share a cache entry."""
    return " ".join(text.lower().split())


def embedding_cache_key(text: str, model: str) -> str:
    digest = hashlib.sha256(normalize_query_text(text).encode("utf-8")).hexdigest()
    return f"emb:{model}:{digest}"


def _valid_vector(value: Any, dim: int | None) -> bool:
    if not isinstance(value, (list, tuple)) or not value:
        return False
    if dim is not None and len(value) != dim:
        return False
    return all(isinstance(v, numbers.Real) and not isinstance(v, bool) for v in value)


class CachedEmbedder:
    """
    Wrap an EmbeddingProvider with a key-value cache.

    Cache access is best effort: backend errors and corrupted entries (non-numeric
    values, wrong dimension) are logged and treated as misses. Provider errors
    propagate.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        cache: KeyValueCache,
        *,
        model: str,
        dim: int | None = None,
        ttl_seconds: int = 86_400,
    ):
        self.provider = provider
        self.cache = cache
        self.model = model
        self.dim = dim
        self.ttl_seconds = ttl_seconds

    async def _lookup(self, key: str) -> list[float] | None:
        try:
            cached = await self.cache.get(key)
        except Exception as e:
            logger.warning(f"Embedding cache read failed, recomputing: {e}")
            return None

        if cached is None:
            return None
        if not _valid_vector(cached, self.dim):
            logger.warning(f"Corrupted embedding cache entry for {key}, recomputing")
            return None
        return [float(v) for v in cached]

    async def _store(self, key: str, vector: list[float]) -> None:
        try:
            await self.cache.put(key, list(vector), self.ttl_seconds)
        except Exception as e:
            logger.warning(f"Embedding cache write failed: {e}")

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        keys = [embedding_cache_key(t, self.model) for t in texts]
        vectors: list[list[float] | None] = [await self._lookup(k) for k in keys]

        missing = [i for i, v in enumerate(vectors) if v is None]
        log_with_context(
            logger,
            logging.DEBUG,
            "Embedding cache lookup",
            hits=len(texts) - len(missing),
            misses=len(missing),
        )
        if missing:
            computed = await self.provider.embed([texts[i] for i in missing])
            if len(computed) != len(missing):
                raise ValueError(f"Embedding provider returned {len(computed)} vectors for {len(missing)} texts")
            for i, vector in zip(missing, computed):
                vectors[i] = vector
                await self._store(keys[i], vector)

        return [v for v in vectors if v is not None]
