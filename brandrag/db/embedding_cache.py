"""Key-value caches for query embeddings.

InMemoryTTLCache is a process-local, thread-safe TTL cache. SupabaseEmbeddingCache
shares entries across workers through the embedding_cache table
(key text primary key, embedding jsonb, expires_at timestamptz).

Neither cache swallows errors; CachedEmbedder treats failures as misses.
"""

import threading
from datetime import datetime, timedelta, timezone
from time import monotonic
from typing import Any

from dateutil import parser as date_parser
from supabase import Client

from brandrag.core.config import Settings, get_settings
from brandrag.core.logging import get_logger
from brandrag.core.retrieval_clients import KeyValueCache
from brandrag.db.supabase_client import execute_async, get_supabase

logger = get_logger(__name__)


def _freeze(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


class InMemoryTTLCache:
    """Thread-safe TTL cache. Stored values are frozen into tuples."""

    def __init__(self, max_entries: int = 10_000, clock=monotonic):
        self._lock = threading.Lock()
        self._cache: dict[str, tuple[Any, float]] = {}
        self._max_entries = max_entries
        self._clock = clock

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    async def get(self, key: str) -> Any | None:
        now = self._clock()
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if now >= expires_at:
                del self._cache[key]
                return None
            return value

    async def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        expires_at = self._clock() + ttl_seconds
        with self._lock:
            if key not in self._cache and len(self._cache) >= self._max_entries:
                self._evict_expired()
                if len(self._cache) >= self._max_entries:
                    # Drop the oldest insertion
                    del self._cache[next(iter(self._cache))]
            self._cache[key] = (_freeze(value), expires_at)

    def _evict_expired(self) -> None:
        now = self._clock()
        for k in [k for k, (_, exp) in self._cache.items() if now >= exp]:
            del self._cache[k]

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()


class SupabaseEmbeddingCache:
    """Embedding cache stored in a Supabase table, shared across workers."""

    def __init__(self, table: str = "embedding_cache", client: Client | None = None):
        self.table = table
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase()
        return self._client

    async def get(self, key: str) -> Any | None:
        rows = await execute_async(
            self.client.table(self.table).select("embedding, expires_at").eq("key", key).limit(1)
        )
        if not rows:
            return None

        row = rows[0]
        expires_at = row.get("expires_at")
        if expires_at:
            expiry = date_parser.isoparse(expires_at)
            if expiry.tzinfo is None:
                expiry = expiry.replace(tzinfo=timezone.utc)
            if expiry <= datetime.now(timezone.utc):
                return None
        return row.get("embedding")

    async def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
        await execute_async(
            self.client.table(self.table).upsert(
                {"key": key, "embedding": list(value), "expires_at": expires_at.isoformat()},
                on_conflict="key",
            )
        )


def get_embedding_cache(settings: Settings | None = None) -> KeyValueCache:
    """Build the configured embedding cache backend (memory or supabase)."""
    settings = settings or get_settings()
    backend = settings.EMBEDDING_CACHE_BACKEND.lower()

    if backend == "supabase":
        return SupabaseEmbeddingCache(table=settings.EMBEDDING_CACHE_TABLE)
    if backend != "memory":
        logger.warning(f"Unknown EMBEDDING_CACHE_BACKEND {backend!r}, using memory")
    return InMemoryTTLCache()
