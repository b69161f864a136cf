"""Supabase client and async query helper."""

import asyncio
from functools import lru_cache
from typing import Any

from supabase import Client, create_client

from brandrag.core.config import get_settings


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """
    Get Supabase client instance (cached singleton).

    Backs the pgvector chunk index and the shared embedding cache table.

    Raises:
        RuntimeError: If client initialization fails
    """
    try:
        settings = get_settings()
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    except Exception as e:
        raise RuntimeError(f"Failed to initialize Supabase client: {e}") from e


async def execute_async(query: Any) -> list[dict[str, Any]]:
    """Run a built Supabase query (rpc/select/upsert) off the event loop and return its rows."""
    response = await asyncio.to_thread(query.execute)
    return response.data or []
