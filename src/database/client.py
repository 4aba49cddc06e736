"""
Swipe Arena - Supabase Client

Process-wide async Supabase client and a query runner that turns transport
and PostgREST failures into TransientStoreError.
"""

from typing import Any

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client

from src.config.settings import get_settings
from src.engine.errors import TransientStoreError

_TRANSIENT_ERRORS = (APIError, httpx.HTTPError, OSError)

_client: AsyncClient | None = None


async def get_supabase_client() -> AsyncClient:
    """Create and cache an async Supabase client instance."""
    global _client
    if _client is None:
        settings = get_settings()
        _client = await acreate_client(settings.supabase_url, settings.supabase_anon_key)
    return _client


def reset_supabase_client() -> None:
    """Drop the cached client so the next call opens a fresh connection."""
    global _client
    _client = None


async def execute(query: Any, *, operation: str, session_id: str | None = None) -> Any:
    """Run a PostgREST query builder.

    Raises:
        TransientStoreError: If the request failed for any transport or API reason
    """
    try:
        return await query.execute()
    except _TRANSIENT_ERRORS as exc:
        raise TransientStoreError(
            f"{operation} failed: {exc}",
            session_id=session_id,
            operation=operation,
        ) from exc
