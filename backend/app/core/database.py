"""
Database connections: Supabase client setup.
"""

from functools import lru_cache
from supabase import create_client, Client

from app.config import get_settings


@lru_cache
def get_supabase_client() -> Client:
    """Get the Supabase client (singleton).

    Uses the anon key for request-scoped reads (RLS applies).
    """
    settings = get_settings()
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)


@lru_cache
def get_supabase_admin_client() -> Client:
    """Get the Supabase admin client (service_role key, bypasses RLS).

    The ingestion pipeline writes chunks and status transitions after the
    request that created the document has returned, so it cannot rely on the
    caller's session. Falls back to the anon client when no service key is set
    (local development with RLS disabled).
    """
    settings = get_settings()
    if not settings.SUPABASE_SERVICE_KEY:
        return get_supabase_client()
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
