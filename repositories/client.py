"""
Supabase client initialization.

This module contains *only* the database connection setup and exposes
`get_supabase()` for the repository modules. The client is created on first
use, so importing a repository does not require credentials; in-memory
repositories are used when Supabase is not configured.

Environment variables required for Supabase persistence:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
"""

from __future__ import annotations

from functools import lru_cache

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import Client, create_client  # type: ignore[import-not-found]

from config.settings import get_settings


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """Official Supabase Python client instance shared by the repositories."""

    settings = get_settings()

    if not settings.supabase_url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )

    if not settings.supabase_key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase API key."
        )

    return create_client(settings.supabase_url, settings.supabase_key)


__all__ = ["get_supabase"]
