"""
Supabase client initialization for Jarvis.

The core only uses the service-role client: every query it issues is
already scoped by the caller's user id.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from supabase import create_client, Client

from .config import Settings, get_settings
from .exceptions import ConfigurationError


@lru_cache(maxsize=4)
def _client_for(url: str, service_role_key: str) -> Client:
    return create_client(url, service_role_key)


def get_supabase_client(settings: Optional[Settings] = None) -> Client:
    """
    Get the service-role Supabase client for the configured project.

    Row Level Security is bypassed, so ownership checks are done by the
    specialists before any mutation.

    Raises:
        ConfigurationError: If the project URL or service role key is missing
    """
    settings = settings or get_settings()
    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise ConfigurationError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
    return _client_for(settings.supabase_url, settings.supabase_service_role_key)


# Convenience aliases
get_db = get_supabase_client
