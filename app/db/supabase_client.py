"""Supabase client initialization."""

from functools import lru_cache

from supabase import Client, create_client

from app.core.config import get_settings
from app.core.exceptions import MissingConfigurationError


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """
    Get Supabase client instance (cached singleton).

    Returns:
        Supabase client configured with service role key

    Raises:
        MissingConfigurationError: If the URL or service role key is empty
        RuntimeError: If client initialization fails
    """
    settings = get_settings()
    missing = settings.missing_keys(("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY"))
    if missing:
        raise MissingConfigurationError(missing)

    try:
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    except Exception as e:
        raise RuntimeError(f"Failed to initialize Supabase client: {e}") from e
