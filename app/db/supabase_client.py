"""Supabase client initialization."""

from supabase import Client, create_client

from app.core.config import Settings
from app.core.logging import get_logger

logger = get_logger(__name__)


def create_supabase_client(settings: Settings) -> Client | None:
    """
    Create a Supabase client when credentials are configured.

    Args:
        settings: Application settings

    Returns:
        Supabase client configured with service role key, or None if unconfigured

    Raises:
        RuntimeError: If credentials are present but client initialization fails
    """
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
        logger.warning("Supabase not configured, persistence and vector search disabled")
        return None

    try:
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    except Exception as e:
        raise RuntimeError(f"Failed to initialize Supabase client: {e}") from e
