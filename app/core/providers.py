"""Provider handles constructed once at process start.

Components receive a ``ServiceHandles`` instance instead of reaching for
module-level clients. Any handle may be ``None`` when its credential is not
configured; callers degrade to their fallback tier in that case.
"""

from dataclasses import dataclass, field

from openai import OpenAI
from supabase import Client

from app.core.config import Settings
from app.core.logging import get_logger
from app.core.rate_limiter import RateLimiter
from app.db.supabase_client import create_supabase_client

logger = get_logger(__name__)


@dataclass
class ServiceHandles:
    """Outbound provider clients plus the rate limiter guarding them."""

    settings: Settings
    openai: OpenAI | None = None
    perplexity: OpenAI | None = None
    supabase: Client | None = None
    limiter: RateLimiter = field(default_factory=RateLimiter)

    def available(self) -> dict[str, bool]:
        return {
            "openai": self.openai is not None,
            "perplexity": self.perplexity is not None,
            "supabase": self.supabase is not None,
        }


def build_service_handles(settings: Settings) -> ServiceHandles:
    """
    Build provider handles from settings.

    Args:
        settings: Application settings

    Returns:
        ServiceHandles with a client for every configured provider
    """
    openai_client = OpenAI(api_key=settings.OPENAI_API_KEY) if settings.OPENAI_API_KEY else None

    # Perplexity speaks the OpenAI-compatible API
    perplexity_client = (
        OpenAI(api_key=settings.PERPLEXITY_API_KEY, base_url=settings.PERPLEXITY_BASE_URL)
        if settings.PERPLEXITY_API_KEY
        else None
    )

    try:
        supabase_client = create_supabase_client(settings)
    except RuntimeError as e:
        logger.error(f"Supabase unavailable: {e}")
        supabase_client = None

    handles = ServiceHandles(
        settings=settings,
        openai=openai_client,
        perplexity=perplexity_client,
        supabase=supabase_client,
        limiter=RateLimiter(
            max_requests=settings.PROVIDER_MAX_REQUESTS,
            window_seconds=settings.PROVIDER_WINDOW_SECONDS,
        ),
    )

    logger.info("Service handles ready", extra={"providers": handles.available()})
    return handles
