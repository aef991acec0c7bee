"""Configuration management for the Revenue Intelligence Engine."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    # Environment variables should be set directly
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Every provider credential is optional. A missing credential disables that
    provider and the pipeline degrades to its next fallback tier.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (row store + vector search)
    SUPABASE_URL: str | None = Field(default=None, description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str | None = Field(
        default=None, description="Supabase service role key"
    )

    # OpenAI configuration (embeddings, completions, secondary research)
    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")

    # Perplexity configuration (search-augmented research)
    PERPLEXITY_API_KEY: str | None = Field(default=None, description="Perplexity API key")
    PERPLEXITY_BASE_URL: str = Field(
        default="https://api.perplexity.ai", description="Perplexity OpenAI-compatible endpoint"
    )
    PERPLEXITY_MODEL: str = Field(default="sonar", description="Perplexity research model")
    PERPLEXITY_TEMPERATURE: float = Field(default=0.7, description="Research temperature")
    PERPLEXITY_MAX_TOKENS: int = Field(default=4000, description="Research max output tokens")
    PERPLEXITY_RECENCY_FILTER: str = Field(
        default="month", description="Search recency filter passed to Perplexity"
    )
    MIN_RESEARCH_CITATIONS: int = Field(
        default=3, description="Fewer citations than this marks research as weak"
    )

    # Environment
    INTEL_ENGINE_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Embedding configuration
    EMBEDDING_MODEL: str = Field(
        default="text-embedding-3-small", description="OpenAI embedding model"
    )
    EMBEDDING_DIM: int = Field(default=1536, description="Embedding vector dimension")

    # Retrieval configuration
    VECTOR_SEARCH_RPC: str = Field(
        default="vector_search_minimal", description="Supabase RPC for tool similarity search"
    )
    MATCH_THRESHOLD: float = Field(default=0.6, description="Vector similarity threshold")
    MATCH_COUNT: int = Field(default=10, description="Max rows returned by vector search")
    LOCAL_INTELLIGENCE_PATH: str | None = Field(
        default=None, description="Override path for the local intelligence seed JSON"
    )

    # Completion models
    RESEARCH_FALLBACK_MODEL: str = Field(
        default="gpt-4o", description="OpenAI model used when search-augmented research fails"
    )
    SYNTHESIS_MODEL: str = Field(default="gpt-4o", description="Model for LLM report synthesis")
    SYNTHESIS_MAX_TOKENS: int = Field(default=8000, description="Max tokens for report synthesis")
    INFERENCE_MODEL: str = Field(
        default="gpt-4o-mini", description="Model for the LLM-backed context inference"
    )
    USE_LLM_INFERENCE: bool = Field(
        default=False, description="Use the LLM-backed context inference variant"
    )

    # Outbound provider rate limiting (sliding window)
    PROVIDER_MAX_REQUESTS: int = Field(
        default=5, description="Max outbound provider calls per window"
    )
    PROVIDER_WINDOW_SECONDS: float = Field(
        default=60.0, description="Outbound provider rate-limit window in seconds"
    )

    # Inbound report generation rate limiting
    REPORT_MAX_REQUESTS: int = Field(default=3, description="Max report runs per client window")
    REPORT_WINDOW_SECONDS: float = Field(default=60.0, description="Report rate-limit window")

    # Report branding
    REPORT_CONTACT_EMAIL: str = Field(
        default="strategy@example.com", description="Mailto target for the report call to action"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If environment variables fail validation
    """
    return Settings()
