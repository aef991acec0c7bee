"""Error taxonomy for the intelligence and report pipeline.

Only ``ConfigurationError`` and ``PipelineStageError`` are meant to reach a
caller. Everything else is caught at the component boundary and converted
into a fallback tier.
"""


class PipelineError(Exception):
    """Base class for pipeline errors."""


class ConfigurationError(PipelineError):
    """Raised when no provider and no fallback data is available for a stage."""


class ProviderUnavailable(PipelineError):
    """Raised when a provider has no credential configured."""

    def __init__(self, provider: str):
        super().__init__(f"{provider} is not configured")
        self.provider = provider


class ProviderCallFailed(PipelineError):
    """Raised when a single call to an external provider fails."""

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class EmbeddingGenerationFailed(ProviderCallFailed):
    """Embedding request failed or returned an unexpected shape."""


class BackendQueryFailed(ProviderCallFailed):
    """Vector backend query failed."""


class RateLimitExceeded(PipelineError):
    """Raised when a sliding-window rate limiter rejects a call."""

    def __init__(self, key: str, retry_after: float):
        super().__init__(f"Rate limit exceeded for {key}, retry after {retry_after:.1f}s")
        self.key = key
        self.retry_after = retry_after


class ResearchFailed(PipelineError):
    """Raised when every external research provider failed.

    ``partial`` carries whatever was learned before the external call (the
    draft package and its gaps) so the caller can still degrade gracefully.
    """

    def __init__(self, message: str, partial=None, causes: list[Exception] | None = None):
        super().__init__(message)
        self.partial = partial
        self.causes = causes or []


class InsufficientData(PipelineError):
    """Raised when a generator cannot fill its template from the data it was given."""


class ExtractionError(PipelineError):
    """Raised when an extractor cannot run on its input."""

    def __init__(self, message: str, extractor: str | None = None):
        super().__init__(message)
        self.extractor = extractor


class PersistenceFailed(PipelineError):
    """Raised when a row-store write fails."""


class PipelineStageError(PipelineError):
    """Raised when a stage fails with no fallback left. Names the stage."""

    def __init__(self, stage: str, cause: Exception):
        super().__init__(f"Stage '{stage}' failed: {cause}")
        self.stage = stage
        self.cause = cause
