"""Pydantic models for the tool/pattern catalog and retrieval results."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Enums
# =============================================================================


class Segment(str, Enum):
    """Target customer archetypes used to rank tool fit."""

    ITSM = "itsm"
    AGENCY = "agency"
    SAAS = "saas"


class Momentum(str, Enum):
    RISING = "rising"
    STABLE = "stable"
    DECLINING = "declining"


class BudgetBand(str, Enum):
    FREE = "free"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Complexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


class CapabilityLayer(str, Enum):
    """The four buckets recommended tools are filed under."""

    CONTEXT_ORCHESTRATION = "Context Orchestration"
    KNOWLEDGE_RETRIEVAL = "Knowledge Retrieval"
    FUNCTION_EXECUTION = "Function Execution"
    CONVERSATIONAL_INTERFACE = "Conversational Interface"


class DataSource(str, Enum):
    """Which retrieval tier produced a package."""

    VECTOR_SEARCH = "vector-search"
    LOCAL_KEYWORD = "local-keyword"
    FALLBACK = "fallback"


def _check_fit_map(value: dict[str, float]) -> dict[str, float]:
    for key, score in value.items():
        if not 0.0 <= score <= 1.0:
            raise ValueError(f"Fit score for '{key}' must be within [0, 1], got {score}")
    return value


# =============================================================================
# Catalog entries
# =============================================================================


class Pricing(BaseModel):
    """Pricing descriptor: free-text details plus an optional monthly range."""

    model_config = ConfigDict(frozen=True)

    model: str = ""  # e.g. "usage", "per-seat", "freemium"
    details: str = ""  # e.g. "$0.15 per 1M input tokens"
    min_monthly: float | None = None
    max_monthly: float | None = None

    def has_data(self) -> bool:
        return bool(self.details) or self.min_monthly is not None


class Tool(BaseModel):
    """A catalog entry. Immutable once loaded."""

    model_config = ConfigDict(frozen=True)

    name: str
    slug: str = ""
    category: str = ""
    subcategory: str = ""
    description: str = ""
    best_for: str = ""
    pricing: Pricing = Field(default_factory=Pricing)
    integrations: list[str] = Field(default_factory=list)
    use_cases: list[str] = Field(default_factory=list)
    tech_stack: list[str] = Field(default_factory=list)
    segment_fit: dict[str, float] = Field(default_factory=dict)
    challenge_fit: dict[str, float] = Field(default_factory=dict)
    budget_bands: list[BudgetBand] = Field(default_factory=list)
    health_score: float = Field(default=0.5, ge=0.0, le=1.0)
    momentum: Momentum = Momentum.STABLE
    maturity_level: str = ""
    capability_layer: CapabilityLayer | None = None
    trending_context: str = ""
    why_now: str = ""
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)
    implementation_effort: str = ""
    last_validated: datetime | None = None

    @field_validator("segment_fit", "challenge_fit")
    @classmethod
    def _fit_scores_in_range(cls, value: dict[str, float]) -> dict[str, float]:
        return _check_fit_map(value)

    def fit_for(self, segment: Segment | str | None) -> float:
        if segment is None:
            return 0.0
        key = segment.value if isinstance(segment, Segment) else str(segment)
        return self.segment_fit.get(key, 0.0)


class Pattern(BaseModel):
    """An implementation-architecture template."""

    model_config = ConfigDict(frozen=True)

    name: str
    category: str = ""
    description: str = ""
    problem_solved: str = ""
    architecture: str = ""
    complexity: Complexity = Complexity.MODERATE
    typical_timeline: str = ""
    typical_cost_range: str = ""
    typical_stack: list[str] = Field(default_factory=list)
    success_indicators: list[str] = Field(default_factory=list)
    common_pitfalls: list[str] = Field(default_factory=list)
    segment_fit: dict[str, float] = Field(default_factory=dict)

    @field_validator("segment_fit")
    @classmethod
    def _fit_scores_in_range(cls, value: dict[str, float]) -> dict[str, float]:
        return _check_fit_map(value)


# =============================================================================
# Retrieval results
# =============================================================================


class ToolMatch(BaseModel):
    """A tool annotated with how well it matched a query."""

    model_config = ConfigDict(frozen=True)

    tool: Tool
    similarity: float = Field(ge=0.0, le=1.0)
    reason: str = "Good fit for your requirements"
    stack_compatibility: float = Field(default=0.5, ge=0.0, le=1.0)
    implementation_effort: str = ""

    @property
    def name(self) -> str:
        return self.tool.name


class TrendSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    rising: list[str] = Field(default_factory=list)
    declining: list[str] = Field(default_factory=list)
    new_entrants: list[str] = Field(default_factory=list)


class CostSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    median_tool_cost: str = ""
    custom_build: str = ""
    saas_range: str = ""


class ImplementationInsights(BaseModel):
    """Advice derived from the package and the assessment."""

    model_config = ConfigDict(frozen=True)

    primary_recommendation: str = ""
    risk_factors: list[str] = Field(default_factory=list)
    quick_wins: list[str] = Field(default_factory=list)
    long_term_strategy: str = ""


class QualityAssessment(BaseModel):
    """Outcome of scoring a package's field population."""

    model_config = ConfigDict(frozen=True)

    score: float
    issues: list[str] = Field(default_factory=list)
    use_fallback: bool


class PackageMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: DataSource = DataSource.FALLBACK
    freshness: float = Field(default=0.0, ge=0.0, le=1.0)
    data_age_days: float | None = None
    quality_score: float = 0.0
    quality_issues: list[str] = Field(default_factory=list)
    using_fallback: bool = False
    industry_data_points: int = 0
    successful_implementations: int = 0
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class IntelligencePackage(BaseModel):
    """Retrieval bundle for one report run. Never mutated after construction."""

    model_config = ConfigDict(frozen=True)

    tools: list[ToolMatch] = Field(default_factory=list)
    patterns: list[Pattern] = Field(default_factory=list)
    # segment -> metric name -> value
    benchmarks: dict[str, dict[str, str]] = Field(default_factory=dict)
    trends: TrendSummary = Field(default_factory=TrendSummary)
    costs: CostSummary = Field(default_factory=CostSummary)
    case_studies: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    insights: ImplementationInsights = Field(default_factory=ImplementationInsights)
    metadata: PackageMetadata = Field(default_factory=PackageMetadata)

    def benchmark_key_count(self) -> int:
        return sum(len(metrics) for metrics in self.benchmarks.values())

    def tool_names(self) -> list[str]:
        return [match.tool.name for match in self.tools]
