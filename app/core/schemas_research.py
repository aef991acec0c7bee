"""Pydantic models for research plans and findings."""

from pydantic import BaseModel, ConfigDict, Field

from app.core.schemas_intelligence import CapabilityLayer, IntelligencePackage, ToolMatch


# =============================================================================
# Planning
# =============================================================================


class ResearchTargets(BaseModel):
    """One search string per research angle, built from the assessment."""

    model_config = ConfigDict(frozen=True)

    company_profile: str
    industry_benchmarks: str
    process_analysis: str
    solution_requirements: str
    financial_context: str


class ResearchPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    company_queries: list[str] = Field(default_factory=list)
    primary_queries: list[str] = Field(default_factory=list)
    rag_queries: list[str] = Field(default_factory=list)
    external_searches: list[str] = Field(default_factory=list)
    targets: ResearchTargets


# =============================================================================
# Extracted findings
# =============================================================================


class ExtractedTool(BaseModel):
    """A tool mentioned in free-text research output."""

    model_config = ConfigDict(frozen=True)

    name: str
    capability_layer: CapabilityLayer = CapabilityLayer.FUNCTION_EXECUTION
    pricing: str = "Contact for pricing"
    integration: str = "API available"
    reason: str = "Suitable for the identified use case"


class ImplementationExample(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str
    stack: str = "As described"
    timeline: str = "Variable"
    source: str = "Research findings"


class BenchmarkFinding(BaseModel):
    model_config = ConfigDict(frozen=True)

    metric: str
    value: str


class CaseStudy(BaseModel):
    model_config = ConfigDict(frozen=True)

    company: str
    challenge: str = ""
    solution: str = ""
    result: str = ""

    def summary(self) -> str:
        detail = "; ".join(p for p in (self.solution, self.result) if p)
        return f"{self.company}: {detail}" if detail else self.company


class MarketTrend(BaseModel):
    model_config = ConfigDict(frozen=True)

    trend: str
    adoption: str = ""
    relevance: str = "High relevance"


class CompanyIntelligence(BaseModel):
    model_config = ConfigDict(frozen=True)

    profile: str = "Company profile not found in research"
    website_analysis: str = "Website analysis not available"
    team_size: str = "Team size not specified"
    website_promises: list[str] = Field(default_factory=list)
    competitor_context: str = "Competitor analysis not available"
    location_context: str = "Location context not specified"


class ResearchFindings(BaseModel):
    """Everything the research step learned for one report run."""

    model_config = ConfigDict(frozen=True)

    package: IntelligencePackage
    gaps: list[str] = Field(default_factory=list)
    # Retrieval tools first, then newly discovered ones; unique by name
    tools: list[ToolMatch] = Field(default_factory=list)
    external_tools: list[ExtractedTool] = Field(default_factory=list)
    implementations: list[ImplementationExample] = Field(default_factory=list)
    benchmarks: list[BenchmarkFinding] = Field(default_factory=list)
    case_studies: list[CaseStudy] = Field(default_factory=list)
    market_context: list[MarketTrend] = Field(default_factory=list)
    company: CompanyIntelligence = Field(default_factory=CompanyIntelligence)
    raw_text: str = ""
    citations: list[str] = Field(default_factory=list)
    provider: str | None = None
    weak: bool = False
    external_failed: bool = False

    @property
    def has_external_research(self) -> bool:
        return bool(self.raw_text) and not self.external_failed
