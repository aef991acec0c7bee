"""Research orchestration.

Plans queries from the assessment, builds a draft package from the retrieval
layer, lists what the draft is missing, asks a search-augmented model to fill
those gaps and folds the parsed answer back into the findings. The external
call runs through an ordered provider chain: search-augmented first, then a
single simulated-research call on the secondary provider.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from openai import OpenAI

from app.core.config import Settings
from app.core.errors import ProviderCallFailed, ProviderUnavailable, ResearchFailed
from app.core.llm import complete_chat
from app.core.logging import get_logger
from app.core.providers import ServiceHandles
from app.core.schemas_assessment import AssessmentInput
from app.core.schemas_intelligence import IntelligencePackage, Pricing, Tool, ToolMatch
from app.core.schemas_research import ExtractedTool, ResearchFindings, ResearchPlan
from app.intelligence.gatherer import IntelligenceGatherer
from app.research.extractors import ExtractorRegistry, default_registry
from app.research.planner import (
    build_plan,
    extract_location,
    extract_team_members,
    identify_gaps,
)

logger = get_logger(__name__)

MAX_MERGED_TOOLS = 12
EXTERNAL_TOOL_SIMILARITY = 0.6
RESEARCH_TOP_K = 10

RESEARCH_SYSTEM_PROMPT = (
    "You are a comprehensive business research analyst. Be expansive and creative "
    "in your research. Find unique insights and non-obvious solutions."
)

SIMULATED_RESEARCH_SYSTEM_PROMPT = (
    "You are a business research analyst. Create realistic, detailed research findings "
    "based on current industry patterns and trends. Be specific with tool names, "
    "companies, and metrics."
)

# Fixed scenarios shown alongside the computed ROI; not derived from research
ROI_SCENARIOS = [
    {
        "investment": 5000,
        "payback": "3-4 months",
        "year_one_return": "200-300%",
        "confidence": "High - based on similar implementations",
    },
    {
        "investment": 15000,
        "payback": "4-6 months",
        "year_one_return": "300-400%",
        "confidence": "High - comprehensive solution",
    },
    {
        "investment": 50000,
        "payback": "6-9 months",
        "year_one_return": "400-500%",
        "confidence": "Medium - requires change management",
    },
]


# =============================================================================
# Prompt
# =============================================================================


def _known_context(package: IntelligencePackage, industry: str, gaps: list[str]) -> str:
    if not package.tools:
        return ""

    tools = "\n".join(
        f"- {m.name} ({m.tool.capability_layer.value if m.tool.capability_layer else 'Unclassified'})"
        f" - {m.tool.pricing.details or 'pricing varies'}"
        for m in package.tools
    )
    patterns = (
        "\n".join(
            f"- {p.name}: {p.typical_timeline or 'timeline varies'}, {p.complexity.value} complexity"
            for p in package.patterns
        )
        or "None"
    )
    gap_lines = "\n".join(f"- {gap}" for gap in gaps)

    return f"""
CONTEXT FROM CURATED INTELLIGENCE DATABASE:
We already know these proven tools for {industry}:
{tools}

Implementation patterns available:
{patterns}

RESEARCH GAPS TO FILL:
{gap_lines}

BUILD ON THIS CONTEXT - focus on the gaps, don't repeat what we know.
"""


def build_research_prompt(
    assessment: AssessmentInput,
    plan: ResearchPlan,
    package: IntelligencePackage,
    gaps: list[str],
) -> str:
    """
    Build the external research prompt.

    The draft package goes in as already-known context and the gap list as
    the focus, so the provider spends its search budget on what is missing.
    """
    company = assessment.company or "the company"
    industry = assessment.industry
    challenge = assessment.primary_challenge
    stack = assessment.stack_text or "existing systems"
    process = assessment.process_description or "Not provided"
    context = assessment.additional_context or "Not provided"
    domain = assessment.email_domain
    location = extract_location(assessment) or "their local"
    team = extract_team_members(assessment.team_description)
    site = f" OR site:{domain}" if domain else ""
    searches = "\n".join(f"- {s}" for s in plan.external_searches)

    return f"""
Research {company} specifically and fill intelligence gaps for AI transformation.
{_known_context(package, industry, gaps)}
STEP 1: RESEARCH THE ACTUAL COMPANY
Search for "{company}"{site}:
- Company profile: team size, years in business, market position
- Website analysis: what they promise vs their internal process
- LinkedIn company page and employee backgrounds
- Client testimonials, case studies, reviews on G2/Clutch
- Competitive positioning in {location} {industry} market

STEP 2: CAPABILITY LAYER CATEGORIZATION
For ALL solutions found, categorize by capability layer:

**Context Orchestration Layer**: Business logic, decision engines, role-based workflows
**Knowledge Retrieval Layer**: Information access, search, data enrichment
**Function Execution Layer**: Automation, integrations, deterministic operations
**Conversational Interface Layer**: Natural language interaction, chatbots, voice

For each tool, write the tool name in bold and specify: "This addresses the [LAYER NAME] by [specific function for {company}]", including pricing.

STEP 3: IMPLEMENTATION SEARCH
- Query: site:github.com "{industry}" AND "{challenge}" stars:>50
- Implementation blogs and case studies for "{industry}" + "automated {challenge}" + "results"
- Companies with similar stack: {stack}
- Look for {len(team)}-person team implementations

STEP 4: COMPETITIVE MARKET POSITIONING
1. Find 3-5 direct competitors
2. Compare their processes vs {company}'s: "{process}"
3. Compare their tech stacks vs {company}'s: "{stack}"
4. Identify {company}'s unique advantages and gaps

STEP 5: SPECIFIC OPPORTUNITY CALCULATION
- Current challenge: "{context}"
- Current process involves: {', '.join(team)}
- Calculate time savings, cost reduction, revenue impact

STEP 6: UNEXPECTED INSIGHTS & ADJACENCIES
- What adjacent industries have solved similar problems?
- Emerging solutions not in our curated database

SUGGESTED SEARCHES:
{searches}

CRITICAL REQUIREMENTS:
1. ALWAYS specify the capability layer for each solution
2. Include actual URLs, GitHub repos, citations
3. Focus on current data only
4. Make this about {company} specifically, not generic advice
5. Fill the identified research gaps
6. Show competitive positioning analysis
7. Include implementation complexity and timelines
8. Provide specific ROI calculations for {company}
"""


# =============================================================================
# Provider chain
# =============================================================================


@dataclass
class ResearchResponse:
    text: str
    provider: str
    citations: list[str] = field(default_factory=list)
    weak: bool = False


@dataclass
class ResearchAttempt:
    """Outcome of one provider attempt."""

    strategy: str
    response: ResearchResponse | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.response is not None and not self.response.weak


class ResearchStrategy(ABC):
    name: str = "research"

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the provider credential is present."""

    @abstractmethod
    async def attempt(self, prompt: str) -> ResearchAttempt:
        """Run once. Never raises; failures go in ``ResearchAttempt.error``."""


class SearchAugmentedResearch(ResearchStrategy):
    """Perplexity call with recency and domain filters."""

    name = "perplexity"

    def __init__(self, client: OpenAI | None, settings: Settings, limiter=None):
        self.client = client
        self.settings = settings
        self.limiter = limiter

    def is_configured(self) -> bool:
        return self.client is not None

    async def attempt(self, prompt: str) -> ResearchAttempt:
        if self.client is None:
            return ResearchAttempt(self.name, error=ProviderUnavailable(self.name))

        try:
            result = await complete_chat(
                self.client,
                provider=self.name,
                model=self.settings.PERPLEXITY_MODEL,
                messages=[
                    {"role": "system", "content": RESEARCH_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.settings.PERPLEXITY_TEMPERATURE,
                max_tokens=self.settings.PERPLEXITY_MAX_TOKENS,
                limiter=self.limiter,
                extra_body={
                    "return_citations": True,
                    "search_recency_filter": self.settings.PERPLEXITY_RECENCY_FILTER,
                    "search_domain_filter": [],
                    "top_k": RESEARCH_TOP_K,
                },
            )
        except ProviderCallFailed as e:
            return ResearchAttempt(self.name, error=e)

        weak = len(result.citations) < self.settings.MIN_RESEARCH_CITATIONS
        if weak:
            logger.warning(
                f"Weak research: {len(result.citations)} citations",
                extra={"provider": self.name},
            )
        return ResearchAttempt(
            self.name,
            response=ResearchResponse(
                text=result.text, provider=self.name, citations=result.citations, weak=weak
            ),
        )


class SimulatedResearch(ResearchStrategy):
    """Secondary provider asked to write research from general knowledge."""

    name = "openai"

    def __init__(self, client: OpenAI | None, settings: Settings, limiter=None):
        self.client = client
        self.settings = settings
        self.limiter = limiter

    def is_configured(self) -> bool:
        return self.client is not None

    async def attempt(self, prompt: str) -> ResearchAttempt:
        if self.client is None:
            return ResearchAttempt(self.name, error=ProviderUnavailable(self.name))

        try:
            result = await complete_chat(
                self.client,
                provider=self.name,
                model=self.settings.RESEARCH_FALLBACK_MODEL,
                messages=[
                    {"role": "system", "content": SIMULATED_RESEARCH_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.settings.PERPLEXITY_TEMPERATURE,
                max_tokens=self.settings.PERPLEXITY_MAX_TOKENS,
                limiter=self.limiter,
            )
        except ProviderCallFailed as e:
            return ResearchAttempt(self.name, error=e)

        return ResearchAttempt(
            self.name, response=ResearchResponse(text=result.text, provider=self.name)
        )


# =============================================================================
# Merging
# =============================================================================


def external_tool_match(extracted: ExtractedTool) -> ToolMatch:
    """Wrap a tool found in research prose so it ranks beside catalog tools."""
    tool = Tool(
        name=extracted.name,
        category=extracted.capability_layer.value,
        description=f"Addresses {extracted.capability_layer.value} requirements",
        pricing=Pricing(details=extracted.pricing),
        integrations=[extracted.integration],
        capability_layer=extracted.capability_layer,
    )
    return ToolMatch(tool=tool, similarity=EXTERNAL_TOOL_SIMILARITY, reason=extracted.reason)


def merge_tools(
    retrieved: list[ToolMatch], external: list[ExtractedTool], limit: int = MAX_MERGED_TOOLS
) -> list[ToolMatch]:
    """Retrieval tools first, then external ones; first name wins, case-insensitive."""
    merged: list[ToolMatch] = []
    seen: set[str] = set()
    for match in [*retrieved, *(external_tool_match(t) for t in external)]:
        key = match.name.strip().lower()
        if key in seen:
            continue
        seen.add(key)
        merged.append(match)
    return merged[:limit]


# =============================================================================
# Orchestrator
# =============================================================================


class ResearchOrchestrator:
    """Runs the plan, draft, gaps, external research and merge sequence."""

    def __init__(
        self,
        gatherer: IntelligenceGatherer,
        strategies: list[ResearchStrategy],
        extractors: ExtractorRegistry | None = None,
    ):
        self.gatherer = gatherer
        self.strategies = list(strategies)
        self.extractors = extractors or default_registry()

    def plan(self, assessment: AssessmentInput) -> ResearchPlan:
        return build_plan(assessment)

    async def _call_providers(self, prompt: str) -> tuple[ResearchResponse | None, list[ResearchAttempt]]:
        """First strong response wins; a weak one is kept only if nothing better follows."""
        attempts: list[ResearchAttempt] = []
        weak: ResearchResponse | None = None

        for strategy in self.strategies:
            attempt = await strategy.attempt(prompt)
            attempts.append(attempt)
            if attempt.ok:
                return attempt.response, attempts
            if attempt.response is not None and weak is None:
                weak = attempt.response
            logger.info(
                f"Research provider {strategy.name} fell through",
                extra={"strategy": strategy.name, "failed": attempt.error is not None},
            )

        return weak, attempts

    def parse(self, text: str) -> dict:
        """Run every registered extractor over the provider text."""
        return {
            "external_tools": self.extractors.extract("tools", text),
            "implementations": self.extractors.extract("implementations", text),
            "benchmarks": self.extractors.extract("benchmarks", text),
            "case_studies": self.extractors.extract("case_studies", text),
            "market_context": self.extractors.extract("market_context", text),
            "company": self.extractors.extract("company", text),
        }

    async def execute(self, plan: ResearchPlan, assessment: AssessmentInput) -> ResearchFindings:
        """
        Execute a research plan.

        Args:
            plan: Output of ``plan()``
            assessment: Frozen assessment answers

        Returns:
            ResearchFindings with merged tools and parsed external research

        Raises:
            ResearchFailed: If no external provider produced text; ``partial``
                holds the draft findings
        """
        draft = await self.gatherer.gather(assessment, queries=plan.rag_queries)
        gaps = identify_gaps(draft, assessment)
        logger.info(
            f"Draft package has {len(draft.tools)} tools, {len(gaps)} gaps",
            extra={"gaps": gaps},
        )

        partial = ResearchFindings(package=draft, gaps=gaps, tools=list(draft.tools))
        prompt = build_research_prompt(assessment, plan, draft, gaps)
        response, attempts = await self._call_providers(prompt)

        if response is None:
            causes = [a.error for a in attempts if a.error is not None]
            tried = ", ".join(a.strategy for a in attempts) or "none configured"
            raise ResearchFailed(
                f"All research providers failed ({tried})",
                partial=partial.model_copy(update={"external_failed": True}),
                causes=causes,
            )

        parsed = self.parse(response.text)
        case_studies = parsed["case_studies"]
        package = draft.model_copy(
            update={"case_studies": [c.summary() for c in case_studies]}
        )

        findings = ResearchFindings(
            package=package,
            gaps=gaps,
            tools=merge_tools(draft.tools, parsed["external_tools"]),
            raw_text=response.text,
            citations=response.citations,
            provider=response.provider,
            weak=response.weak,
            **parsed,
        )
        logger.info(
            f"Research complete via {response.provider}: {len(findings.tools)} tools, "
            f"{len(findings.citations)} citations",
            extra={"weak": response.weak},
        )
        return findings

    async def run(self, assessment: AssessmentInput) -> ResearchFindings:
        return await self.execute(self.plan(assessment), assessment)


def build_research_orchestrator(
    handles: ServiceHandles, gatherer: IntelligenceGatherer
) -> ResearchOrchestrator:
    """Standard provider chain: search-augmented research, then simulated research."""
    return ResearchOrchestrator(
        gatherer,
        [
            SearchAugmentedResearch(handles.perplexity, handles.settings, handles.limiter),
            SimulatedResearch(handles.openai, handles.settings, handles.limiter),
        ],
    )


# =============================================================================
# Text rendering
# =============================================================================


def format_research_results(findings: ResearchFindings) -> str:
    """Markdown digest of the findings for the synthesis prompt."""
    tools = "\n".join(
        f"- **{m.name}** ({m.tool.capability_layer.value if m.tool.capability_layer else 'Unclassified'})"
        f": {m.tool.pricing.details or 'Contact for pricing'}. {m.reason}"
        for m in findings.tools
    )
    implementations = "\n".join(
        f"- {i.description} (Timeline: {i.timeline})" for i in findings.implementations
    )
    benchmarks = "\n".join(f"- {b.metric}: {b.value}" for b in findings.benchmarks)
    case_studies = "\n".join(f"- {c.summary()}" for c in findings.case_studies)
    market = "\n".join(
        f"- {m.trend}" + (f" ({m.adoption})" if m.adoption else "") for m in findings.market_context
    )
    roi = "\n".join(
        f"- ${s['investment']:,} investment: payback {s['payback']}, year one {s['year_one_return']}"
        for s in ROI_SCENARIOS
    )

    sections = [
        ("TOOLS & SOLUTIONS", tools),
        ("IMPLEMENTATION EXAMPLES", implementations),
        ("INDUSTRY BENCHMARKS", benchmarks),
        ("CASE STUDIES", case_studies),
        ("MARKET CONTEXT", market),
        ("ROI SCENARIOS", roi),
    ]
    parts = [f"## {title}\n{body or '- None found'}" for title, body in sections]

    if findings.raw_text:
        parts.append(f"## DETAILED RESEARCH NOTES\n{findings.raw_text}")
    if findings.citations:
        cited = "\n".join(f"{i}. {c}" for i, c in enumerate(findings.citations, start=1))
        parts.append(f"## SOURCES & CITATIONS\n{cited}")

    return "\n\n".join(parts)
