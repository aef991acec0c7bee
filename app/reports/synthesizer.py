"""Report synthesis.

Three strategies are tried in order: deterministic section generators, a
single LLM call that writes the whole report, and a hand-authored static
report. The static tier always succeeds, so ``synthesize`` always returns a
``Report``. All numbers come from ``compute_report_metrics`` no matter which
tier wrote the prose.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from openai import OpenAI

from app.core.config import Settings
from app.core.errors import InsufficientData, ProviderCallFailed, ProviderUnavailable
from app.core.llm import complete_chat
from app.core.logging import get_logger
from app.core.providers import ServiceHandles
from app.core.rate_limiter import RateLimiter
from app.core.report_metrics import compute_report_metrics
from app.core.schemas_assessment import AssessmentInput, ContextInference
from app.core.schemas_intelligence import DataSource
from app.core.schemas_report import (
    CURATED_NOTICE,
    Report,
    ReportProvenance,
    ReportSection,
    SynthesisTier,
)
from app.core.schemas_research import ResearchFindings
from app.research.engine import format_research_results
from app.reports.markdown import parse_markdown_sections
from app.reports.sections import SectionContext, generate_sections

logger = get_logger(__name__)

MIN_LLM_SECTIONS = 3

SYNTHESIS_SYSTEM_PROMPT = (
    "You are a management consultant creating a detailed transformation report. "
    "Be specific and use real numbers."
)

REPORT_STRUCTURE = """You are creating a comprehensive Revenue Intelligence Report.
Structure the report with these EXACT sections, each as a `## ` markdown header:

## Executive Summary
- Define the problem and solution in 2-3 paragraphs
- Include the primary value proposition

## The GABI Advantage
- Describe the four capability layers: Context Orchestration, Knowledge Retrieval,
  Function Execution, Conversational Interface

## Current State Analysis
- Describe their current process using the exact words from their input
- Calculate current costs and identify specific bottlenecks

## Industry Benchmarks
- Compare their metrics to industry standards with specific percentages

## In-Scope Solutions
### Augmentation Tools
### Custom Architecture
### Hybrid Approach

## Future State Vision
- Describe the transformed process and a 90-day plan

## Return on Investment Analysis
- A markdown table of current vs. future metrics, investment, payback and 12-month ROI

## Market Context
- Use the trends data

## Next Steps
- Clear call to action for a strategy session"""


# =============================================================================
# Prompt
# =============================================================================


def build_synthesis_prompt(ctx: SectionContext) -> str:
    assessment = ctx.assessment
    inference = ctx.inference
    roi = ctx.metrics.roi
    current = ctx.metrics.current

    if ctx.findings is not None:
        research = format_research_results(ctx.findings)
        metadata = ctx.findings.package.metadata
        trends = ctx.findings.package.trends
        costs = ctx.findings.package.costs
        intelligence = f"""MARKET INTELLIGENCE METADATA:
- Data Freshness: {round(metadata.freshness * 100)}% current
- Quality Score: {round(metadata.quality_score * 100)}/100
- Industry Data Points: {metadata.industry_data_points}
- Successful Implementations Analyzed: {metadata.successful_implementations}
- Using Fallback Enhancement: {'Yes' if metadata.using_fallback else 'No'}

MARKET TRENDS DATA:
Rising: {', '.join(trends.rising[:3]) or 'N/A'}
Declining: {', '.join(trends.declining[:2]) or 'N/A'}
New Entrants: {', '.join(trends.new_entrants[:3]) or 'N/A'}

COST INTELLIGENCE:
Median Tool Cost: {costs.median_tool_cost or 'N/A'}
Custom Build Estimate: {costs.custom_build or 'N/A'}
SaaS Range: {costs.saas_range or 'N/A'}"""
    else:
        research = "No research findings available."
        intelligence = "MARKET INTELLIGENCE METADATA:\n- Using Fallback Enhancement: Yes"

    return f"""{REPORT_STRUCTURE}

ASSESSMENT DATA:
{assessment.model_dump_json(indent=2, exclude={'email', 'session_id'})}

RESEARCH FINDINGS:
{research}

BUSINESS CONTEXT:
- Company: {assessment.company_name}
- Industry: {assessment.industry}
- Primary Challenge: {assessment.primary_challenge}
- Maturity: {inference.maturity.value}
- Hidden Challenges: {', '.join(inference.hidden_multipliers) or 'None identified'}
- Urgency: {inference.urgency.value}

KEY METRICS TO INCLUDE (use these exact numbers):
- Current lead conversion: {roi.current_conversion:g}%
- Target conversion: {roi.target_conversion:g}%
- Current sales cycle: {current.cycle_length} months
- Target cycle: {current.target_cycle:g} months
- Potential revenue increase: ${roi.revenue_gain:,.0f}
- Cost savings: ${roi.cost_savings:,.0f}
- Total investment: ${roi.total_investment:,.0f}
- Payback period: {roi.payback_months} months
- 12-month ROI: {roi.annual_roi}%

{intelligence}

CRITICAL REQUIREMENTS:
1. Use the SPECIFIC TOOLS from the research findings in the "In-Scope Solutions" section
2. Use the exact metric values above; do not invent different numbers
3. Format every section with a `## ` markdown header
4. If using fallback data, indicate this with the phrase "{CURATED_NOTICE.lower()}\""""


# =============================================================================
# Strategies
# =============================================================================


@dataclass
class SynthesisAttempt:
    """Outcome of one synthesis strategy."""

    tier: SynthesisTier
    sections: list[ReportSection] = field(default_factory=list)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.sections)


class SynthesisStrategy(ABC):
    tier: SynthesisTier

    @abstractmethod
    async def attempt(self, ctx: SectionContext) -> SynthesisAttempt:
        """Run once. Never raises; failures go in ``SynthesisAttempt.error``."""


class DeterministicSynthesis(SynthesisStrategy):
    """Template interpolation over retrieved tools, patterns and metrics."""

    tier = SynthesisTier.DETERMINISTIC

    async def attempt(self, ctx: SectionContext) -> SynthesisAttempt:
        try:
            return SynthesisAttempt(self.tier, sections=generate_sections(ctx))
        except InsufficientData as e:
            return SynthesisAttempt(self.tier, error=e)
        except Exception as e:
            logger.error(f"Deterministic section generation failed: {e}", exc_info=True)
            return SynthesisAttempt(self.tier, error=e)


class LLMSynthesis(SynthesisStrategy):
    """One completion that writes every section."""

    tier = SynthesisTier.LLM

    def __init__(
        self,
        client: OpenAI | None,
        settings: Settings,
        limiter: RateLimiter | None = None,
    ):
        self.client = client
        self.settings = settings
        self.limiter = limiter

    async def attempt(self, ctx: SectionContext) -> SynthesisAttempt:
        if self.client is None:
            return SynthesisAttempt(self.tier, error=ProviderUnavailable("openai"))

        try:
            result = await complete_chat(
                self.client,
                provider="openai",
                model=self.settings.SYNTHESIS_MODEL,
                messages=[
                    {"role": "system", "content": SYNTHESIS_SYSTEM_PROMPT},
                    {"role": "user", "content": build_synthesis_prompt(ctx)},
                ],
                temperature=0.3,
                max_tokens=self.settings.SYNTHESIS_MAX_TOKENS,
                limiter=self.limiter,
            )
        except ProviderCallFailed as e:
            return SynthesisAttempt(self.tier, error=e)

        sections = parse_markdown_sections(result.text)
        if len(sections) < MIN_LLM_SECTIONS:
            return SynthesisAttempt(
                self.tier,
                error=InsufficientData(
                    f"LLM report had {len(sections)} sections, need {MIN_LLM_SECTIONS}"
                ),
            )
        return SynthesisAttempt(self.tier, sections=sections)


class StaticSynthesis(SynthesisStrategy):
    """Hand-authored generic report. Always succeeds."""

    tier = SynthesisTier.STATIC

    async def attempt(self, ctx: SectionContext) -> SynthesisAttempt:
        return SynthesisAttempt(self.tier, sections=static_sections(ctx))


def static_sections(ctx: SectionContext) -> list[ReportSection]:
    assessment = ctx.assessment
    roi = ctx.metrics.roi
    current = ctx.metrics.current
    company = assessment.company_name
    industry = assessment.industry
    challenge = assessment.primary_challenge
    process = assessment.process_description or "current business processes"
    stack = assessment.stack_text or "existing systems"
    multipliers = " and ".join(ctx.inference.hidden_multipliers) or "Manual handoffs"

    return [
        ReportSection(
            key="executive_summary",
            heading="Executive Summary",
            body=f"""{company} operates as a {industry} organization facing significant challenges in {challenge}. Our assessment identified opportunities for AI-driven transformation that could generate ${roi.revenue_gain:,.0f} in additional revenue annually.

Lead conversion currently sits at {roi.current_conversion:g}%. A {roi.target_conversion:g}% target is realistic with intelligent automation and context-aware qualification.

*{CURATED_NOTICE}.*""",
        ),
        ReportSection(
            key="capability_advantage",
            heading="The GABI Advantage",
            body="""A four-layer framework for sustainable AI transformation:

1. **Context Orchestration** - Business logic that understands your specific processes
2. **Knowledge Retrieval** - Search across your own data without moving it
3. **Function Execution** - Deterministic workflow automation
4. **Conversational Interface** - Natural language access to all of the above""",
        ),
        ReportSection(
            key="current_state",
            heading="Current State Analysis",
            body=f"""{company} currently operates with the following process: "{process}"

**Current Challenges:**

- {challenge} creating operational bottlenecks
- {multipliers} impacting overall efficiency
- Sales cycle averaging {current.cycle_length} months
- Lead conversion rate of {roi.current_conversion:g}%

**Technology Stack:** Currently utilizing {stack}, which provides a foundation for AI integration.""",
        ),
        ReportSection(
            key="benchmarks",
            heading=f"Industry Benchmarks for {industry}",
            body=f"""{industry} companies typically achieve:

- **Lead Conversion:** 15-20% (vs. your current {roi.current_conversion:g}%)
- **Sales Cycle:** 3-4 months (vs. your current {current.cycle_length} months)
- **Process Automation:** 70-80% of routine tasks
- **Customer Response Time:** Under 2 hours for 90% of inquiries""",
        ),
        ReportSection(
            key="solutions",
            heading="In-Scope Solutions",
            body="""### Off-The-Shelf SaaS

- **CRM Automation Platform:** $200-400/month - Lead scoring and nurturing
- **Process Automation Tool:** $150-300/month - Workflow optimization
- **AI Analytics Dashboard:** $100-250/month - Performance insights

### Custom Build

- **Bespoke AI Solution:** $25,000-75,000 - Tailored to exact specifications
- **Development Timeline:** 6-12 months

### Hybrid Approach

- A context engine orchestrating best-of-breed tools
- **Implementation Timeline:** 6-8 weeks""",
        ),
        ReportSection(
            key="future_state",
            heading="Future State Vision",
            body=f"""With implementation complete, {company} will operate with:

- Automated lead qualification and scoring
- Intelligent customer communications
- Real-time performance dashboards
- Team focus shifted from operational to strategic work""",
        ),
        ReportSection(
            key="roi",
            heading="Return on Investment Analysis",
            body=f"""| Metric | Current State | Future State | Annual Impact |
|--------|---------------|--------------|---------------|
| Lead Conversion | {roi.current_conversion:g}% | {roi.target_conversion:g}% | +${roi.revenue_gain:,.0f} revenue |
| Process Efficiency | {roi.current_efficiency}% | {roi.target_efficiency}% | ${roi.cost_savings:,.0f} cost reduction |
| Total Investment | - | - | ${roi.total_investment:,.0f} |
| Payback Period | - | - | {roi.payback_months} months |
| 12-Month ROI | - | - | {roi.annual_roi}% |""",
        ),
        ReportSection(
            key="next_steps",
            heading="Next Steps",
            body="""1. **Strategy Session** - 90-minute consultation to refine requirements
2. **Pilot Program** - 30-day proof of concept on the highest-impact use case
3. **Phased Rollout** - Systematic implementation across all identified areas
4. **Optimization** - Continuous refinement based on performance data

*This report is a preliminary analysis based on your assessment responses.*""",
        ),
    ]


# =============================================================================
# Synthesizer
# =============================================================================


def _provenance(
    tier: SynthesisTier, findings: ResearchFindings | None
) -> ReportProvenance:
    if findings is None:
        return ReportProvenance(
            tier=tier,
            research_failed=True,
            notices=[CURATED_NOTICE, "External research was unavailable for this report"],
        )

    metadata = findings.package.metadata
    using_fallback = metadata.using_fallback or tier == SynthesisTier.STATIC
    notices = []
    if using_fallback or metadata.source == DataSource.FALLBACK:
        notices.append(CURATED_NOTICE)
    if findings.external_failed:
        notices.append("External research was unavailable for this report")
    elif findings.weak:
        notices.append("Live research returned few sources; figures lean on curated data")

    return ReportProvenance(
        tier=tier,
        data_source=metadata.source,
        using_fallback=using_fallback,
        quality_score=metadata.quality_score,
        freshness=metadata.freshness,
        data_age_days=metadata.data_age_days,
        research_provider=findings.provider,
        research_weak=findings.weak,
        research_failed=findings.external_failed,
        notices=notices,
    )


class ReportSynthesizer:
    """Tries each synthesis strategy in order until one yields sections."""

    def __init__(self, strategies: list[SynthesisStrategy]):
        self.strategies = list(strategies)
        if not any(isinstance(s, StaticSynthesis) for s in self.strategies):
            self.strategies.append(StaticSynthesis())

    async def synthesize(
        self,
        assessment: AssessmentInput,
        findings: ResearchFindings | None,
        inference: ContextInference,
    ) -> Report:
        """
        Build a report for one assessment.

        Args:
            assessment: Frozen assessment answers
            findings: Research findings, or None when research produced nothing
            inference: Rule-based or LLM context inference

        Returns:
            Report tagged with the tier that produced it
        """
        metrics = compute_report_metrics(assessment)
        ctx = SectionContext(
            assessment=assessment, inference=inference, metrics=metrics, findings=findings
        )

        attempt = None
        for strategy in self.strategies:
            attempt = await strategy.attempt(ctx)
            if attempt.ok:
                break
            logger.warning(
                f"Synthesis tier {strategy.tier.value} failed: {attempt.error}",
                extra={"tier": strategy.tier.value},
            )

        provenance = _provenance(attempt.tier, findings)
        logger.info(
            f"Report synthesized for {assessment.company_name} via {attempt.tier.value}",
            extra={"tier": attempt.tier.value, "sections": len(attempt.sections)},
        )
        return Report(
            company_name=assessment.company_name,
            title=f"Revenue Intelligence Report: {assessment.company_name}",
            sections=attempt.sections,
            metrics=metrics.summary(),
            provenance=provenance,
        )


def build_report_synthesizer(handles: ServiceHandles) -> ReportSynthesizer:
    """Standard chain: deterministic, then LLM, then static."""
    return ReportSynthesizer(
        [
            DeterministicSynthesis(),
            LLMSynthesis(handles.openai, handles.settings, handles.limiter),
            StaticSynthesis(),
        ]
    )
