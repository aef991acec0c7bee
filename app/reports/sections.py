"""Deterministic report section generators.

Each generator interpolates the assessment, the research findings and the
computed metrics into fixed prose. A generator raises ``InsufficientData``
when the data it needs is missing; the synthesizer then falls back to the
next tier instead of printing an empty section.
"""

import re
from dataclasses import dataclass
from typing import Callable

from app.core.context_inference import maturity_insights
from app.core.errors import InsufficientData
from app.core.report_metrics import ReportMetrics
from app.core.schemas_assessment import (
    AssessmentInput,
    ContextInference,
    MaturityStage,
    UrgencyLevel,
)
from app.core.schemas_intelligence import (
    CapabilityLayer,
    IntelligencePackage,
    Segment,
    ToolMatch,
)
from app.core.schemas_report import CURATED_NOTICE, ReportSection
from app.core.schemas_research import ResearchFindings

MAX_SOLUTION_TOOLS = 4
EXCLUDED_CATEGORIES = {"traditional-crm", "legacy-crm"}

_ROLE = re.compile(r"\b(owner|manager|engineer|developer|consultant|salesperson)\b", re.IGNORECASE)

LAYER_DESCRIPTIONS = {
    CapabilityLayer.CONTEXT_ORCHESTRATION: (
        "Business logic and role-based intelligence that understands your specific processes"
    ),
    CapabilityLayer.KNOWLEDGE_RETRIEVAL: (
        "Semantic search across your data without it leaving your infrastructure"
    ),
    CapabilityLayer.FUNCTION_EXECUTION: (
        "Deterministic operations and workflow automation tailored to your needs"
    ),
    CapabilityLayer.CONVERSATIONAL_INTERFACE: (
        "Natural language interaction that orchestrates complex operations simply"
    ),
}

TYPICAL_PROCESS = {
    Segment.ITSM: [
        "**Monday**: Prospect submits form → lands in shared inbox",
        '**Tuesday**: Someone notices the lead → forwards to "technical person"',
        '**Wednesday**: Technical review → "we need more info" → email back to prospect',
        "**Thursday-Friday**: Prospect provides info → back to technical review",
        "**Next Monday**: Finally qualified → scheduled for demo the following week",
        "**Timeline**: 7-10 days for simple qualification",
    ],
    Segment.AGENCY: [
        "**Hour 1**: Lead comes in → forwarded to account manager",
        "**Day 1-2**: Account manager reviews → schedules internal discovery call",
        "**Day 3-4**: Discovery call happens → team debates fit internally",
        "**Day 5-7**: Proposal scoped → sent to prospect",
        "**Week 2**: Follow up begins → 3-5 touch attempts",
        "**Timeline**: 10-14 days to move from lead to qualified opportunity",
    ],
    Segment.SAAS: [
        "**Immediate**: Lead hits marketing automation → scored algorithmically",
        "**Hour 1-6**: SDR gets notification → researches company manually",
        "**Day 1**: SDR attempts contact → usually voicemail/email",
        "**Day 2-3**: Follow-up sequence → 2-3 more attempts",
        "**Day 4-5**: If connected, manual qualification call scheduled",
        "**Timeline**: 5-7 days from lead to qualified demo",
    ],
}

GENERIC_CASE_STUDIES = [
    (
        "Early adopter",
        "Started with AI qualification. Within 90 days, response time dropped from 2-3 days "
        "to under 30 minutes and lead conversion improved from 4% to 11%. The senior team "
        "stopped spending 20+ hours weekly on lead review.",
    ),
    (
        "Full transformation",
        "Automated qualification, proposal generation and client onboarding. Now handles 400% "
        "more prospects with the same team size while maintaining 95% client satisfaction.",
    ),
    (
        "Scaled custom build",
        "Built a custom AI architecture that processes 2,000+ leads monthly with 92% "
        "qualification accuracy, letting the sales team focus on high-probability prospects.",
    ),
]


# =============================================================================
# Context
# =============================================================================


@dataclass
class SectionContext:
    """Everything a section generator may read."""

    assessment: AssessmentInput
    inference: ContextInference
    metrics: ReportMetrics
    findings: ResearchFindings | None = None

    @property
    def package(self) -> IntelligencePackage:
        if self.findings is None:
            raise InsufficientData("No intelligence package available")
        return self.findings.package

    @property
    def tools(self) -> list[ToolMatch]:
        return self.findings.tools if self.findings else []

    @property
    def company(self) -> str:
        return self.assessment.company_name

    @property
    def industry(self) -> str:
        return self.assessment.industry

    @property
    def stack(self) -> str:
        return self.assessment.stack_text or "your existing systems"

    @property
    def using_fallback(self) -> bool:
        return self.findings is None or self.package.metadata.using_fallback


def _money(value: float) -> str:
    return f"${value:,.0f}"


def _pct(value: float) -> str:
    return f"{value:g}%"


def extract_roles(process: str) -> list[str]:
    roles = []
    for match in _ROLE.finditer(process or ""):
        role = match.group(1).lower()
        if role not in roles:
            roles.append(role)
    return roles


def extract_trigger(process: str) -> str:
    text = (process or "").lower()
    if "form" in text:
        return "a prospect submits a form"
    if "email" in text:
        return "a lead email arrives"
    if "call" in text:
        return "an inbound call is received"
    return "a new lead enters the system"


def extract_bottleneck(assessment: AssessmentInput) -> str:
    if "qualification" in assessment.primary_challenge.lower():
        return "manual qualification"
    if "manual" in assessment.process_description.lower():
        return "manual review"
    return "response delay"


def infer_response_time(assessment: AssessmentInput) -> str:
    if "manual" in assessment.process_description.lower():
        return "24-48 hours"
    if "part-time" in assessment.team_description.lower():
        return "2-3 days"
    return "12-24 hours"


def infer_automation(assessment: AssessmentInput) -> int:
    if len(assessment.tech_stack) > 3:
        return 30
    if "automation" in assessment.stack_text.lower():
        return 25
    return 15


def _humanize(key: str) -> str:
    return key.replace("_", " ").capitalize()


def solution_tools(ctx: SectionContext) -> list[ToolMatch]:
    """Tools worth recommending; traditional CRMs only if already in the stack."""
    stack = ctx.assessment.stack_text.lower()
    picked = []
    for match in ctx.tools:
        if match.tool.category in EXCLUDED_CATEGORIES and match.name.lower() not in stack:
            continue
        picked.append(match)
    return picked[:MAX_SOLUTION_TOOLS]


# =============================================================================
# Generators
# =============================================================================


def generate_executive_summary(ctx: SectionContext) -> ReportSection:
    roi = ctx.metrics.roi
    insights = maturity_insights(ctx.inference.maturity)
    tools = solution_tools(ctx)
    if not tools:
        raise InsufficientData("No tools to summarize")

    tool_names = ", ".join(m.name for m in tools[:3])
    provenance = (
        f"\n\n*{CURATED_NOTICE}, supplemented with current research.*"
        if ctx.using_fallback
        else ""
    )

    body = f"""{ctx.company} operates as a {ctx.industry} organization where {ctx.assessment.primary_challenge} is limiting growth. Your answers place you at the **{ctx.inference.maturity.value}** stage, so the right focus is to {insights.focus.lower()} over the next {insights.timeframe}.

Lifting lead conversion from {_pct(roi.current_conversion)} to {_pct(roi.target_conversion)} and reclaiming leadership time is worth an estimated **{_money(roi.revenue_gain + roi.cost_savings)} per year**. On a {_money(roi.total_investment)} first-year investment that pays back in **{roi.payback_months} months** with a 12-month ROI of **{roi.annual_roi}%**.

The recommended starting stack is {tool_names}, connected to {ctx.stack}.{provenance}"""
    return ReportSection(key="executive_summary", heading="Executive Summary", body=body)


def generate_capability_advantage(ctx: SectionContext) -> ReportSection:
    counts = {layer: 0 for layer in CapabilityLayer}
    for match in ctx.tools:
        if match.tool.capability_layer:
            counts[match.tool.capability_layer] += 1

    lines = []
    for layer, description in LAYER_DESCRIPTIONS.items():
        suffix = f" ({counts[layer]} recommended tools)" if counts[layer] else ""
        lines.append(f"- **{layer.value}**: {description}{suffix}")

    body = (
        "Every recommendation in this report is filed under one of four capability layers:\n\n"
        + "\n".join(lines)
    )
    return ReportSection(key="capability_advantage", heading="The GABI Advantage", body=body)


def _strengths(ctx: SectionContext) -> list[str]:
    assessment = ctx.assessment
    company_intel = ctx.findings.company if ctx.findings else None
    team = assessment.team_description.lower()
    process = assessment.process_description.lower()

    strengths = []
    if company_intel and company_intel.website_promises:
        strengths.append(
            f"**Market Positioning**: {ctx.company} has clearly defined value propositions "
            f"that resonate with {ctx.industry} clients"
        )
    if "senior" in team or "experienced" in team:
        strengths.append(
            "**Technical Excellence**: Your experienced team builds trust quickly with "
            "technical prospects"
        )
    if "face-to-face" in process or "conference" in process:
        strengths.append(
            "**Relationship Excellence**: Your emphasis on personal interaction creates "
            "deeper client bonds than purely digital competitors"
        )
    if assessment.tech_stack:
        strengths.append(
            f"**Integration Ready**: Your {ctx.stack} ecosystem gives AI tools a solid "
            "foundation to plug into"
        )
    return strengths or [
        f"**Domain Authority**: {ctx.company} has built genuine expertise that creates trust "
        "in sales conversations"
    ]


def generate_current_state(ctx: SectionContext) -> ReportSection:
    assessment = ctx.assessment
    current = ctx.metrics.current
    company_intel = ctx.findings.company if ctx.findings else None
    roles = extract_roles(assessment.process_description) or ["team members"]
    process = assessment.process_description or "your current process"
    mentioned = assessment.additional_context or ", ".join(assessment.challenges) or (
        "limited demos and long cycles"
    )

    discovered = ""
    if company_intel and ctx.findings.has_external_research:
        discovered = f"### What We Discovered About {ctx.company}\n\n{company_intel.profile}\n\n"

    multipliers = "\n".join(f"- {m}" for m in ctx.inference.hidden_multipliers)
    strengths = "\n".join(f"- {s}" for s in _strengths(ctx))

    body = f"""{discovered}Your internal process today: "{process}"

### How We Calculate Your Numbers

- You mentioned: "{mentioned}"
- Lead flow of ~{current.monthly_leads:g} leads/month
- Your conversion: {_pct(current.current_conversion)} means {current.monthly_deals} opportunities from this flow
- Close rate of {_pct(current.close_rate)} = {current.actual_deals} deals/month
- Average deal: {_money(current.avg_deal_size)}
- **Current new revenue: {_money(current.current_monthly_revenue)}/month**

### Cost Structure

- Team time ({', '.join(roles)}): {current.executive_hours} hours/week combined
- At a blended rate of {_money(current.blended_rate)}/hour: {_money(current.executive_cost)}/year
- Current tools ({ctx.stack}): {_money(current.tool_cost)}/year
- Opportunity cost of {current.cycle_length}-month cycles: **{_money(current.delayed_revenue)}/year in delayed revenue**

### Hidden Costs

{multipliers or '- Manual effort that does not show up on any budget line'}

### What You're Doing Right

{strengths}"""
    return ReportSection(key="current_state", heading="Current State Analysis", body=body)


def generate_benchmarks(ctx: SectionContext) -> ReportSection:
    segment = ctx.assessment.segment
    benchmarks = ctx.package.benchmarks.get(segment.value) or {}
    if not benchmarks:
        raise InsufficientData(f"No benchmarks for segment {segment.value}")

    process = "\n".join(f"- {step}" for step in TYPICAL_PROCESS[segment])
    rows = "\n".join(f"| {_humanize(k)} | {v} |" for k, v in benchmarks.items())
    found = ""
    if ctx.findings and ctx.findings.benchmarks:
        found = "\n\n### From Current Research\n\n" + "\n".join(
            f"- {b.metric}: {b.value}" for b in ctx.findings.benchmarks
        )

    body = f"""### The Typical Process Without AI

{process}

### Current Performance Metrics

| Metric | {ctx.industry} Benchmark |
|--------|-----------|
{rows}

**Your current metrics vs. industry:**

- Lead conversion: {_pct(ctx.metrics.current.current_conversion)} (Industry: {benchmarks.get('lead_conversion', 'n/a')})
- Response time: {infer_response_time(ctx.assessment)}
- Process automation: {infer_automation(ctx.assessment)}% (Industry: {benchmarks.get('automation_level', 'n/a')}){found}"""
    return ReportSection(
        key="benchmarks", heading=f"Industry Benchmarks for {ctx.industry}", body=body
    )


def generate_solutions(ctx: SectionContext) -> ReportSection:
    tools = solution_tools(ctx)
    if not tools:
        raise InsufficientData("No tools to recommend")

    trigger = extract_trigger(ctx.assessment.process_description)
    bottleneck = extract_bottleneck(ctx.assessment)
    costs = ctx.package.costs

    tool_blocks = []
    for match in tools:
        tool = match.tool
        layer = tool.capability_layer.value if tool.capability_layer else "Function Execution"
        does = tool.best_for or tool.description or "processes the request"
        tool_blocks.append(
            f"**{tool.name}** ({layer})\n\n"
            f"When {trigger}, {tool.name} handles it: {does}. This removes the {bottleneck} "
            f"bottleneck while {ctx.stack} stays the system of record.\n\n"
            f"- Investment: {tool.pricing.details or 'Contact for pricing'}\n"
            f"- Implementation: {match.implementation_effort or '2-4 weeks'}\n"
            f"- Why: {match.reason}"
        )

    pattern = ctx.package.patterns[0] if ctx.package.patterns else None
    architecture = (
        f"**{pattern.name}**: {pattern.architecture or pattern.description}\n\n"
        f"- Timeline: {pattern.typical_timeline or '4-6 weeks'}\n"
        f"- Cost range: {pattern.typical_cost_range or costs.custom_build}"
        if pattern
        else f"{ctx.stack} → AI Qualification Engine → Automated Booking → Team Notification"
    )

    body = f"""### Augmentation Tools

{chr(10).join(tool_blocks)}

Typical SaaS spend for this stack: {costs.saas_range or '$200-800/month'}.

### Custom Architecture

{architecture}

- Estimated build: {costs.custom_build or '$15,000-50,000 setup + $500-1500/month'}

### Hybrid Approach

A managed intelligence layer sits between your leads and your team. It reads qualification criteria from {ctx.stack}, runs qualification logic based on {ctx.industry} best practices and writes back through secure APIs, so customer data never leaves your systems.

- Investment: $400-500/month + $12K implementation
- Timeline: 2 weeks to production"""
    return ReportSection(key="solutions", heading="In-Scope Solutions", body=body)


def generate_future_state(ctx: SectionContext) -> ReportSection:
    insights = maturity_insights(ctx.inference.maturity)
    first_system = ctx.assessment.tech_stack[0] if ctx.assessment.tech_stack else "your CRM"
    challenge = ctx.assessment.primary_challenge

    body = f"""### The Transformed Process

- **Minute 3**: A prospect submits a request and receives a personalized response addressing {challenge}
- **Minute 15**: Follow-up questions are answered from your team's own playbook while a demo is booked with the right person
- **Same day**: Your team walks into a demo with a fully qualified prospect

### The 90-Day Transformation

**Days 1-30: Foundation**

- Implement core qualification using your historical deal data
- Connect to {first_system} for seamless data flow
- Process 25% of incoming leads through the new pipeline

**Days 31-60: Optimization**

- Refine qualification accuracy from real results
- Expand to 75% of leads and add automated scheduling

**Days 61-90: Scale**

- Process 100% of leads through the pipeline
- Expand to the next use case based on measured ROI

Recommended approach for your stage: {insights.approach.lower()}."""
    return ReportSection(key="future_state", heading="Future State Vision", body=body)


def generate_roi(ctx: SectionContext) -> ReportSection:
    roi = ctx.metrics.roi
    current = ctx.metrics.current
    implementations = (
        ctx.package.metadata.successful_implementations if ctx.findings else 0
    ) or 12

    body = f"""The calculation is based on your specific situation and {implementations} similar {ctx.industry} implementations.

| Metric | Current State | Future State | Annual Impact |
|--------|---------------|--------------|---------------|
| Lead Conversion | {_pct(roi.current_conversion)} | {_pct(roi.target_conversion)} | +{_money(roi.revenue_gain)} revenue |
| Sales Cycle | {current.cycle_length} months | {current.target_cycle:g} months | Faster cash flow |
| Process Efficiency | {roi.current_efficiency}% | {roi.target_efficiency}% | {_money(roi.cost_savings)} cost reduction |
| Total Investment | - | - | {_money(roi.total_investment)} |
| Payback Period | - | - | {roi.payback_months} months |
| 12-Month ROI | - | - | {roi.annual_roi}% |

Your {_pct(roi.close_rate)} close rate once prospects reach a demo shows the offer is strong. The bottleneck is getting prospects to that demo, which is exactly the mechanical work automation handles well."""
    return ReportSection(key="roi", heading="Return on Investment Analysis", body=body)


def generate_market_context(ctx: SectionContext) -> ReportSection:
    trends = ctx.package.trends
    findings = ctx.findings
    industry = ctx.industry

    trend_lines = []
    if trends.rising:
        trend_lines.append(f"- **Rising**: {', '.join(trends.rising)}")
    if trends.declining:
        trend_lines.append(f"- **Declining**: {', '.join(trends.declining)}")
    if trends.new_entrants:
        trend_lines.append(f"- **New entrants**: {', '.join(trends.new_entrants)}")
    for trend in findings.market_context if findings else []:
        adoption = f" ({trend.adoption})" if trend.adoption else ""
        trend_lines.append(f"- {trend.trend}{adoption}")

    if findings and findings.case_studies:
        studies = [
            f"**{study.company}**: {study.solution or study.challenge}"
            + (f" Result: {study.result}" if study.result else "")
            for study in findings.case_studies
        ]
    else:
        studies = [f"**{label}**: {story}" for label, story in GENERIC_CASE_STUDIES]

    body = f"""### The Industry Transformation Underway

{industry} buyers now complete most of their research before engaging vendors and expect responses in minutes. Early adopters report shorter sales cycles and stronger lead-to-opportunity conversion.

{chr(10).join(trend_lines) or '- AI-native tooling is displacing manual workflows across the segment'}

### Who's Getting This Right

{chr(10).join(f'- {s}' for s in studies)}

### Why Timing Matters

The window for competitive advantage through AI is 12-18 months. After that, it becomes necessary just to compete."""
    return ReportSection(
        key="market_context", heading=f"Market Context: AI Adoption in {industry}", body=body
    )


def generate_next_steps(ctx: SectionContext) -> ReportSection:
    urgent = (
        ctx.inference.maturity == MaturityStage.EARLY
        or ctx.inference.urgency == UrgencyLevel.URGENT_NEED
    )
    first = (
        "**This week** - Book a 60-minute working session to confirm scope"
        if urgent
        else "**Strategy Session** - 90-minute consultation to refine requirements"
    )
    body = f"""1. {first}
2. **Pilot Program** - 30-day proof of concept on {ctx.assessment.primary_challenge}
3. **Phased Rollout** - Systematic implementation across the identified areas
4. **Optimization** - Continuous refinement based on performance data

**Immediate Action:** Schedule your strategy session to discuss your roadmap."""
    return ReportSection(key="next_steps", heading="Next Steps", body=body)


SectionGenerator = Callable[[SectionContext], ReportSection]

SECTION_GENERATORS: list[SectionGenerator] = [
    generate_executive_summary,
    generate_capability_advantage,
    generate_current_state,
    generate_benchmarks,
    generate_solutions,
    generate_future_state,
    generate_roi,
    generate_market_context,
    generate_next_steps,
]


def generate_sections(ctx: SectionContext) -> list[ReportSection]:
    """Run every generator in report order. Any ``InsufficientData`` propagates."""
    return [generator(ctx) for generator in SECTION_GENERATORS]
