"""Curated fallback intelligence.

Hand-authored tools, patterns and benchmarks used whenever live retrieval is
unavailable or scores below the quality threshold. Every lookup returns a
non-empty default, so this tier never fails.
"""

from app.core.logging import get_logger
from app.core.schemas_intelligence import (
    Complexity,
    IntelligencePackage,
    Pattern,
    Pricing,
    QualityAssessment,
    Segment,
    Tool,
    ToolMatch,
)

logger = get_logger(__name__)

# Quality credits, summed into a 0-1 score
TOOLS_CREDIT = 0.3
TOOL_COVERAGE_BONUS = 0.1
TOOL_COVERAGE_MIN = 5
PATTERNS_CREDIT = 0.2
FRESH_CREDIT = 0.2
FRESH_MAX_DAYS = 7
AGING_CREDIT = 0.1
AGING_MAX_DAYS = 14
BENCHMARKS_CREDIT = 0.15
PRICING_CREDIT = 0.15
FALLBACK_THRESHOLD = 0.5

DEFAULT_USE_CASE = "workflow-automation"
DEFAULT_SEGMENT = Segment.AGENCY
DEFAULT_COMPLEXITY = Complexity.MODERATE
MIN_FALLBACK_FIT = 0.6


def _uniform_fit(score: float) -> dict[str, float]:
    return {segment.value: score for segment in Segment}


# =============================================================================
# Curated tables
# =============================================================================

STABLE_TOOLS: dict[str, list[Tool]] = {
    "lead-qualification": [
        Tool(
            name="OpenAI GPT-4o-mini",
            category="ai-model",
            description="Cost-effective language model for high-volume lead qualification",
            pricing=Pricing(
                model="usage",
                details="$0.15 per million input tokens, $0.60 per million output tokens",
                min_monthly=5,
                max_monthly=200,
            ),
            integrations=["REST API", "Python SDK", "Node.js SDK", "Any platform via API"],
            use_cases=["lead-qualification"],
            best_for="Automated lead scoring and qualification at scale",
            pros=[
                "40x cheaper than GPT-4o for simple tasks",
                "Fast response times (< 1 second)",
                "Excellent for structured data extraction",
                "High rate limits",
            ],
            cons=[
                "Less capable than GPT-4o for complex reasoning",
                "May need more specific prompts",
                "Limited context window vs larger models",
            ],
            implementation_effort="1-2 weeks",
            segment_fit=_uniform_fit(0.9),
            health_score=1.0,
        ),
        Tool(
            name="Anthropic Claude-3-haiku",
            category="ai-model",
            description="Balanced model for lead qualification with better reasoning",
            pricing=Pricing(
                model="usage",
                details="$0.25 per million input tokens, $1.25 per million output tokens",
                min_monthly=10,
                max_monthly=300,
            ),
            integrations=["REST API", "Anthropic SDK", "Custom integrations"],
            use_cases=["lead-qualification"],
            best_for="Complex lead qualification requiring nuanced understanding",
            pros=[
                "Better reasoning than GPT-4o-mini",
                "Strong safety and reliability",
                "Good for complex qualification criteria",
                "Consistent performance",
            ],
            cons=[
                "More expensive than GPT-4o-mini",
                "Newer ecosystem than OpenAI",
                "Requires separate API integration",
            ],
            implementation_effort="1-2 weeks",
            segment_fit=_uniform_fit(0.8),
            health_score=0.95,
        ),
    ],
    "proposal-generation": [
        Tool(
            name="OpenAI GPT-4o",
            category="ai-model",
            description="Premium model for high-quality proposal and content generation",
            pricing=Pricing(
                model="usage",
                details="$5 per million input tokens, $15 per million output tokens",
                min_monthly=50,
                max_monthly=800,
            ),
            integrations=["REST API", "Python SDK", "Node.js SDK", "LangChain"],
            use_cases=["proposal-generation", "content-creation"],
            best_for="Professional proposals requiring creativity and detail",
            pros=[
                "Highest quality content generation",
                "Excellent at long-form writing",
                "Strong understanding of business context",
                "Mature ecosystem and tooling",
            ],
            cons=[
                "Most expensive option",
                "Slower than smaller models",
                "May be overkill for simple proposals",
            ],
            implementation_effort="1-3 weeks",
            segment_fit=_uniform_fit(0.9),
            health_score=1.0,
        ),
    ],
    "workflow-automation": [
        Tool(
            name="n8n",
            category="automation",
            description="Open-source workflow automation with AI node support",
            pricing=Pricing(
                model="freemium",
                details="Free self-hosted, $20/month cloud starter, $50/month pro",
                min_monthly=0,
                max_monthly=50,
            ),
            integrations=["400+ pre-built nodes", "Custom API endpoints", "AI models", "Databases"],
            use_cases=["workflow-automation"],
            best_for="Custom automation workflows without vendor lock-in",
            pros=[
                "Complete control over workflows",
                "No vendor lock-in",
                "Strong AI integration support",
                "Visual workflow builder",
                "Active open-source community",
            ],
            cons=[
                "Requires technical setup and maintenance",
                "Self-hosting complexity",
                "Smaller ecosystem than Zapier",
            ],
            implementation_effort="2-4 weeks",
            segment_fit=_uniform_fit(0.8),
            health_score=0.95,
        ),
        Tool(
            name="Zapier",
            category="automation",
            description="Popular no-code automation platform with extensive integrations",
            pricing=Pricing(
                model="tiered",
                details="Free (100 tasks), $19.99/month starter, $49/month professional",
                min_monthly=0,
                max_monthly=49,
            ),
            integrations=["5000+ app integrations", "AI models", "Custom webhooks"],
            use_cases=["workflow-automation"],
            best_for="Quick integrations between popular business tools",
            pros=[
                "Massive integration library",
                "No technical setup required",
                "Reliable and stable",
                "Great for non-technical users",
            ],
            cons=[
                "Can get expensive at scale",
                "Limited customization options",
                "Vendor lock-in concerns",
                "Task limits on lower tiers",
            ],
            implementation_effort="1-2 weeks",
            segment_fit=_uniform_fit(0.7),
            health_score=0.85,
        ),
        Tool(
            name="Pipedream",
            category="automation",
            description="Developer-friendly automation platform with code steps",
            pricing=Pricing(
                model="tiered",
                details="Free (3000 invocations), $19/month basic, $49/month advanced",
                min_monthly=0,
                max_monthly=49,
            ),
            integrations=["1000+ pre-built actions", "Custom code steps", "AI APIs"],
            use_cases=["workflow-automation"],
            best_for="Automation workflows requiring custom logic and code",
            pros=[
                "Code and no-code hybrid approach",
                "Developer-friendly interface",
                "Custom JavaScript/Python steps",
                "Good free tier",
            ],
            cons=[
                "Requires some technical knowledge",
                "Smaller community than Zapier",
                "Less enterprise features",
            ],
            implementation_effort="1-3 weeks",
            segment_fit=_uniform_fit(0.8),
            health_score=0.85,
        ),
    ],
    "data-processing": [
        Tool(
            name="Supabase",
            category="infrastructure",
            description="Open-source backend with PostgreSQL and real-time features",
            pricing=Pricing(
                model="tiered",
                details="Free (up to 500MB), $25/month Pro, $599/month Team",
                min_monthly=0,
                max_monthly=599,
            ),
            integrations=["PostgreSQL", "REST API", "GraphQL", "Real-time subscriptions"],
            use_cases=["data-processing"],
            best_for="Rapid backend development with SQL database",
            pros=[
                "Full PostgreSQL database",
                "Built-in authentication",
                "Real-time subscriptions",
                "Excellent developer experience",
            ],
            cons=[
                "PostgreSQL learning curve",
                "Less mature than Firebase",
                "Fewer third-party integrations",
            ],
            implementation_effort="1-2 weeks",
            segment_fit=_uniform_fit(0.8),
            health_score=0.9,
        ),
    ],
}

STABLE_PATTERNS: dict[Complexity, Pattern] = {
    Complexity.SIMPLE: Pattern(
        name="Webhook → AI → Database",
        description="Direct webhook processing with AI analysis and result storage",
        architecture="Vercel Edge Function → OpenAI API → Supabase",
        complexity=Complexity.SIMPLE,
        typical_timeline="1 week",
        typical_cost_range="$50-200/month",
        typical_stack=["Vercel", "OpenAI API", "Supabase"],
        success_indicators=["Sub-second response times", "99.9% uptime", "Linear cost scaling"],
        common_pitfalls=[
            "Not handling API failures gracefully",
            "Insufficient input validation",
            "Missing error logging",
        ],
        segment_fit=_uniform_fit(0.8),
    ),
    Complexity.MODERATE: Pattern(
        name="Queue → AI Router → Multi-Model",
        description="Queued processing with intelligent model routing and result storage",
        architecture="Node.js + BullMQ → LiteLLM Router → PostgreSQL",
        complexity=Complexity.MODERATE,
        typical_timeline="2-4 weeks",
        typical_cost_range="$200-1000/month",
        typical_stack=["Node.js", "BullMQ", "Redis", "LiteLLM", "PostgreSQL"],
        success_indicators=[
            "1000+ jobs/hour processing",
            "30-50% cost savings vs single model",
            "99.5% job completion rate",
        ],
        common_pitfalls=[
            "Queue backlog management",
            "Model routing logic complexity",
            "Monitoring blind spots",
        ],
        segment_fit=_uniform_fit(0.8),
    ),
    Complexity.COMPLEX: Pattern(
        name="Event Streaming → ML Pipeline",
        description="Real-time event processing with ML pipeline and AI orchestration",
        architecture="Kafka → Databricks → Multiple AI APIs → Data Warehouse",
        complexity=Complexity.COMPLEX,
        typical_timeline="2-3 months",
        typical_cost_range="$2000+/month",
        typical_stack=["Apache Kafka", "Databricks", "Multiple AI APIs", "Snowflake/BigQuery"],
        success_indicators=[
            "10,000+ events/second processing",
            "Real-time (<100ms) insights",
            "Multi-model ensemble accuracy",
        ],
        common_pitfalls=[
            "Over-engineering for actual needs",
            "Data pipeline complexity",
            "Model drift and monitoring",
        ],
        segment_fit=_uniform_fit(0.8),
    ),
}

# Conservative, defensible benchmarks per segment
STABLE_BENCHMARKS: dict[Segment, dict[str, str]] = {
    Segment.ITSM: {
        "lead_conversion": "3-7%",
        "sales_cycle": "6-9 months",
        "ai_adoption": "15-25%",
        "automation_level": "20-40%",
        "average_ticket_count": "500-2000/month",
        "customer_satisfaction": "75-85%",
    },
    Segment.AGENCY: {
        "lead_conversion": "5-12%",
        "sales_cycle": "3-6 months",
        "ai_adoption": "25-40%",
        "automation_level": "30-60%",
        "average_project_value": "$5,000-50,000",
        "client_retention": "60-80%",
    },
    Segment.SAAS: {
        "lead_conversion": "10-20%",
        "sales_cycle": "2-4 months",
        "ai_adoption": "40-60%",
        "automation_level": "50-80%",
        "average_deal_size": "$1,000-10,000",
        "churn_rate": "5-15%",
    },
}

SEGMENT_RECOMMENDATIONS: dict[Segment, list[str]] = {
    Segment.ITSM: [
        "Focus on ticket automation and service desk integration",
        "Prioritize reliability over cutting-edge features",
    ],
    Segment.AGENCY: [
        "Emphasize proposal quality and client presentation",
        "Consider white-label solutions for client delivery",
    ],
    Segment.SAAS: [
        "Build for scale and integration from day one",
        "Invest in analytics and user behavior tracking",
    ],
}

COMPLEXITY_RECOMMENDATIONS: dict[Complexity, list[str]] = {
    Complexity.SIMPLE: [
        "Start with proven, simple solutions",
        "Focus on quick wins and immediate ROI",
    ],
    Complexity.MODERATE: [
        "Plan for growth but avoid over-engineering",
        "Implement monitoring and error handling early",
    ],
    Complexity.COMPLEX: [
        "Ensure you have the technical expertise in-house",
        "Plan for 2-3x longer implementation than estimated",
    ],
}

FALLBACK_TRENDS = {
    "rising": ["AI automation", "No-code tools", "API-first solutions"],
    "declining": ["Manual processes", "Legacy systems"],
    "new_entrants": ["Hybrid AI architectures", "Context intelligence"],
}


def map_challenge_to_use_case(challenge: str) -> str:
    """Map a declared challenge onto a curated use-case category."""
    text = (challenge or "").lower()
    if "qualification" in text or "lead" in text:
        return "lead-qualification"
    if "proposal" in text or "content" in text:
        return "proposal-generation"
    if "data" in text or "processing" in text:
        return "data-processing"
    return DEFAULT_USE_CASE


def _as_segment(segment: Segment | str | None) -> Segment | None:
    if segment is None or isinstance(segment, Segment):
        return segment
    try:
        return Segment(str(segment).lower())
    except ValueError:
        return None


def _as_complexity(complexity: Complexity | str | None) -> Complexity:
    if isinstance(complexity, Complexity):
        return complexity
    try:
        return Complexity(str(complexity).lower())
    except ValueError:
        return DEFAULT_COMPLEXITY


def assess_quality(
    package: IntelligencePackage | None, has_cost_summary: bool | None = None
) -> QualityAssessment:
    """
    Score how well a package's fields are populated.

    The only place the "is live data good enough" threshold is applied.
    Credits are additive, so adding data never lowers the score.

    Args:
        package: Package to score (``None`` scores as empty)
        has_cost_summary: Override for the cost-summary check; defaults
            to the package's own ``costs.median_tool_cost``

    Returns:
        QualityAssessment with the score, issue list and fallback flag
    """
    package = package or IntelligencePackage()
    score = 0.0
    issues: list[str] = []

    if package.tools:
        score += TOOLS_CREDIT
        if len(package.tools) >= TOOL_COVERAGE_MIN:
            score += TOOL_COVERAGE_BONUS
    else:
        issues.append("No relevant tools found")

    if package.patterns:
        score += PATTERNS_CREDIT
    else:
        issues.append("No implementation patterns found")

    age = package.metadata.data_age_days
    if age is None:
        issues.append("No metadata about data freshness")
    elif age < FRESH_MAX_DAYS:
        score += FRESH_CREDIT
    elif age < AGING_MAX_DAYS:
        score += AGING_CREDIT
    else:
        issues.append("Intelligence data is stale")

    if package.benchmark_key_count() > 0:
        score += BENCHMARKS_CREDIT
    else:
        issues.append("No industry benchmarks available")

    if has_cost_summary is None:
        has_cost_summary = bool(package.costs.median_tool_cost)
    if has_cost_summary or any(m.tool.pricing.has_data() for m in package.tools):
        score += PRICING_CREDIT
    else:
        issues.append("No pricing/cost data available")

    score = round(min(score, 1.0), 4)
    return QualityAssessment(score=score, issues=issues, use_fallback=score < FALLBACK_THRESHOLD)


# =============================================================================
# Provider
# =============================================================================


class FallbackIntelligenceProvider:
    """Lookups over the curated tables. Never raises for unknown keys."""

    def tools_for(self, use_case: str, segment: Segment | str | None = None) -> list[Tool]:
        """
        Curated tools for a use-case category.

        Args:
            use_case: Category such as "lead-qualification"; unknown keys
                fall back to workflow automation
            segment: When given, drop tools fitting below 0.6 and sort by fit

        Returns:
            Non-empty list of tools
        """
        tools = STABLE_TOOLS.get(use_case) or STABLE_TOOLS[DEFAULT_USE_CASE]

        resolved = _as_segment(segment)
        if segment is not None:
            key = (resolved or DEFAULT_SEGMENT).value
            filtered = [t for t in tools if t.fit_for(key) >= MIN_FALLBACK_FIT]
            filtered.sort(key=lambda t: t.fit_for(key), reverse=True)
            if filtered:
                return filtered
        return list(tools)

    def pattern_for(self, complexity: Complexity | str | None) -> Pattern:
        return STABLE_PATTERNS[_as_complexity(complexity)]

    def benchmarks_for(self, segment: Segment | str | None) -> dict[str, str]:
        resolved = _as_segment(segment) or DEFAULT_SEGMENT
        return dict(STABLE_BENCHMARKS[resolved])

    def recommendations(
        self, segment: Segment | str | None, complexity: Complexity | str | None
    ) -> list[str]:
        resolved = _as_segment(segment) or DEFAULT_SEGMENT
        return SEGMENT_RECOMMENDATIONS[resolved] + COMPLEXITY_RECOMMENDATIONS[
            _as_complexity(complexity)
        ]

    def assess_quality(
        self, package: IntelligencePackage | None, has_cost_summary: bool | None = None
    ) -> QualityAssessment:
        return assess_quality(package, has_cost_summary)

    def fallback_package(
        self,
        challenge: str,
        segment: Segment | str | None,
        complexity: Complexity | str | None,
    ) -> IntelligencePackage:
        """Complete package built from curated tables alone."""
        resolved = _as_segment(segment) or DEFAULT_SEGMENT
        use_case = map_challenge_to_use_case(challenge)
        tools = self.tools_for(use_case, resolved)

        return IntelligencePackage(
            tools=[_curated_match(t, resolved) for t in tools],
            patterns=[self.pattern_for(complexity)],
            benchmarks={resolved.value: self.benchmarks_for(resolved)},
            recommendations=self.recommendations(resolved, complexity),
        )

    def enhance_with_fallback(
        self,
        package: IntelligencePackage,
        challenge: str,
        segment: Segment | str | None,
        complexity: Complexity | str | None,
    ) -> IntelligencePackage:
        """
        Top up a thin package with curated data.

        Live tools keep their position; curated tools fill up to three, and
        the result is capped at five. Patterns and benchmarks are only filled
        when missing. Returns a new package.
        """
        resolved = _as_segment(segment) or DEFAULT_SEGMENT
        curated = self.fallback_package(challenge, resolved, complexity)

        live_names = {m.name.lower() for m in package.tools}
        fill = max(0, 3 - len(package.tools))
        extra = [m for m in curated.tools if m.name.lower() not in live_names][:fill]
        tools = (list(package.tools) + extra)[:5]

        patterns = list(package.patterns) or list(curated.patterns)
        benchmarks = dict(package.benchmarks) if package.benchmark_key_count() else curated.benchmarks

        logger.info(
            f"Enhanced package with fallback: +{len(extra)} tools",
            extra={
                "fallback_tools": len(extra),
                "fallback_patterns": 0 if package.patterns else 1,
                "fallback_benchmarks": not package.benchmark_key_count(),
            },
        )

        return package.model_copy(
            update={
                "tools": tools,
                "patterns": patterns,
                "benchmarks": benchmarks,
                "recommendations": list(package.recommendations) + curated.recommendations,
                "metadata": package.metadata.model_copy(update={"using_fallback": True}),
            }
        )


def _curated_match(tool: Tool, segment: Segment) -> ToolMatch:
    return ToolMatch(
        tool=tool,
        similarity=tool.fit_for(segment),
        reason=tool.best_for or "Good fit for your requirements",
    )
