"""Assembles the IntelligencePackage for one report run.

Runs retrieval queries, annotates the matches for the assessment, derives
costs, trends and insights, scores quality and tops up with curated data
when quality falls below the threshold.
"""

import re
from datetime import datetime, timezone

from app.core.errors import ConfigurationError
from app.core.logging import get_logger
from app.core.schemas_assessment import AssessmentInput
from app.core.schemas_intelligence import (
    Complexity,
    CostSummary,
    DataSource,
    ImplementationInsights,
    IntelligencePackage,
    Momentum,
    PackageMetadata,
    Pattern,
    Segment,
    ToolMatch,
    TrendSummary,
)
from app.intelligence.fallback import (
    FALLBACK_TRENDS,
    FallbackIntelligenceProvider,
    assess_quality,
)
from app.intelligence.local_store import LocalIntelligenceStore
from app.intelligence.retriever import ToolRetriever

logger = get_logger(__name__)

MIN_SEGMENT_FIT = 0.5
MAX_PACKAGE_TOOLS = 10
FRESHNESS_HORIZON_DAYS = 14
DEFAULT_IMPLEMENTATIONS_PER_PATTERN = 10

# Earlier tiers rank higher when several queries land on different tiers
_SOURCE_RANK = {
    DataSource.VECTOR_SEARCH: 0,
    DataSource.LOCAL_KEYWORD: 1,
    DataSource.FALLBACK: 2,
}

_CUSTOM_BUILD_COSTS = {
    Complexity.SIMPLE: "$5,000-15,000 setup + $200-500/month",
    Complexity.MODERATE: "$15,000-50,000 setup + $500-1500/month",
    Complexity.COMPLEX: "$50,000-150,000 setup + $2000-5000/month",
}

_DEFAULT_EFFORT = {
    Complexity.SIMPLE: "1-2 weeks",
    Complexity.MODERATE: "2-4 weeks",
    Complexity.COMPLEX: "4-8 weeks",
}

_LONG_TERM_STRATEGY = {
    Segment.ITSM: "Build comprehensive service intelligence platform",
    Segment.AGENCY: "Create client-facing AI capabilities with white-label options",
    Segment.SAAS: "Develop product-led growth intelligence with user behavior AI",
}

_DOLLAR_AMOUNT = re.compile(r"\$(\d+)")


# =============================================================================
# Assessment-derived helpers
# =============================================================================


def assess_complexity(assessment: AssessmentInput) -> Complexity:
    """Quick Win or a small stack is simple; Enterprise or a large stack is complex."""
    stack_size = len(assessment.tech_stack)
    investment = assessment.investment_level or "Quick Win"

    if "quick win" in investment.lower() or stack_size <= 2:
        return Complexity.SIMPLE
    if "enterprise" in investment.lower() or stack_size >= 5:
        return Complexity.COMPLEX
    return Complexity.MODERATE


def stack_compatibility(integrations: list[str], stack: list[str]) -> float:
    """Share of the declared stack the tool integrates with, 0.5 when unknown."""
    if not stack or not integrations:
        return 0.5

    stack_lower = [s.lower() for s in stack]
    matches = [
        i
        for i in integrations
        if any(s in i.lower() or i.lower() in s for s in stack_lower)
    ]
    return min(1.0, len(matches) / max(1.0, len(stack) * 0.5))


def recommendation_reason(match: ToolMatch, assessment: AssessmentInput) -> str:
    reasons = []
    segment = assessment.segment

    if match.tool.fit_for(segment) >= 0.8:
        reasons.append(f"Highly rated for {segment.value.upper()} companies")

    stack_text = assessment.stack_text.lower()
    if stack_text and any(i.lower() in stack_text for i in match.tool.integrations):
        reasons.append("Integrates with your existing stack")

    if match.similarity >= 0.8:
        reasons.append("High relevance to your specific challenge")

    return "; ".join(reasons) if reasons else "Good fit for your requirements"


def _first_dollar_amount(text: str) -> int:
    found = _DOLLAR_AMOUNT.search(text or "")
    return int(found.group(1)) if found else 0


def summarize_costs(matches: list[ToolMatch], complexity: Complexity) -> CostSummary:
    """Median and range of the first quoted dollar figure per tool."""
    costs = sorted(
        c for c in (_first_dollar_amount(m.tool.pricing.details) for m in matches) if c > 0
    )

    if costs:
        median = costs[len(costs) // 2]
        median_cost = f"${median}-{round(median * 1.5)}/month"
        saas_range = f"${costs[0]}-{costs[-1]}/month"
    else:
        median_cost = "$300-800/month"
        saas_range = "$200-800/month"

    return CostSummary(
        median_tool_cost=median_cost,
        custom_build=_CUSTOM_BUILD_COSTS[complexity],
        saas_range=saas_range,
    )


def summarize_trends(
    matches: list[ToolMatch], store: LocalIntelligenceStore | None
) -> TrendSummary:
    """Momentum across the matched tools, widened to the catalog when thin."""
    tools = [m.tool for m in matches]
    if store is not None:
        seen = {t.name.lower() for t in tools}
        tools += [t for t in store.tools if t.name.lower() not in seen]

    rising = [t.name for t in tools if t.momentum == Momentum.RISING][:3]
    declining = [t.name for t in tools if t.momentum == Momentum.DECLINING][:2]
    new_entrants = [t.name for t in tools if t.maturity_level == "emerging"][:3]

    if not (rising or declining or new_entrants):
        return TrendSummary(**FALLBACK_TRENDS)
    return TrendSummary(rising=rising, declining=declining, new_entrants=new_entrants)


def build_insights(assessment: AssessmentInput, complexity: Complexity) -> ImplementationInsights:
    challenge = assessment.primary_challenge

    if complexity == Complexity.SIMPLE:
        primary = f"Start with AI-powered {challenge} using proven SaaS tools"
    elif complexity == Complexity.COMPLEX:
        primary = "Build custom revenue intelligence platform with AI orchestration"
    else:
        primary = "Hybrid approach: SaaS tools + custom integration layer"

    risks = ["Change management resistance"]
    if complexity == Complexity.COMPLEX:
        risks.append("Technical implementation complexity")
    if not assessment.tech_stack:
        risks.append("Limited existing technical infrastructure")

    wins = ["Automate lead qualification"]
    challenge_lower = challenge.lower()
    if "proposal" in challenge_lower:
        wins.append("AI-powered proposal generation")
    if "manual" in challenge_lower:
        wins.append("Process automation")

    return ImplementationInsights(
        primary_recommendation=primary,
        risk_factors=risks,
        quick_wins=wins,
        long_term_strategy=_LONG_TERM_STRATEGY.get(
            assessment.segment, "Build scalable AI-first revenue operations"
        ),
    )


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _data_age_days(
    matches: list[ToolMatch], store: LocalIntelligenceStore | None
) -> float | None:
    validated = [_as_utc(m.tool.last_validated) for m in matches if m.tool.last_validated]
    newest = max(validated) if validated else (store.last_updated() if store else None)
    if newest is None:
        return None
    newest = _as_utc(newest)
    age = (datetime.now(timezone.utc) - newest).total_seconds() / 86400
    return max(0.0, age)


def _freshness(age_days: float | None) -> float:
    if age_days is None:
        return 0.0
    return max(0.0, 1.0 - age_days / FRESHNESS_HORIZON_DAYS)


# =============================================================================
# Gatherer
# =============================================================================


class IntelligenceGatherer:
    """Builds one immutable IntelligencePackage per assessment."""

    def __init__(
        self,
        retriever: ToolRetriever,
        store: LocalIntelligenceStore | None,
        fallback: FallbackIntelligenceProvider | None,
    ):
        self.retriever = retriever
        self.store = store
        self.fallback = fallback

    def default_query(self, assessment: AssessmentInput) -> str:
        return f"{assessment.primary_challenge} tools for {assessment.segment.value}"

    async def _retrieve(
        self, assessment: AssessmentInput, queries: list[str]
    ) -> tuple[list[ToolMatch], DataSource]:
        options = self.retriever.options(segment_filter=assessment.segment)
        merged: dict[str, ToolMatch] = {}
        best_source = DataSource.FALLBACK

        for query in queries:
            result = await self.retriever.search(query, options)
            if result.source is not None and _SOURCE_RANK[result.source] < _SOURCE_RANK[best_source]:
                best_source = result.source
            for match in result.matches:
                key = match.name.lower()
                if key not in merged or match.similarity > merged[key].similarity:
                    merged[key] = match

        return list(merged.values()), best_source

    def _annotate(
        self, matches: list[ToolMatch], assessment: AssessmentInput, complexity: Complexity
    ) -> list[ToolMatch]:
        segment = assessment.segment
        annotated = []
        for match in matches:
            if match.tool.fit_for(segment) < MIN_SEGMENT_FIT:
                continue
            annotated.append(
                match.model_copy(
                    update={
                        "reason": recommendation_reason(match, assessment),
                        "stack_compatibility": stack_compatibility(
                            match.tool.integrations, assessment.tech_stack
                        ),
                        "implementation_effort": match.tool.implementation_effort
                        or _DEFAULT_EFFORT[complexity],
                    }
                )
            )
        return annotated[:MAX_PACKAGE_TOOLS]

    def _patterns(self, segment: Segment, complexity: Complexity) -> list[Pattern]:
        if self.store is None:
            return []
        by_complexity = [
            p
            for p in self.store.patterns_by_complexity(complexity)
            if p.segment_fit.get(segment.value, 0.0) >= 0.6
        ]
        return by_complexity or self.store.patterns_by_segment(segment)[:3]

    async def gather(
        self, assessment: AssessmentInput, queries: list[str] | None = None
    ) -> IntelligencePackage:
        """
        Build the package for an assessment.

        Args:
            assessment: Frozen assessment answers
            queries: Retrieval queries; defaults to "<challenge> tools for <segment>"

        Returns:
            IntelligencePackage with quality metadata recomputed from its contents

        Raises:
            ConfigurationError: If retrieval is unconfigured and no curated
                fallback is available
        """
        complexity = assess_complexity(assessment)
        segment = assessment.segment
        queries = queries or [self.default_query(assessment)]

        try:
            raw_matches, source = await self._retrieve(assessment, queries)
        except ConfigurationError:
            if self.fallback is None:
                raise
            logger.warning("Retrieval unconfigured, using curated package")
            return self._finalize(
                self.fallback.fallback_package(assessment.primary_challenge, segment, complexity),
                DataSource.FALLBACK,
                assessment,
                complexity,
            )

        matches = self._annotate(raw_matches, assessment, complexity)
        benchmarks = self.store.benchmarks_for(segment) if self.store else {}

        draft = IntelligencePackage(
            tools=matches,
            patterns=self._patterns(segment, complexity),
            benchmarks={segment.value: benchmarks} if benchmarks else {},
            trends=summarize_trends(matches, self.store),
            costs=summarize_costs(matches, complexity),
            insights=build_insights(assessment, complexity),
        )
        return self._finalize(draft, source, assessment, complexity)

    def _finalize(
        self,
        package: IntelligencePackage,
        source: DataSource,
        assessment: AssessmentInput,
        complexity: Complexity,
    ) -> IntelligencePackage:
        age_days = _data_age_days(package.tools, self.store)
        package = package.model_copy(
            update={
                "metadata": PackageMetadata(
                    source=source,
                    freshness=_freshness(age_days),
                    data_age_days=age_days,
                    using_fallback=source == DataSource.FALLBACK,
                )
            }
        )
        if not package.costs.custom_build:
            package = package.model_copy(update={"costs": summarize_costs(package.tools, complexity)})
        if not package.insights.primary_recommendation:
            package = package.model_copy(update={"insights": build_insights(assessment, complexity)})

        return self.rescore(package, assessment, complexity)

    def rescore(
        self,
        package: IntelligencePackage,
        assessment: AssessmentInput,
        complexity: Complexity | None = None,
    ) -> IntelligencePackage:
        """
        Score a package, top it up with curated data if below threshold and a
        fallback provider is available, and stamp quality and volume metadata.

        Always returns a new package; quality fields reflect its final contents.
        """
        complexity = complexity or assess_complexity(assessment)

        quality = assess_quality(package)
        if quality.use_fallback and self.fallback is not None:
            logger.info(
                f"Intelligence quality {quality.score:.2f} below threshold, enhancing",
                extra={"issues": quality.issues},
            )
            package = self.fallback.enhance_with_fallback(
                package, assessment.primary_challenge, assessment.segment, complexity
            )
            if not package.trends.rising:
                package = package.model_copy(update={"trends": TrendSummary(**FALLBACK_TRENDS)})
            quality = assess_quality(package)

        implementations = len(package.patterns) * DEFAULT_IMPLEMENTATIONS_PER_PATTERN
        metadata = package.metadata.model_copy(
            update={
                "quality_score": quality.score,
                "quality_issues": quality.issues,
                "industry_data_points": len(package.tools) * 100 + len(package.patterns) * 50,
                "successful_implementations": implementations,
            }
        )

        logger.info(
            f"Intelligence package ready: {len(package.tools)} tools, "
            f"{len(package.patterns)} patterns, quality {quality.score:.2f}",
            extra={
                "source": metadata.source.value,
                "using_fallback": metadata.using_fallback,
            },
        )
        return package.model_copy(update={"metadata": metadata})
