"""Research planning: query templates, assessment parsing and gap detection."""

import re

from app.core.schemas_assessment import AssessmentInput
from app.core.schemas_intelligence import IntelligencePackage
from app.core.schemas_research import ResearchPlan, ResearchTargets
from app.intelligence.fallback import map_challenge_to_use_case

MIN_DRAFT_TOOLS = 3
MIN_BENCHMARK_KEYS = 2
MAX_PAIN_POINTS = 5
MAX_TEAM_MEMBERS = 10

_PAIN_INDICATORS = [
    re.compile(r"takes? (\d+) (months?|weeks?)", re.IGNORECASE),
    re.compile(r"(\d+) people? involved", re.IGNORECASE),
    re.compile(r"manual\w*", re.IGNORECASE),
    re.compile(r"slow\w*", re.IGNORECASE),
    re.compile(r"complex\w*", re.IGNORECASE),
    re.compile(r"bottleneck\w*", re.IGNORECASE),
    re.compile(r"tedious", re.IGNORECASE),
    re.compile(r"repetitive", re.IGNORECASE),
    re.compile(r"inefficient", re.IGNORECASE),
]

_CAPITALIZED_NAME = re.compile(r"\b[A-Z][a-z]{2,}\b(?:\s+[A-Z]\.?)?")
_TITLED_NAME = re.compile(r"(?:CEO|VP|Manager|Director|Coordinator)\s+([A-Z][a-z]+)")
_TITLE_PREFIX = re.compile(r"\b(CEO|VP|Manager|Director|Coordinator)\s+", re.IGNORECASE)
_LOCATION = re.compile(r"\b([A-Z][a-z]+,\s*[A-Z]{2})\b")

_BUDGET_EXPECTATIONS = [
    ("transform", "significant investment"),
    ("quick", "minimal investment"),
    ("enterprise", "enterprise budget"),
    ("moderate", "moderate investment"),
]


# =============================================================================
# Assessment parsing
# =============================================================================


def extract_pain_points(process: str, context: str) -> list[str]:
    """Distinct pain phrases from the process and context answers."""
    combined = f"{process} {context}".lower()
    pains: list[str] = []
    for pattern in _PAIN_INDICATORS:
        for match in pattern.finditer(combined):
            phrase = match.group(0)
            if phrase not in pains:
                pains.append(phrase)
    return pains[:MAX_PAIN_POINTS] or ["inefficient process"]


def extract_key_bottleneck(process: str) -> str:
    if not process:
        return "manual processes"

    for pattern in (r"but .+", r"takes? .+ (long|time|months?|weeks?)", r"manual\w* .+"):
        found = re.search(pattern, process, re.IGNORECASE)
        if found:
            return found.group(0)
    return process[:100]


def extract_team_members(team_text: str) -> list[str]:
    """Names or roles mentioned in the team answer; ``["team"]`` when blank."""
    if not team_text:
        return ["team"]

    names: list[str] = []
    candidates = [m.group(0) for m in _CAPITALIZED_NAME.finditer(team_text)]
    candidates += [m.group(1) for m in _TITLED_NAME.finditer(team_text)]
    for candidate in candidates:
        cleaned = _TITLE_PREFIX.sub("", candidate).strip()
        if 2 < len(cleaned) < 15 and cleaned not in names:
            names.append(cleaned)
    return names[:MAX_TEAM_MEMBERS] or ["team"]


def extract_location(assessment: AssessmentInput) -> str:
    """A "City, ST" mention in the additional context, else empty."""
    found = _LOCATION.search(assessment.additional_context or "")
    return found.group(1) if found else ""


def parse_budget_expectation(investment_level: str) -> str:
    """Categorize investment intent without assuming dollar amounts."""
    lower = (investment_level or "").lower()
    for keyword, expectation in _BUDGET_EXPECTATIONS:
        if keyword in lower:
            return expectation
    return "flexible budget"


def split_stack(assessment: AssessmentInput) -> list[str]:
    parts = []
    for item in assessment.tech_stack:
        parts.extend(p.strip() for p in re.split(r"[,;]", item) if p.strip())
    return parts


# =============================================================================
# Plan
# =============================================================================


def build_targets(assessment: AssessmentInput) -> ResearchTargets:
    industry = assessment.industry
    challenge = assessment.primary_challenge
    stack = assessment.stack_text or "existing systems"
    process = assessment.process_description or "current process"

    return ResearchTargets(
        company_profile=" ".join(
            p
            for p in (
                assessment.company_name,
                assessment.email_domain,
                "company size team specializations",
                industry,
            )
            if p
        ),
        industry_benchmarks=(
            f"{industry} {assessment.opportunity_focus} {assessment.revenue_model} "
            "industry benchmarks metrics KPIs best practices"
        ),
        process_analysis=(
            f'{challenge} challenges when "{process}" bottlenecks solutions {industry} companies'
        ),
        solution_requirements=(
            f"AI automation tools for {industry} {challenge} that integrate with {stack}"
        ),
        financial_context=(
            f"{assessment.investment_level or 'moderate investment'} budget ROI for "
            f"{assessment.revenue_model} {industry} automation pricing models"
        ),
    )


def build_plan(assessment: AssessmentInput) -> ResearchPlan:
    """
    Derive every research query from the assessment answers.

    Company queries target the named business, primary queries the general
    problem space, RAG queries the local retrieval layer and external
    searches the search-augmented provider.

    Args:
        assessment: Frozen assessment answers

    Returns:
        ResearchPlan
    """
    company = assessment.company or "the company"
    industry = assessment.industry
    challenge = assessment.primary_challenge
    focus = assessment.opportunity_focus or challenge
    domain = assessment.email_domain
    location = extract_location(assessment)
    stack = split_stack(assessment)
    first_stack = stack[0] if stack else "CRM"
    pains = extract_pain_points(assessment.process_description, assessment.additional_context)
    team = extract_team_members(assessment.team_description)

    site = f" site:{domain}" if domain else ""
    where = f" {location}" if location else ""

    company_queries = [
        f'"{company}" company profile{site} about team',
        f'"{company}" {industry} services clients case studies testimonials',
        f'"{company}" team size employees LinkedIn{where}',
        f'"{company}" vs competitors{where} {industry} market position',
        f'"{company}" website pricing process {challenge} how they work',
    ]

    primary_queries = [
        f"How are {industry} companies like {company} solving {challenge} with AI",
        f"What specific tools integrate {' AND '.join(stack) or 'existing systems'} for {focus}",
        f"Real implementations of {challenge} automation with measurable ROI",
        f"Why {' and '.join(pains)} happen in {industry} companies and proven solutions",
    ]

    # Retrieval-layer queries, deduplicated case-insensitively
    rag_queries: list[str] = []
    for query in (map_challenge_to_use_case(challenge), challenge, focus):
        if query and query.lower() not in {q.lower() for q in rag_queries}:
            rag_queries.append(query)

    external_searches = [
        f'"{company}" company profile team size revenue',
        f"{industry} industry AI adoption statistics{where}",
        f"GitHub repositories {challenge} {industry} automation",
        f"{first_stack} API AI integration examples",
        f"Cost of {challenge} inefficiency {industry} {len(team)} person teams",
    ]

    return ResearchPlan(
        company_queries=company_queries,
        primary_queries=primary_queries,
        rag_queries=rag_queries,
        external_searches=external_searches,
        targets=build_targets(assessment),
    )


# =============================================================================
# Gaps
# =============================================================================


def _has_integration_overlap(package: IntelligencePackage, stack: list[str]) -> bool:
    stack_lower = [s.lower() for s in stack]
    for match in package.tools:
        for integration in match.tool.integrations:
            lower = integration.lower()
            if any(s in lower or lower in s for s in stack_lower):
                return True
    return False


def identify_gaps(package: IntelligencePackage, assessment: AssessmentInput) -> list[str]:
    """
    Fixed checklist of what the draft package cannot answer.

    Company-specific research is always listed since the catalog never
    holds it. The integration check only runs when a stack was declared.

    Args:
        package: Draft package from the retrieval layer
        assessment: Frozen assessment answers

    Returns:
        Human-readable gap strings in checklist order
    """
    industry = assessment.industry
    gaps = []

    if len(package.tools) < MIN_DRAFT_TOOLS:
        gaps.append(
            f"fewer than 3 tools specific to {assessment.primary_challenge} in {industry}"
        )

    stack = split_stack(assessment)
    if stack and not _has_integration_overlap(package, stack):
        gaps.append(f"no integration details for the {', '.join(stack)} ecosystem")

    if not package.case_studies:
        gaps.append(f"no case studies of similar {industry} companies")

    if package.benchmark_key_count() < MIN_BENCHMARK_KEYS:
        gaps.append(f"insufficient benchmarks for {industry}")

    gaps.append(f"company-specific research for {assessment.company_name}")
    return gaps
