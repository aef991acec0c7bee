"""Rule-based context inference over assessment answers.

Maps free-text answers to a maturity stage, up to four hidden-cost
multipliers, a competitive-pressure level and a buying-urgency level.
Deterministic: identical input text always yields identical output. An
LLM-backed variant is available and falls back to the rules on any error.
"""

import json
import re

from openai import OpenAI
from pydantic import ValidationError

from app.core.errors import ProviderCallFailed
from app.core.llm import complete_chat, parse_llm_json_dict
from app.core.logging import get_logger
from app.core.rate_limiter import RateLimiter
from app.core.schemas_assessment import (
    AssessmentInput,
    ContextInference,
    MaturityInsights,
    MaturityStage,
    PressureLevel,
    UrgencyLevel,
)

logger = get_logger(__name__)

MAX_MULTIPLIERS = 4
DEFAULT_TEAM_SIZE = 5

CHAOS_KEYWORDS = ["manual", "spreadsheet", "email", "ad-hoc", "no process", "chaos"]
SCALING_KEYWORDS = ["inconsistent", "different teams", "multiple tools", "growing pains", "scaling"]
ENTERPRISE_KEYWORDS = [
    "legacy system",
    "bureaucracy",
    "complex approval",
    "compliance",
    "enterprise",
]

# Monthly budget implied by each investment tier
_INVESTMENT_BUDGETS = [
    ("quick win", 3500),
    ("enterprise", 20000),
    ("transformation", 10000),
]
_DEFAULT_BUDGET = 5000

MULTIPLIER_PATTERNS: dict[str, list[str]] = {
    "Manual data entry and processing": [
        "Data quality issues cascading to reporting",
        "High error rates affecting customer trust",
        "Employee burnout from repetitive tasks",
        "Inability to scale without proportional headcount increase",
    ],
    "Inefficient communication and collaboration": [
        "Duplicate work across teams",
        "Delayed decision making impacting competitiveness",
        "Knowledge silos creating single points of failure",
        "Client delivery delays due to internal friction",
    ],
    "Time-consuming reporting and analysis": [
        "Delayed strategic decision making",
        "Missed market opportunities due to slow insights",
        "Management overhead consuming productive time",
        "Difficulty tracking ROI and performance metrics",
    ],
    "Customer service response times": [
        "Customer churn increasing acquisition costs",
        "Negative brand reputation in market",
        "Staff stress and turnover in support teams",
        "Lost revenue from dissatisfied customers",
    ],
    "Quality control and consistency issues": [
        "Rework costs consuming profit margins",
        "Customer complaints damaging relationships",
        "Regulatory compliance risks",
        "Competitive disadvantage from unreliable delivery",
    ],
    "Scaling operations and processes": [
        "Operational costs growing faster than revenue",
        "Team burnout from unsustainable growth",
        "Quality degradation under increased volume",
        "Infrastructure limitations creating bottlenecks",
    ],
}

# Keyword multipliers for challenges outside the canned table
_KEYWORD_MULTIPLIERS: list[tuple[tuple[str, ...], list[str]]] = [
    (("lead", "generation"), ["Weak brand positioning", "Inefficient sales handoffs"]),
    (("retention", "customer"), ["Poor onboarding", "Product-market fit issues"]),
    (("sales", "conversion"), ["Pricing model confusion", "Weak value proposition"]),
    (("manual", "process"), ["Operational bottlenecks", "Resource allocation inefficiencies"]),
    (("reporting", "data"), ["Poor data visibility", "Decision-making delays"]),
]

HIGH_PRESSURE_TYPES = ["SaaS Platform", "E-commerce", "FinTech", "Digital Marketing"]
MEDIUM_PRESSURE_TYPES = [
    "Professional Services",
    "Custom Development",
    "Healthcare",
    "Education",
]

MATURITY_INSIGHTS: dict[MaturityStage, MaturityInsights] = {
    MaturityStage.EARLY: MaturityInsights(
        focus="Establish foundational processes",
        timeframe="1-3 months",
        approach="Quick wins and process standardization",
        risks=["Over-engineering solutions", "Premature optimization"],
        opportunities=["High impact from basic automation", "Flexible implementation"],
    ),
    MaturityStage.SCALING: MaturityInsights(
        focus="Optimize and systematize existing processes",
        timeframe="3-6 months",
        approach="Balanced automation with change management",
        risks=["Resistance to change", "Integration complexity"],
        opportunities=["Leverage existing investments", "Clear ROI measurement"],
    ),
    MaturityStage.ESTABLISHED: MaturityInsights(
        focus="Legacy modernization and compliance-aware automation",
        timeframe="6-12 months",
        approach="Phased transformation with governance",
        risks=["Regulatory compliance", "Change management scale"],
        opportunities=["Massive scale benefits", "Strategic competitive advantage"],
    ),
}

_TEAM_SIZE = re.compile(r"(\d+)\s*(?:people|person|team|member|employee)", re.IGNORECASE)


# =============================================================================
# Helpers
# =============================================================================


def _bracket(value: float, low: float, mid: float) -> int:
    """1 if value <= low, 2 if value <= mid, else 3."""
    if value <= low:
        return 1
    if value <= mid:
        return 2
    return 3


def _level(average: float) -> int:
    if average <= 1.5:
        return 1
    if average <= 2.5:
        return 2
    return 3


def extract_team_size(team_description: str) -> int:
    found = _TEAM_SIZE.search(team_description or "")
    return int(found.group(1)) if found else DEFAULT_TEAM_SIZE


def implied_monthly_budget(investment_level: str) -> int:
    text = (investment_level or "").lower()
    for keyword, budget in _INVESTMENT_BUDGETS:
        if keyword in text:
            return budget
    return _DEFAULT_BUDGET


def process_score(process_text: str) -> int:
    text = (process_text or "").lower()
    if any(k in text for k in CHAOS_KEYWORDS):
        return 1
    if any(k in text for k in ENTERPRISE_KEYWORDS):
        return 3
    if any(k in text for k in SCALING_KEYWORDS):
        return 2
    return 2


# =============================================================================
# Rule-based inference
# =============================================================================


def determine_maturity(assessment: AssessmentInput) -> MaturityStage:
    """Average four bracketed sub-scores: team, budget, process text, stack size."""
    scores = [
        _bracket(extract_team_size(assessment.team_description), 10, 50),
        _bracket(implied_monthly_budget(assessment.investment_level), 5000, 25000),
        process_score(assessment.process_description),
        _bracket(len(assessment.tech_stack), 2, 5),
    ]
    level = _level(sum(scores) / len(scores))
    return [MaturityStage.EARLY, MaturityStage.SCALING, MaturityStage.ESTABLISHED][level - 1]


def _canned_multipliers(challenge: str) -> list[str]:
    if challenge in MULTIPLIER_PATTERNS:
        return list(MULTIPLIER_PATTERNS[challenge])

    lowered = challenge.lower()
    for key, values in MULTIPLIER_PATTERNS.items():
        if key.lower() == lowered:
            return list(values)

    found: list[str] = []
    for keywords, values in _KEYWORD_MULTIPLIERS:
        if any(k in lowered for k in keywords):
            found.extend(values)
    return found


def identify_hidden_multipliers(assessment: AssessmentInput) -> list[str]:
    """Canned multipliers for the primary challenge plus context-triggered extras."""
    multipliers = _canned_multipliers(assessment.primary_challenge)

    all_text = assessment.free_text().lower()
    if "critical" in all_text or "urgent" in all_text:
        multipliers.append("Crisis mode operations draining leadership focus")
        multipliers.append("Staff morale issues affecting overall productivity")

    if "quick win" in assessment.investment_level.lower():
        multipliers.append("Limited budget constraining solution options")

    challenge_count = len(assessment.challenges) or 1
    if challenge_count > 2 and extract_team_size(assessment.team_description) < 10:
        multipliers.append("Small team handling multiple complex challenges")

    if len(assessment.process_description) > 200:
        multipliers.append("Complex manual processes creating bottlenecks across operations")

    # dict preserves first-seen order
    return list(dict.fromkeys(multipliers))[:MAX_MULTIPLIERS]


def assess_competitive_pressure(assessment: AssessmentInput) -> PressureLevel:
    """Average urgency, pain and business-type signals (plus process length)."""
    context_text = " ".join(
        p for p in [assessment.additional_context, assessment.process_description] if p
    ).lower()

    if any(k in context_text for k in ("urgent", "asap", "critical")):
        urgency = 3
    elif any(k in context_text for k in ("soon", "planning")):
        urgency = 2
    else:
        urgency = 1

    if any(k in context_text for k in ("critical", "failing", "crisis")):
        pain = 3
    elif any(k in context_text for k in ("significant", "struggling", "difficult")):
        pain = 2
    else:
        pain = 1

    business_type = assessment.business_type.lower()
    if any(t.lower() in business_type for t in HIGH_PRESSURE_TYPES):
        segment_pressure = 3
    elif any(t.lower() in business_type for t in MEDIUM_PRESSURE_TYPES):
        segment_pressure = 2
    else:
        segment_pressure = 1

    signals = [urgency, pain, segment_pressure]
    if len(assessment.process_description) > 150:
        signals.append(1)

    level = _level(sum(signals) / len(signals))
    return [PressureLevel.LOW, PressureLevel.MEDIUM, PressureLevel.HIGH][level - 1]


def infer_urgency(assessment: AssessmentInput) -> UrgencyLevel:
    """Taking the assessment implies at least active buying intent."""
    context = assessment.additional_context.lower()
    if any(k in context for k in ("urgent", "asap", "immediately", "critical")):
        return UrgencyLevel.URGENT_NEED
    return UrgencyLevel.ACTIVE_BUYING


def infer(assessment: AssessmentInput) -> ContextInference:
    """Run every rule against one assessment."""
    return ContextInference(
        maturity=determine_maturity(assessment),
        hidden_multipliers=identify_hidden_multipliers(assessment),
        competitive_pressure=assess_competitive_pressure(assessment),
        urgency=infer_urgency(assessment),
    )


def maturity_insights(stage: MaturityStage) -> MaturityInsights:
    return MATURITY_INSIGHTS[stage]


# =============================================================================
# LLM-backed variant
# =============================================================================

INFERENCE_SYSTEM_PROMPT = """You analyze B2B company profiles for an AI transformation assessment.

Return ONLY a JSON object with these keys:
- "maturity": one of "early", "scaling", "established"
- "hidden_multipliers": up to 4 short strings naming knock-on costs of the main challenge
- "competitive_pressure": one of "low", "medium", "high"
"""


def _inference_prompt(assessment: AssessmentInput) -> str:
    return (
        f"Company: {assessment.company_name}\n"
        f"Business type: {assessment.industry}\n"
        f"Team: {assessment.team_description or 'not provided'}\n"
        f"Investment level: {assessment.investment_level or 'not provided'}\n"
        f"Challenges: {', '.join(assessment.challenges) or 'not provided'}\n"
        f"Process: {assessment.process_description or 'not provided'}\n"
        f"Tech stack: {assessment.stack_text or 'not provided'}\n"
        f"Additional context: {assessment.additional_context or 'not provided'}"
    )


async def infer_with_llm(
    assessment: AssessmentInput,
    client: OpenAI | None,
    model: str,
    limiter: RateLimiter | None = None,
) -> ContextInference:
    """
    Ask a model for the three judgments, falling back to the rules on any error.

    Urgency always comes from the rules.

    Args:
        assessment: Frozen assessment answers
        client: OpenAI client, or None to go straight to the rules
        model: Chat model name
        limiter: Shared provider rate limiter

    Returns:
        ContextInference
    """
    rules = infer(assessment)
    if client is None:
        return rules

    try:
        result = await complete_chat(
            client,
            provider="openai",
            model=model,
            messages=[
                {"role": "system", "content": INFERENCE_SYSTEM_PROMPT},
                {"role": "user", "content": _inference_prompt(assessment)},
            ],
            temperature=0.2,
            max_tokens=600,
            limiter=limiter,
        )
        data = parse_llm_json_dict(result.text)
        multipliers = [str(m) for m in data.get("hidden_multipliers") or []]
        return ContextInference(
            maturity=MaturityStage(data["maturity"]),
            hidden_multipliers=list(dict.fromkeys(multipliers))[:MAX_MULTIPLIERS]
            or rules.hidden_multipliers,
            competitive_pressure=PressureLevel(data["competitive_pressure"]),
            urgency=rules.urgency,
        )
    except (ProviderCallFailed, json.JSONDecodeError, KeyError, ValueError, ValidationError) as e:
        logger.warning(f"LLM context inference failed, using rules: {e}")
        return rules
