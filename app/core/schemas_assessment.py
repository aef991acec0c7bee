"""Pydantic models for assessment input and the judgments inferred from it."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.core.schemas_intelligence import Segment


# Business types as shown on the assessment form, mapped to a segment code
_SEGMENT_KEYWORDS: list[tuple[str, Segment]] = [
    ("itsm", Segment.ITSM),
    ("it service management", Segment.ITSM),
    ("technology services", Segment.ITSM),
    ("professional services", Segment.AGENCY),
    ("marketing agency", Segment.AGENCY),
    ("consulting", Segment.AGENCY),
    ("agency", Segment.AGENCY),
    ("saas", Segment.SAAS),
    ("software", Segment.SAAS),
    ("technology", Segment.SAAS),
]


def normalize_segment(business_type: str | None) -> Segment:
    """Map a free-text business type onto a segment. Unknown types map to agency."""
    text = (business_type or "").lower()
    for keyword, segment in _SEGMENT_KEYWORDS:
        if keyword in text:
            return segment
    return Segment.AGENCY


class AssessmentInput(BaseModel):
    """Answers collected by the multi-step assessment form.

    Accepts both snake_case and the form's camelCase field names. Frozen so a
    report run always sees one consistent snapshot.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )

    session_id: str = ""
    full_name: str = ""
    company: str = ""
    email: str = ""
    subscribe_updates: bool = False
    business_type: str = ""
    opportunity_focus: str = ""
    revenue_model: str = ""
    challenges: list[str] = Field(default_factory=list)
    # Optional numbers the user typed in: monthly_leads, conversion_rate,
    # average_deal_size, close_rate
    metrics_quantified: dict[str, float] = Field(default_factory=dict)
    team_description: str = ""
    process_description: str = ""
    tech_stack: list[str] = Field(default_factory=list)
    investment_level: str = ""
    additional_context: str = ""

    @property
    def company_name(self) -> str:
        return self.company or "Your Company"

    @property
    def industry(self) -> str:
        return self.business_type or "Professional Services"

    @property
    def segment(self) -> Segment:
        return normalize_segment(self.business_type)

    @property
    def primary_challenge(self) -> str:
        return self.challenges[0] if self.challenges else "operational efficiency"

    @property
    def stack_text(self) -> str:
        return ", ".join(self.tech_stack)

    @property
    def email_domain(self) -> str:
        return self.email.split("@", 1)[1] if "@" in self.email else ""

    def free_text(self) -> str:
        """All free-text answers joined for keyword scans."""
        parts = [self.additional_context, self.process_description, self.team_description]
        return " ".join(p for p in parts if p)


# =============================================================================
# Context inference
# =============================================================================


class MaturityStage(str, Enum):
    EARLY = "early"
    SCALING = "scaling"
    ESTABLISHED = "established"


class PressureLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class UrgencyLevel(str, Enum):
    EXPLORING = "exploring"
    ACTIVE_BUYING = "active-buying"
    URGENT_NEED = "urgent-need"


class ContextInference(BaseModel):
    """Judgments derived from one assessment. Recomputed every run."""

    model_config = ConfigDict(frozen=True)

    maturity: MaturityStage
    hidden_multipliers: list[str] = Field(default_factory=list, max_length=4)
    competitive_pressure: PressureLevel
    urgency: UrgencyLevel = UrgencyLevel.ACTIVE_BUYING


class MaturityInsights(BaseModel):
    model_config = ConfigDict(frozen=True)

    focus: str
    timeframe: str
    approach: str
    risks: list[str]
    opportunities: list[str]
