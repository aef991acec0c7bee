"""Revenue and ROI metrics shown in every report.

This is the only place these formulas live. Section generators, the LLM
synthesis prompt and the static report all read from ``ReportMetrics``.

Target conversion is capped at 20% everywhere, ROI table included.
"""

import math
import re

from pydantic import BaseModel, ConfigDict

from app.core.schemas_assessment import AssessmentInput

DEFAULT_MONTHLY_LEADS = 200
DEFAULT_CONVERSION_RATE = 3.0
DEFAULT_CLOSE_RATE = 60.0
DEFAULT_DEAL_SIZE = 25000.0

CURRENT_CYCLE_MONTHS = 8
INDUSTRY_CYCLE_MONTHS = 4
MIN_TARGET_CYCLE_MONTHS = 2
CYCLE_REDUCTION = 0.4

EXECUTIVE_HOURS_PER_WEEK = 15
BLENDED_HOURLY_RATE = 150
ANNUAL_TOOL_COST = 5000

TARGET_CONVERSION_MULTIPLIER = 3
TARGET_CONVERSION_CAP = 20.0

IMPLEMENTATION_COST = 12000
MONTHLY_PLATFORM_COST = 450
TIME_SAVINGS_SHARE = 0.6
CURRENT_EFFICIENCY = 40
TARGET_EFFICIENCY = 85
MIN_PAYBACK_MONTHS = 0.1

_CONVERSION = re.compile(r"(\d+(?:\.\d+)?)%?\s*(?:conversion|convert)", re.IGNORECASE)
_DEAL_SIZE = re.compile(r"\$?(\d+(?:,\d+)*)\s*(?:deal|contract|sale)", re.IGNORECASE)
_LEADS = re.compile(r"(\d+(?:,\d+)*)\s*(?:leads|inquiries|prospects)", re.IGNORECASE)


def round_half_up(value: float) -> int:
    """Round halves toward +inf, unlike the banker's rounding of ``round()``."""
    return math.floor(value + 0.5)


def _number(raw: str) -> float:
    return float(raw.replace(",", ""))


# =============================================================================
# Models
# =============================================================================


class MetricInputs(BaseModel):
    """Funnel numbers, either typed by the user or defaulted."""

    model_config = ConfigDict(frozen=True)

    monthly_leads: float = DEFAULT_MONTHLY_LEADS
    current_conversion: float = DEFAULT_CONVERSION_RATE
    close_rate: float = DEFAULT_CLOSE_RATE
    avg_deal_size: float = DEFAULT_DEAL_SIZE

    @classmethod
    def from_assessment(cls, assessment: AssessmentInput) -> "MetricInputs":
        """
        Read funnel numbers from the quantified answers, then from free text.

        Values outside a sane range fall back to the defaults.
        """
        quantified = assessment.metrics_quantified or {}
        text = assessment.free_text()
        values: dict[str, float] = {}

        leads = quantified.get("monthly_leads")
        if leads is None and (found := _LEADS.search(text)):
            leads = _number(found.group(1))
        if leads and leads > 0:
            values["monthly_leads"] = float(leads)

        conversion = quantified.get("conversion_rate")
        if conversion is None and (found := _CONVERSION.search(text)):
            conversion = _number(found.group(1))
        if conversion and 0 < conversion <= 100:
            values["current_conversion"] = float(conversion)

        close_rate = quantified.get("close_rate")
        if close_rate and 0 < close_rate <= 100:
            values["close_rate"] = float(close_rate)

        deal_size = quantified.get("average_deal_size")
        if deal_size is None and (found := _DEAL_SIZE.search(text)):
            deal_size = _number(found.group(1))
        if deal_size and deal_size > 0:
            values["avg_deal_size"] = float(deal_size)

        return cls(**values)


class CurrentMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    monthly_leads: float
    current_conversion: float
    close_rate: float
    avg_deal_size: float
    monthly_deals: int
    actual_deals: int
    current_monthly_revenue: float
    cycle_length: int
    industry_cycle: int
    target_cycle: float
    executive_hours: int
    blended_rate: int
    executive_cost: float
    tool_cost: float
    delayed_revenue: float


class RoiProjection(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_conversion: float
    target_conversion: float
    current_efficiency: int
    target_efficiency: int
    revenue_gain: float
    cost_savings: float
    total_investment: float
    annual_recurring_cost: float
    payback_months: float
    annual_roi: int
    close_rate: float


class ReportMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    inputs: MetricInputs
    current: CurrentMetrics
    roi: RoiProjection

    def summary(self) -> dict[str, float]:
        """Flat view stored with the report row."""
        return {
            "monthly_leads": self.current.monthly_leads,
            "current_conversion": self.roi.current_conversion,
            "target_conversion": self.roi.target_conversion,
            "monthly_deals": self.current.monthly_deals,
            "actual_deals": self.current.actual_deals,
            "current_monthly_revenue": self.current.current_monthly_revenue,
            "revenue_gain": self.roi.revenue_gain,
            "cost_savings": self.roi.cost_savings,
            "total_investment": self.roi.total_investment,
            "payback_months": self.roi.payback_months,
            "annual_roi": self.roi.annual_roi,
        }


# =============================================================================
# Formulas
# =============================================================================


def target_conversion(current_conversion: float) -> float:
    """Triple the current rate, capped at 20% but never below the current rate."""
    projected = min(current_conversion * TARGET_CONVERSION_MULTIPLIER, TARGET_CONVERSION_CAP)
    return max(projected, current_conversion)


def current_metrics(inputs: MetricInputs) -> CurrentMetrics:
    monthly_deals = round_half_up(inputs.monthly_leads * (inputs.current_conversion / 100))
    actual_deals = round_half_up(monthly_deals * (inputs.close_rate / 100))
    monthly_revenue = actual_deals * inputs.avg_deal_size
    executive_cost = EXECUTIVE_HOURS_PER_WEEK * 52 * BLENDED_HOURLY_RATE

    return CurrentMetrics(
        monthly_leads=inputs.monthly_leads,
        current_conversion=inputs.current_conversion,
        close_rate=inputs.close_rate,
        avg_deal_size=inputs.avg_deal_size,
        monthly_deals=monthly_deals,
        actual_deals=actual_deals,
        current_monthly_revenue=monthly_revenue,
        cycle_length=CURRENT_CYCLE_MONTHS,
        industry_cycle=INDUSTRY_CYCLE_MONTHS,
        target_cycle=max(CURRENT_CYCLE_MONTHS * CYCLE_REDUCTION, MIN_TARGET_CYCLE_MONTHS),
        executive_hours=EXECUTIVE_HOURS_PER_WEEK,
        blended_rate=BLENDED_HOURLY_RATE,
        executive_cost=executive_cost,
        tool_cost=ANNUAL_TOOL_COST,
        delayed_revenue=monthly_revenue * (CURRENT_CYCLE_MONTHS - INDUSTRY_CYCLE_MONTHS) * 12,
    )


def roi_projection(current: CurrentMetrics) -> RoiProjection:
    """
    Twelve-month ROI for the recommended implementation.

    Total investment is the fixed implementation fee plus a year of platform
    cost, so it is never zero.
    """
    target = target_conversion(current.current_conversion)
    revenue_gain = (
        (target - current.current_conversion)
        * current.monthly_leads
        * 0.01
        * current.avg_deal_size
        * current.close_rate
        * 0.01
        * 12
    )
    cost_savings = current.executive_cost * TIME_SAVINGS_SHARE
    recurring = MONTHLY_PLATFORM_COST * 12
    total_investment = IMPLEMENTATION_COST + recurring

    # Cost savings are a positive constant, so the monthly benefit is never zero
    monthly_benefit = (revenue_gain + cost_savings) / 12
    payback = max(MIN_PAYBACK_MONTHS, round(total_investment / monthly_benefit, 1))

    annual_roi = round_half_up(
        ((revenue_gain + cost_savings - recurring) / total_investment) * 100
    )

    return RoiProjection(
        current_conversion=current.current_conversion,
        target_conversion=target,
        current_efficiency=CURRENT_EFFICIENCY,
        target_efficiency=TARGET_EFFICIENCY,
        revenue_gain=revenue_gain,
        cost_savings=cost_savings,
        total_investment=total_investment,
        annual_recurring_cost=recurring,
        payback_months=payback,
        annual_roi=annual_roi,
        close_rate=current.close_rate,
    )


def compute_report_metrics(assessment: AssessmentInput) -> ReportMetrics:
    inputs = MetricInputs.from_assessment(assessment)
    current = current_metrics(inputs)
    return ReportMetrics(inputs=inputs, current=current, roi=roi_projection(current))
