"""Tests for rule-based and LLM-backed context inference."""

import json

import pytest

from app.core.context_inference import (
    MAX_MULTIPLIERS,
    MULTIPLIER_PATTERNS,
    assess_competitive_pressure,
    determine_maturity,
    extract_team_size,
    identify_hidden_multipliers,
    implied_monthly_budget,
    infer,
    infer_urgency,
    infer_with_llm,
    maturity_insights,
)
from app.core.schemas_assessment import (
    AssessmentInput,
    MaturityStage,
    PressureLevel,
    UrgencyLevel,
)
from tests.fakes.fake_clients import FakeChatClient, chat_response


@pytest.fixture
def enterprise_assessment():
    return AssessmentInput(
        company="Bigco",
        business_type="SaaS Platform",
        team_description="80 people across sales and success",
        investment_level="Enterprise Transformation",
        process_description="Legacy system handoffs with compliance review on every deal",
        tech_stack=["Salesforce", "Outreach", "Gong", "Slack", "Snowflake", "Zendesk"],
        challenges=["Scaling operations and processes"],
        additional_context="This is critical, we need it ASAP",
    )


# ============================================================================
# Helpers
# ============================================================================


class TestHelpers:
    def test_team_size(self):
        assert extract_team_size("We are 12 people") == 12
        assert extract_team_size("a handful of folks") == 5

    def test_implied_budget(self):
        assert implied_monthly_budget("Quick Win") == 3500
        assert implied_monthly_budget("Enterprise Transformation") == 20000
        assert implied_monthly_budget("Digital Transformation") == 10000
        assert implied_monthly_budget("") == 5000


# ============================================================================
# Maturity
# ============================================================================


class TestMaturity:
    def test_small_manual_shop_is_early(self, assessment):
        assert determine_maturity(assessment) == MaturityStage.EARLY

    def test_large_compliance_heavy_org_is_established(self, enterprise_assessment):
        assert determine_maturity(enterprise_assessment) == MaturityStage.ESTABLISHED

    def test_middle_is_scaling(self):
        scaling = AssessmentInput(
            team_description="25 people",
            investment_level="Digital Transformation",
            process_description="Inconsistent handoffs between different teams",
            tech_stack=["HubSpot", "Slack", "Notion", "Zapier"],
        )
        assert determine_maturity(scaling) == MaturityStage.SCALING

    def test_insights_per_stage(self):
        for stage in MaturityStage:
            insights = maturity_insights(stage)
            assert insights.focus
            assert insights.timeframe


# ============================================================================
# Multipliers, pressure and urgency
# ============================================================================


class TestMultipliers:
    def test_keyword_multipliers(self, assessment):
        assert identify_hidden_multipliers(assessment) == [
            "Weak brand positioning",
            "Inefficient sales handoffs",
        ]

    def test_canned_multipliers_case_insensitive(self):
        result = identify_hidden_multipliers(
            AssessmentInput(challenges=["scaling operations and processes"])
        )
        assert result == MULTIPLIER_PATTERNS["Scaling operations and processes"]

    def test_capped_and_deduplicated(self, enterprise_assessment):
        result = identify_hidden_multipliers(enterprise_assessment)

        assert len(result) == MAX_MULTIPLIERS
        assert len(result) == len(set(result))

    def test_context_triggers(self):
        result = identify_hidden_multipliers(
            AssessmentInput(
                challenges=["Something unusual"],
                investment_level="Quick Win",
                additional_context="urgent",
            )
        )
        assert result == [
            "Crisis mode operations draining leadership focus",
            "Staff morale issues affecting overall productivity",
            "Limited budget constraining solution options",
        ]


class TestPressureAndUrgency:
    def test_low_pressure(self, assessment):
        assert assess_competitive_pressure(assessment) == PressureLevel.LOW

    def test_high_pressure(self, enterprise_assessment):
        assert assess_competitive_pressure(enterprise_assessment) == PressureLevel.HIGH

    def test_urgency(self, assessment, enterprise_assessment):
        assert infer_urgency(assessment) == UrgencyLevel.ACTIVE_BUYING
        assert infer_urgency(enterprise_assessment) == UrgencyLevel.URGENT_NEED

    def test_infer_is_deterministic(self, enterprise_assessment):
        assert infer(enterprise_assessment) == infer(enterprise_assessment)

    def test_empty_assessment(self, bare_assessment):
        result = infer(bare_assessment)

        assert result.maturity == MaturityStage.EARLY
        assert result.urgency == UrgencyLevel.ACTIVE_BUYING


# ============================================================================
# LLM variant
# ============================================================================


class TestInferWithLlm:
    @pytest.mark.asyncio
    async def test_no_client_uses_rules(self, assessment):
        assert await infer_with_llm(assessment, None, "gpt-4o-mini") == infer(assessment)

    @pytest.mark.asyncio
    async def test_model_answer_used(self, assessment):
        payload = {
            "maturity": "scaling",
            "hidden_multipliers": ["Slow follow-up", "Slow follow-up", "Owner bottleneck"],
            "competitive_pressure": "medium",
        }
        client = FakeChatClient(chat_response(f"```json\n{json.dumps(payload)}\n```"))

        result = await infer_with_llm(assessment, client, "gpt-4o-mini")

        assert result.maturity == MaturityStage.SCALING
        assert result.hidden_multipliers == ["Slow follow-up", "Owner bottleneck"]
        assert result.competitive_pressure == PressureLevel.MEDIUM
        assert result.urgency == infer(assessment).urgency

    @pytest.mark.asyncio
    async def test_bad_answer_falls_back(self, assessment):
        client = FakeChatClient(chat_response('{"maturity": "galactic"}'))

        assert await infer_with_llm(assessment, client, "gpt-4o-mini") == infer(assessment)

    @pytest.mark.asyncio
    async def test_provider_error_falls_back(self, assessment):
        client = FakeChatClient(RuntimeError("503"))

        assert await infer_with_llm(assessment, client, "gpt-4o-mini") == infer(assessment)
