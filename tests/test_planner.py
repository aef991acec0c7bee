"""Tests for research planning and gap detection."""

from app.core.schemas_assessment import AssessmentInput
from app.core.schemas_intelligence import IntelligencePackage, Tool, ToolMatch
from app.research.planner import (
    build_plan,
    extract_key_bottleneck,
    extract_location,
    extract_pain_points,
    extract_team_members,
    identify_gaps,
    parse_budget_expectation,
    split_stack,
)


def _package(tool_count: int, integrations=(), case_studies=(), benchmark_keys: int = 0):
    return IntelligencePackage(
        tools=[
            ToolMatch(tool=Tool(name=f"Tool {i}", integrations=list(integrations)), similarity=0.7)
            for i in range(tool_count)
        ],
        case_studies=list(case_studies),
        benchmarks={"itsm": {f"metric_{i}": "x" for i in range(benchmark_keys)}}
        if benchmark_keys
        else {},
    )


# ============================================================================
# Assessment parsing
# ============================================================================


class TestParsing:
    def test_pain_points(self):
        assert extract_pain_points("Manual review takes 3 weeks", "") == [
            "takes 3 weeks",
            "manual",
        ]
        assert extract_pain_points("", "") == ["inefficient process"]

    def test_key_bottleneck(self):
        assert extract_key_bottleneck("We log leads but nobody follows up") == "but nobody follows up"
        assert extract_key_bottleneck("") == "manual processes"

    def test_team_members(self):
        assert extract_team_members("CEO Dana and a senior engineer") == ["Dana"]
        assert extract_team_members("") == ["team"]
        assert extract_team_members("just us") == ["team"]

    def test_location(self, assessment, bare_assessment):
        assert extract_location(assessment) == "Indianapolis, IN"
        assert extract_location(bare_assessment) == ""

    def test_budget_expectation(self):
        assert parse_budget_expectation("Quick Win") == "minimal investment"
        assert parse_budget_expectation("Enterprise") == "enterprise budget"
        assert parse_budget_expectation("") == "flexible budget"

    def test_split_stack(self):
        assessment = AssessmentInput(tech_stack=["HubSpot, Slack", "Notion;Zapier"])
        assert split_stack(assessment) == ["HubSpot", "Slack", "Notion", "Zapier"]


# ============================================================================
# Plan
# ============================================================================


class TestBuildPlan:
    def test_company_queries_use_domain_and_location(self, assessment):
        plan = build_plan(assessment)

        assert plan.company_queries[0] == '"Acme IT" company profile site:acme-it.com about team'
        assert "Indianapolis, IN" in plan.company_queries[2]
        assert len(plan.company_queries) == 5

    def test_rag_queries_deduplicated(self, assessment):
        plan = build_plan(assessment)

        assert plan.rag_queries == ["lead-qualification", "Lead qualification"]

    def test_primary_queries_mention_stack(self, assessment):
        plan = build_plan(assessment)

        assert "HubSpot AND Slack" in plan.primary_queries[1]
        assert plan.external_searches[3] == "HubSpot API AI integration examples"

    def test_bare_assessment_defaults(self, bare_assessment):
        plan = build_plan(bare_assessment)

        assert "site:" not in plan.company_queries[0]
        assert plan.external_searches[3] == "CRM API AI integration examples"
        assert "existing systems" in plan.targets.solution_requirements
        assert plan.rag_queries == ["workflow-automation", "operational efficiency"]

    def test_deterministic(self, assessment):
        assert build_plan(assessment) == build_plan(assessment)


# ============================================================================
# Gaps
# ============================================================================


class TestIdentifyGaps:
    def test_thin_draft(self, assessment):
        gaps = identify_gaps(_package(1, benchmark_keys=1), assessment)

        assert any("fewer than 3 tools" in g for g in gaps)
        assert any("no case studies" in g for g in gaps)
        assert any("insufficient benchmarks" in g for g in gaps)
        assert any("no integration details for the HubSpot, Slack ecosystem" in g for g in gaps)
        assert gaps[-1] == "company-specific research for Acme IT"

    def test_rich_draft_still_needs_company_research(self, assessment):
        package = _package(
            3, integrations=["HubSpot"], case_studies=["Northwind IT"], benchmark_keys=2
        )

        assert identify_gaps(package, assessment) == ["company-specific research for Acme IT"]

    def test_no_stack_skips_integration_gap(self, bare_assessment):
        gaps = identify_gaps(_package(0), bare_assessment)

        assert not any("integration" in g for g in gaps)
        assert gaps[-1] == "company-specific research for Solo Co"
