"""Tests for the research text extractors."""

import pytest

from app.core.errors import PipelineError
from app.core.schemas_intelligence import CapabilityLayer
from app.research.extractors import (
    BenchmarkExtractor,
    CapabilityLayerExtractor,
    CaseStudyExtractor,
    CompanyIntelligenceExtractor,
    ExtractionError,
    ExtractorRegistry,
    ImplementationExtractor,
    IntegrationExtractor,
    MarketContextExtractor,
    PricingExtractor,
    ToolBlockExtractor,
    default_registry,
)

TOOL_TEXT = (
    "**Relevance AI** addresses the lead triage gap. Pricing: $199/month. "
    "Integrates with HubSpot.\n"
    "**Clay** pricing starts at $149/month because enrichment matters."
)


# ============================================================================
# Tool-level fields
# ============================================================================


class TestToolFields:
    def test_pricing(self):
        assert PricingExtractor().extract("Costs $49/month for teams") == "$49/month"
        assert PricingExtractor().extract("Call us") == "Contact for pricing"

    def test_capability_layer(self):
        extractor = CapabilityLayerExtractor()

        assert extractor.extract("a chatbot for leads") == CapabilityLayer.CONVERSATIONAL_INTERFACE
        assert extractor.extract("workflow chatbot") == CapabilityLayer.CONTEXT_ORCHESTRATION
        assert extractor.extract("nothing relevant") == CapabilityLayer.FUNCTION_EXECUTION

    def test_integration(self):
        extractor = IntegrationExtractor()

        assert extractor.extract("It integrates natively with HubSpot. Cheap.").endswith(
            "with HubSpot."
        )
        assert extractor.extract("no mention") == "API available"

    def test_non_string_rejected(self):
        with pytest.raises(ExtractionError) as exc_info:
            PricingExtractor().extract(None)

        assert exc_info.value.extractor == "pricing"
        assert isinstance(exc_info.value, PipelineError)


class TestToolBlocks:
    def test_bold_mentions(self):
        tools = ToolBlockExtractor().extract(TOOL_TEXT)

        assert [t.name for t in tools] == ["Relevance AI", "Clay"]
        assert tools[0].pricing == "$199/month"
        assert tools[1].pricing == "$149/month"

    def test_duplicates_dropped(self):
        tools = ToolBlockExtractor().extract(TOOL_TEXT + "\n" + TOOL_TEXT)

        assert [t.name for t in tools] == ["Relevance AI", "Clay"]

    def test_layer_headings_are_not_tools(self):
        assert ToolBlockExtractor().parse_block("**Context Orchestration Layer** pricing") is None

    def test_no_tools(self):
        assert ToolBlockExtractor().extract("Plain prose without names.") == []


# ============================================================================
# Report-level fields
# ============================================================================


class TestReportFields:
    def test_implementations(self):
        found = ImplementationExtractor().extract(
            "Implementation: Automated triage bot\nTimeline: 6 weeks"
        )

        assert found[0].description == "Automated triage bot"
        assert found[0].timeline == "6 weeks"

    def test_benchmarks(self):
        found = BenchmarkExtractor().extract(
            "Conversion rate: 12%\nIndustry average: 4-8% conversion"
        )

        assert [(b.metric, b.value) for b in found] == [
            ("Conversion rate", "12%"),
            ("Industry average", "4-8% conversion"),
        ]

    def test_case_studies(self):
        found = CaseStudyExtractor().extract(
            "Case study: **Northwind IT** faced slow triage. "
            "Solution: AI lead scoring deployed. Result: 40% faster response."
        )

        assert len(found) == 1
        assert found[0].company == "Northwind IT"
        assert found[0].solution == "AI lead scoring deployed"
        assert found[0].result == "40% faster response"

    def test_short_case_study_sections_skipped(self):
        assert CaseStudyExtractor().extract("Example: tiny") == []

    def test_market_context(self):
        found = MarketContextExtractor().extract(
            "Trend: AI SDRs are mainstream\n62% of companies are piloting AI agents"
        )

        assert found[0].trend == "AI SDRs are mainstream"
        assert found[1].trend == "piloting AI agents"
        assert found[1].adoption == "62%"

    def test_company_intelligence(self):
        company = CompanyIntelligenceExtractor().extract(
            "Acme IT is a managed service provider. Founded in 2009 in Ohio. "
            "Team of 45 engineers. They promise to resolve tickets in one hour."
        )

        assert "is a managed service provider." in company.profile
        assert company.team_size == "Team of 45"
        assert company.website_promises == ["resolve tickets in one hour"]

    def test_company_intelligence_defaults(self):
        company = CompanyIntelligenceExtractor().extract("")

        assert company.profile == "Company profile not found in research"
        assert company.website_promises == []


# ============================================================================
# Registry
# ============================================================================


class TestRegistry:
    def test_default_registry_fields(self):
        fields = default_registry().fields()

        for name in ("tools", "benchmarks", "case_studies", "market_context", "company"):
            assert name in fields

    def test_unknown_field(self):
        with pytest.raises(ExtractionError):
            ExtractorRegistry().get("missing")

    def test_register_replaces(self):
        class StaticPricing(PricingExtractor):
            def extract(self, text):
                return "$1"

        registry = default_registry()
        registry.register(StaticPricing())

        assert registry.extract("pricing", "anything") == "$1"
