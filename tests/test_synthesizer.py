"""Tests for tiered report synthesis."""

from unittest.mock import patch

import pytest

from app.core.context_inference import infer
from app.core.report_metrics import compute_report_metrics
from app.core.schemas_intelligence import (
    DataSource,
    IntelligencePackage,
    PackageMetadata,
    Tool,
    ToolMatch,
)
from app.core.schemas_report import CURATED_NOTICE, SynthesisTier
from app.core.schemas_research import ResearchFindings
from app.reports.sections import SectionContext
from app.reports.synthesizer import (
    DeterministicSynthesis,
    LLMSynthesis,
    ReportSynthesizer,
    StaticSynthesis,
    build_synthesis_prompt,
    static_sections,
)
from tests.fakes.fake_clients import FakeChatClient, chat_response

LLM_REPORT = """## Executive Summary

Acme IT can lift conversion.

## Current State Analysis

Manual review today.

## Return on Investment Analysis

| Metric | Value |
|---|---|
| ROI | 497% |

## Next Steps

1. Book a session
"""


def _findings(using_fallback=False, **kwargs) -> ResearchFindings:
    match = ToolMatch(
        tool=Tool(name="n8n", category="automation", best_for="routes leads"), similarity=0.9
    )
    package = IntelligencePackage(
        tools=[match],
        benchmarks={"itsm": {"lead_conversion": "8-12%"}},
        metadata=PackageMetadata(
            source=DataSource.LOCAL_KEYWORD,
            using_fallback=using_fallback,
            quality_score=0.85,
            freshness=0.9,
        ),
    )
    return ResearchFindings(package=package, tools=[match], **kwargs)


# ============================================================================
# Strategies
# ============================================================================


class TestStrategies:
    @pytest.mark.asyncio
    async def test_deterministic_reports_insufficient_data(self, assessment):
        ctx = SectionContext(
            assessment=assessment,
            inference=infer(assessment),
            metrics=compute_report_metrics(assessment),
        )

        attempt = await DeterministicSynthesis().attempt(ctx)

        assert not attempt.ok
        assert attempt.sections == []

    @pytest.mark.asyncio
    async def test_llm_without_client(self, assessment, settings):
        ctx = SectionContext(assessment, infer(assessment), compute_report_metrics(assessment))

        attempt = await LLMSynthesis(None, settings).attempt(ctx)

        assert not attempt.ok
        assert attempt.error is not None

    @pytest.mark.asyncio
    async def test_llm_too_few_sections(self, assessment, settings):
        client = FakeChatClient(chat_response("## Only\n\nOne section"))
        ctx = SectionContext(assessment, infer(assessment), compute_report_metrics(assessment))

        attempt = await LLMSynthesis(client, settings).attempt(ctx)

        assert not attempt.ok

    @pytest.mark.asyncio
    async def test_static_always_succeeds(self, bare_assessment):
        ctx = SectionContext(
            bare_assessment, infer(bare_assessment), compute_report_metrics(bare_assessment)
        )

        attempt = await StaticSynthesis().attempt(ctx)

        assert attempt.ok
        assert len(attempt.sections) == 8


class TestPrompt:
    def test_prompt_carries_exact_metrics(self, assessment):
        metrics = compute_report_metrics(assessment)
        ctx = SectionContext(assessment, infer(assessment), metrics, _findings())

        prompt = build_synthesis_prompt(ctx)

        assert f"12-month ROI: {metrics.roi.annual_roi}%" in prompt
        assert "Company: Acme IT" in prompt
        assert "jordan@acme-it.com" not in prompt
        assert "Quality Score: 85/100" in prompt

    def test_prompt_without_findings(self, assessment):
        ctx = SectionContext(assessment, infer(assessment), compute_report_metrics(assessment))

        assert "No research findings available." in build_synthesis_prompt(ctx)


class TestStaticSections:
    def test_static_numbers_match_metrics(self, assessment):
        metrics = compute_report_metrics(assessment)
        ctx = SectionContext(assessment, infer(assessment), metrics)

        roi = next(s for s in static_sections(ctx) if s.key == "roi")

        assert f"{metrics.roi.annual_roi}%" in roi.body
        assert f"${metrics.roi.total_investment:,.0f}" in roi.body


# ============================================================================
# Synthesizer
# ============================================================================


class TestReportSynthesizer:
    @pytest.mark.asyncio
    async def test_deterministic_tier(self, assessment, settings):
        synthesizer = ReportSynthesizer([DeterministicSynthesis(), LLMSynthesis(None, settings)])

        report = await synthesizer.synthesize(assessment, _findings(), infer(assessment))

        assert report.provenance.tier == SynthesisTier.DETERMINISTIC
        assert report.headings()[0] == "Executive Summary"
        assert report.provenance.notices == []
        assert report.provenance.is_curated is False
        assert report.provenance.data_source == DataSource.LOCAL_KEYWORD
        assert report.metrics["annual_roi"] == compute_report_metrics(assessment).roi.annual_roi

    @pytest.mark.asyncio
    async def test_llm_tier_when_deterministic_fails(self, assessment, settings):
        client = FakeChatClient(chat_response(LLM_REPORT))
        synthesizer = ReportSynthesizer([DeterministicSynthesis(), LLMSynthesis(client, settings)])

        report = await synthesizer.synthesize(assessment, None, infer(assessment))

        assert report.provenance.tier == SynthesisTier.LLM
        assert report.headings() == [
            "Executive Summary",
            "Current State Analysis",
            "Return on Investment Analysis",
            "Next Steps",
        ]
        assert report.provenance.research_failed is True
        assert CURATED_NOTICE in report.provenance.notices
        assert client.calls[0]["model"] == settings.SYNTHESIS_MODEL

    @pytest.mark.asyncio
    async def test_llm_tier_when_generator_errors(self, assessment, settings):
        client = FakeChatClient(chat_response(LLM_REPORT))
        synthesizer = ReportSynthesizer([DeterministicSynthesis(), LLMSynthesis(client, settings)])

        with patch("app.reports.synthesizer.generate_sections", side_effect=KeyError("itsm")):
            report = await synthesizer.synthesize(assessment, _findings(), infer(assessment))

        assert report.provenance.tier == SynthesisTier.LLM
        assert report.headings()[0] == "Executive Summary"

    @pytest.mark.asyncio
    async def test_static_tier_appended_and_used(self, assessment, settings):
        client = FakeChatClient(RuntimeError("llm down"))
        synthesizer = ReportSynthesizer([DeterministicSynthesis(), LLMSynthesis(client, settings)])

        report = await synthesizer.synthesize(assessment, None, infer(assessment))

        assert isinstance(synthesizer.strategies[-1], StaticSynthesis)
        assert report.provenance.tier == SynthesisTier.STATIC
        assert report.provenance.is_curated is True
        assert report.sections

    @pytest.mark.asyncio
    async def test_fallback_package_marks_curated(self, assessment):
        synthesizer = ReportSynthesizer([DeterministicSynthesis()])

        report = await synthesizer.synthesize(
            assessment, _findings(using_fallback=True), infer(assessment)
        )

        assert report.provenance.tier == SynthesisTier.DETERMINISTIC
        assert report.provenance.notices[0] == CURATED_NOTICE

    @pytest.mark.asyncio
    async def test_research_notices(self, assessment):
        synthesizer = ReportSynthesizer([DeterministicSynthesis()])

        weak = await synthesizer.synthesize(
            assessment, _findings(weak=True, provider="perplexity"), infer(assessment)
        )
        failed = await synthesizer.synthesize(
            assessment, _findings(external_failed=True), infer(assessment)
        )

        assert weak.provenance.research_weak is True
        assert weak.provenance.research_provider == "perplexity"
        assert any("few sources" in n for n in weak.provenance.notices)
        assert failed.provenance.research_failed is True
        assert any("unavailable" in n for n in failed.provenance.notices)
