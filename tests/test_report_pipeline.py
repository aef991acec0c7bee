"""Tests for the end-to-end report pipeline with fake providers."""

import pytest

from app.core.errors import PipelineStageError
from app.core.providers import ServiceHandles
from app.core.report_pipeline import ReportPipeline, build_report_pipeline, load_local_store
from app.core.schemas_intelligence import DataSource
from app.core.schemas_report import SynthesisTier
from app.db.reports import get_report
from app.db.row_store import RowStore
from app.intelligence import IntelligenceGatherer, ToolRetriever
from app.reports import build_report_synthesizer, extract_section_headings
from app.research import ResearchOrchestrator
from tests.fakes.fake_clients import FakeChatClient, FakeSupabase, chat_response

RESEARCH_TEXT = (
    "**Relevance AI** addresses the Function Execution Layer by triaging inbound leads. "
    "Pricing: $199/month.\n"
    "Case study: **Northwind IT** faced slow triage. "
    "Solution: AI lead scoring deployed. Result: 40% faster response.\n"
)
CITATIONS = ["https://a.example", "https://b.example", "https://c.example"]


# ============================================================================
# Degraded runs
# ============================================================================


class TestOfflineRun:
    @pytest.mark.asyncio
    async def test_report_without_any_provider(self, settings, assessment):
        pipeline = build_report_pipeline(ServiceHandles(settings=settings))

        run = await pipeline.run(assessment)

        assert run.run_id == "session-123"
        assert run.report_id is None
        assert run.report.provenance.tier == SynthesisTier.DETERMINISTIC
        assert run.report.provenance.research_failed is True
        assert run.report.provenance.data_source == DataSource.LOCAL_KEYWORD
        assert "research" in run.timings["degraded"]
        assert set(run.timings["stages_ms"]) == {
            "inference",
            "research",
            "synthesis",
            "formatting",
            "persistence",
        }
        assert extract_section_headings(run.html) == run.report.headings()

    @pytest.mark.asyncio
    async def test_persists_when_store_configured(self, settings, assessment):
        pipeline = build_report_pipeline(ServiceHandles(settings=settings))
        pipeline.row_store = RowStore(FakeSupabase())

        run = await pipeline.run(assessment)

        assert run.report_id == "1"
        assert get_report(pipeline.row_store, run.report_id)["report_html"] == run.html

    @pytest.mark.asyncio
    async def test_persistence_failure_still_returns_report(self, settings, assessment):
        pipeline = build_report_pipeline(ServiceHandles(settings=settings))
        pipeline.row_store = RowStore(FakeSupabase(fail=True))

        run = await pipeline.run(assessment)

        assert run.report_id is None
        assert run.report.sections

    @pytest.mark.asyncio
    async def test_skip_persistence(self, settings, assessment):
        pipeline = build_report_pipeline(ServiceHandles(settings=settings))
        pipeline.row_store = RowStore(FakeSupabase())

        run = await pipeline.run(assessment, persist=False)

        assert run.report_id is None
        assert "persistence" not in run.timings["stages_ms"]

    @pytest.mark.asyncio
    async def test_run_id_generated_without_session(self, settings, bare_assessment):
        pipeline = build_report_pipeline(ServiceHandles(settings=settings))

        run = await pipeline.run(bare_assessment, persist=False)

        assert run.run_id
        assert run.report.company_name == "Solo Co"

    @pytest.mark.asyncio
    async def test_total_misconfiguration_names_stage(self, settings, assessment):
        handles = ServiceHandles(settings=settings)
        pipeline = ReportPipeline(
            handles=handles,
            orchestrator=ResearchOrchestrator(
                IntelligenceGatherer(ToolRetriever([]), None, None), []
            ),
            synthesizer=build_report_synthesizer(handles),
            row_store=RowStore(None),
        )

        with pytest.raises(PipelineStageError) as exc_info:
            await pipeline.run(assessment)

        assert exc_info.value.stage == "research"


# ============================================================================
# Live research
# ============================================================================


class TestResearchedRun:
    @pytest.mark.asyncio
    async def test_search_augmented_research(self, settings, assessment):
        perplexity = FakeChatClient(chat_response(RESEARCH_TEXT, CITATIONS))
        pipeline = build_report_pipeline(ServiceHandles(settings=settings, perplexity=perplexity))

        run = await pipeline.run(assessment, persist=False)

        provenance = run.report.provenance
        assert provenance.research_provider == "perplexity"
        assert provenance.research_failed is False
        assert provenance.research_weak is False
        assert "research" not in run.timings["degraded"]
        assert "Northwind IT" in run.report.section("market_context").body


class TestLoadLocalStore:
    def test_missing_file(self, tmp_path):
        assert load_local_store(str(tmp_path / "missing.json")) is None

    def test_default_seed(self):
        assert load_local_store(None) is not None
