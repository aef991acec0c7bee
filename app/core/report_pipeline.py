"""End-to-end report run: inference, research, synthesis, HTML, persistence.

Every stage degrades instead of failing. The one hard failure is total
misconfiguration (no retrieval provider and no curated data), raised as
``PipelineStageError`` naming the stage.
"""

from dataclasses import dataclass, field
from uuid import uuid4

from app.core.context_inference import infer, infer_with_llm
from app.core.errors import ConfigurationError, PipelineStageError, ResearchFailed
from app.core.logging import get_logger, run_logger
from app.core.providers import ServiceHandles
from app.core.schemas_assessment import AssessmentInput, ContextInference
from app.core.schemas_report import Report
from app.core.schemas_research import ResearchFindings
from app.core.timing import RunTracker
from app.db.reports import save_report
from app.db.row_store import RowStore
from app.intelligence import (
    FallbackIntelligenceProvider,
    IntelligenceGatherer,
    LocalIntelligenceStore,
    ToolRetriever,
    build_tool_retriever,
)
from app.research import ResearchOrchestrator, build_research_orchestrator
from app.reports import ReportSynthesizer, build_report_synthesizer, format_report

logger = get_logger(__name__)


@dataclass
class ReportRun:
    """Result of one pipeline run."""

    run_id: str
    report: Report
    html: str
    inference: ContextInference
    report_id: str | None = None
    timings: dict = field(default_factory=dict)


class ReportPipeline:
    """Holds the long-lived components; one instance per process."""

    def __init__(
        self,
        handles: ServiceHandles,
        orchestrator: ResearchOrchestrator,
        synthesizer: ReportSynthesizer,
        row_store: RowStore,
        store: LocalIntelligenceStore | None = None,
    ):
        self.handles = handles
        self.orchestrator = orchestrator
        self.synthesizer = synthesizer
        self.row_store = row_store
        self.store = store

    @property
    def retriever(self) -> ToolRetriever:
        return self.orchestrator.gatherer.retriever

    async def _infer(self, assessment: AssessmentInput) -> ContextInference:
        settings = self.handles.settings
        if settings.USE_LLM_INFERENCE:
            return await infer_with_llm(
                assessment, self.handles.openai, settings.INFERENCE_MODEL, self.handles.limiter
            )
        return infer(assessment)

    async def _research(
        self, assessment: AssessmentInput, tracker: RunTracker
    ) -> ResearchFindings | None:
        try:
            return await self.orchestrator.run(assessment)
        except ResearchFailed as e:
            tracker.mark_degraded("research")
            logger.warning(
                f"External research failed, continuing with draft package: {e}",
                extra={"causes": [str(c) for c in e.causes]},
            )
            return e.partial
        except ConfigurationError as e:
            raise PipelineStageError("research", e) from e

    async def run(self, assessment: AssessmentInput, persist: bool = True) -> ReportRun:
        """
        Generate a report for one assessment.

        Args:
            assessment: Frozen assessment answers
            persist: Store the report row when the row store is configured

        Returns:
            ReportRun with the report and its HTML rendering

        Raises:
            PipelineStageError: Only on total misconfiguration
        """
        run_id = assessment.session_id or str(uuid4())
        tracker = RunTracker(run_id)
        log = run_logger(logger, run_id)
        log.info(
            f"Starting report run for {assessment.company_name}",
            extra={"segment": assessment.segment.value},
        )

        with tracker.stage("inference"):
            inference = await self._infer(assessment)

        with tracker.stage("research"):
            findings = await self._research(assessment, tracker)

        with tracker.stage("synthesis"):
            report = await self.synthesizer.synthesize(assessment, findings, inference)
        if report.provenance.is_curated:
            tracker.mark_degraded("synthesis")

        with tracker.stage("formatting"):
            html = format_report(report, self.handles.settings.REPORT_CONTACT_EMAIL)

        report_id = None
        if persist:
            with tracker.stage("persistence"):
                report_id = save_report(self.row_store, assessment, report, html)

        log.info(
            f"Report run finished via {report.provenance.tier.value}",
            extra={"report_id": report_id, "degraded": tracker.degraded},
        )
        tracker.log()
        return ReportRun(
            run_id=run_id,
            report=report,
            html=html,
            inference=inference,
            report_id=report_id,
            timings=tracker.summary(),
        )


def load_local_store(path: str | None) -> LocalIntelligenceStore | None:
    try:
        return LocalIntelligenceStore.from_file(path)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Local intelligence unavailable: {e}")
        return None


def build_report_pipeline(handles: ServiceHandles) -> ReportPipeline:
    """
    Wire every component from the service handles.

    Args:
        handles: Provider handles built at process start

    Returns:
        ReportPipeline
    """
    settings = handles.settings
    store = load_local_store(settings.LOCAL_INTELLIGENCE_PATH)
    fallback = FallbackIntelligenceProvider()
    retriever = build_tool_retriever(
        settings, handles.openai, handles.supabase, store, fallback, handles.limiter
    )
    gatherer = IntelligenceGatherer(retriever, store, fallback)

    return ReportPipeline(
        handles=handles,
        orchestrator=build_research_orchestrator(handles, gatherer),
        synthesizer=build_report_synthesizer(handles),
        row_store=RowStore(handles.supabase),
        store=store,
    )
