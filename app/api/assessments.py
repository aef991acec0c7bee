"""Assessment submission and report generation endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request

from app.api.deps import client_key, get_pipeline, get_report_limiter
from app.core.context_inference import infer, maturity_insights
from app.core.errors import PipelineStageError, RateLimitExceeded
from app.core.logging import get_logger
from app.core.rate_limiter import RateLimiter
from app.core.report_metrics import compute_report_metrics
from app.core.report_pipeline import ReportPipeline
from app.core.schemas_assessment import AssessmentInput

logger = get_logger(__name__)

router = APIRouter()


@router.post("/assessments/inference")
async def preview_inference(assessment: AssessmentInput) -> dict[str, Any]:
    """
    Rule-based inference and metrics for an assessment, without any provider calls.

    Args:
        assessment: Assessment answers (camelCase or snake_case)

    Returns:
        Maturity, pressure, urgency, hidden multipliers, stage insights and metrics
    """
    inference = infer(assessment)
    return {
        "inference": inference.model_dump(mode="json"),
        "insights": maturity_insights(inference.maturity).model_dump(mode="json"),
        "metrics": compute_report_metrics(assessment).summary(),
    }


@router.post("/assessments/report")
async def generate_report(
    assessment: AssessmentInput,
    request: Request,
    pipeline: ReportPipeline = Depends(get_pipeline),
    limiter: RateLimiter = Depends(get_report_limiter),
) -> dict[str, Any]:
    """
    Run the full pipeline for one assessment.

    Returns:
        Report id (when persisted), section headings, metrics, provenance and HTML

    Raises:
        HTTPException 429: Caller exceeded the report rate limit
        HTTPException 503: A stage has no provider and no fallback data
    """
    key = client_key(request)
    try:
        limiter.check_limit(key)
    except RateLimitExceeded as e:
        raise HTTPException(
            status_code=429,
            detail=f"Too many report requests, retry in {e.retry_after:.0f}s",
            headers={"Retry-After": str(max(1, round(e.retry_after)))},
        ) from e

    try:
        run = await pipeline.run(assessment)
    except PipelineStageError as e:
        logger.error(f"Report run failed at stage {e.stage}: {e.cause}", extra={"stage": e.stage})
        raise HTTPException(
            status_code=503,
            detail={"message": "Report generation is unavailable, please retry", "stage": e.stage},
        ) from e

    report = run.report
    return {
        "run_id": run.run_id,
        "report_id": run.report_id,
        "title": report.title,
        "company_name": report.company_name,
        "sections": report.headings(),
        "metrics": report.metrics,
        "provenance": report.provenance.model_dump(mode="json"),
        "inference": run.inference.model_dump(mode="json"),
        "timings": run.timings,
        "html": run.html,
    }
