"""Report and feedback persistence."""

from datetime import datetime, timezone
from typing import Any

from app.core.errors import PersistenceFailed
from app.core.logging import get_logger
from app.core.schemas_assessment import AssessmentInput
from app.core.schemas_report import Report
from app.db.row_store import FEEDBACK_TABLE, REPORTS_TABLE, RowStore

logger = get_logger(__name__)


def save_report(
    store: RowStore,
    assessment: AssessmentInput,
    report: Report,
    html: str,
) -> str | None:
    """
    Persist a generated report.

    Failures are logged and swallowed; the caller still returns the report.

    Returns:
        Row id, or None if the report was not stored
    """
    if not store.enabled:
        logger.info("Row store disabled, report not persisted")
        return None

    row = {
        "session_id": assessment.session_id or None,
        "company_name": report.company_name,
        "email": assessment.email or None,
        "industry": assessment.industry,
        "assessment_data": assessment.model_dump(mode="json"),
        "report_markdown": report.to_markdown(),
        "report_html": html,
        "metrics": report.metrics,
        "synthesis_tier": report.provenance.tier.value,
        "data_source": report.provenance.data_source.value,
        "using_fallback": report.provenance.using_fallback,
        "quality_score": report.provenance.quality_score,
        "generated_at": report.generated_at.isoformat(),
    }

    try:
        saved = store.insert(REPORTS_TABLE, row)
    except PersistenceFailed as e:
        logger.error(
            f"Failed to persist report for {report.company_name}: {e}",
            extra={"company_name": report.company_name},
        )
        return None

    report_id = saved.get("id")
    logger.info(f"Persisted report {report_id}", extra={"report_id": report_id})
    return str(report_id) if report_id is not None else None


def get_report(store: RowStore, report_id: str) -> dict[str, Any] | None:
    """
    Raises:
        PersistenceFailed: If the store is unavailable
    """
    rows = store.select(REPORTS_TABLE, {"id": report_id}, limit=1)
    return rows[0] if rows else None


def list_reports(store: RowStore, email: str, limit: int = 10) -> list[dict[str, Any]]:
    return store.select(REPORTS_TABLE, {"email": email}, limit=limit, order_by="generated_at")


def mark_report_viewed(store: RowStore, report_id: str) -> bool:
    """Stamp ``viewed_at``. Returns False when the report does not exist."""
    rows = store.update(
        REPORTS_TABLE,
        {"id": report_id},
        {"viewed_at": datetime.now(timezone.utc).isoformat()},
    )
    return bool(rows)


def record_feedback(
    store: RowStore,
    report_id: str,
    rating: int,
    comment: str = "",
) -> dict[str, Any]:
    """
    Store reader feedback for a report.

    Raises:
        PersistenceFailed: If the write fails
    """
    row = store.insert(
        FEEDBACK_TABLE,
        {
            "report_id": report_id,
            "rating": rating,
            "comment": comment or None,
            "created_at": datetime.now(timezone.utc).isoformat(),
        },
    )
    logger.info(
        f"Recorded feedback for report {report_id}",
        extra={"report_id": report_id, "rating": rating},
    )
    return row
