"""Stored report retrieval and feedback endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field

from app.api.deps import get_row_store
from app.core.errors import PersistenceFailed
from app.core.logging import get_logger
from app.db.reports import get_report, list_reports, mark_report_viewed, record_feedback
from app.db.row_store import RowStore

logger = get_logger(__name__)

router = APIRouter()


class FeedbackRequest(BaseModel):
    """Request body for report feedback."""

    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(default="", max_length=2000)


def _load(store: RowStore, report_id: str) -> dict[str, Any]:
    try:
        row = get_report(store, report_id)
    except PersistenceFailed as e:
        logger.error(f"Failed to load report {report_id}: {e}")
        raise HTTPException(status_code=503, detail="Report storage unavailable") from e
    if row is None:
        raise HTTPException(status_code=404, detail="Report not found")
    return row


@router.get("/reports")
async def list_reports_for_email(
    email: str = Query(..., description="Email the reports were generated for"),
    limit: int = Query(10, ge=1, le=50),
    store: RowStore = Depends(get_row_store),
) -> list[dict[str, Any]]:
    try:
        rows = list_reports(store, email, limit=limit)
    except PersistenceFailed as e:
        logger.error(f"Failed to list reports: {e}")
        raise HTTPException(status_code=503, detail="Report storage unavailable") from e
    return [
        {
            "id": row.get("id"),
            "company_name": row.get("company_name"),
            "generated_at": row.get("generated_at"),
            "synthesis_tier": row.get("synthesis_tier"),
        }
        for row in rows
    ]


@router.get("/reports/{report_id}", response_class=HTMLResponse)
async def get_report_html(
    report_id: str, store: RowStore = Depends(get_row_store)
) -> HTMLResponse:
    """Serve the stored HTML document and stamp the first view."""
    row = _load(store, report_id)
    try:
        mark_report_viewed(store, report_id)
    except PersistenceFailed as e:
        logger.warning(f"Could not mark report {report_id} viewed: {e}")
    return HTMLResponse(content=row.get("report_html") or "")


@router.post("/reports/{report_id}/feedback")
async def submit_feedback(
    report_id: str,
    body: FeedbackRequest,
    store: RowStore = Depends(get_row_store),
) -> dict[str, Any]:
    _load(store, report_id)
    try:
        row = record_feedback(store, report_id, body.rating, body.comment)
    except PersistenceFailed as e:
        logger.error(f"Failed to record feedback for {report_id}: {e}")
        raise HTTPException(status_code=503, detail="Report storage unavailable") from e
    return {"status": "recorded", "feedback_id": row.get("id")}
