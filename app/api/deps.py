"""FastAPI dependencies resolving the process-wide components from ``app.state``."""

from fastapi import HTTPException, Request

from app.core.rate_limiter import RateLimiter
from app.core.report_pipeline import ReportPipeline
from app.db.row_store import RowStore


def get_pipeline(request: Request) -> ReportPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Report pipeline is not initialized")
    return pipeline


def get_row_store(request: Request) -> RowStore:
    return get_pipeline(request).row_store


def get_report_limiter(request: Request) -> RateLimiter:
    limiter = getattr(request.app.state, "report_limiter", None)
    if limiter is None:
        raise HTTPException(status_code=503, detail="Rate limiter is not initialized")
    return limiter


def client_key(request: Request) -> str:
    """Rate-limit key for the caller: forwarded address, then socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "anonymous"
