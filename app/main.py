"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api import router as api_router
from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.providers import build_service_handles
from app.core.rate_limiter import RateLimiter
from app.core.report_pipeline import build_report_pipeline

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build provider handles and the pipeline once per process."""
    settings = get_settings()
    handles = build_service_handles(settings)
    app.state.handles = handles
    app.state.pipeline = build_report_pipeline(handles)
    app.state.report_limiter = RateLimiter(
        max_requests=settings.REPORT_MAX_REQUESTS,
        window_seconds=settings.REPORT_WINDOW_SECONDS,
    )
    logger.info(f"Revenue Intelligence Engine started ({settings.INTEL_ENGINE_ENV})")
    yield


app = FastAPI(
    title="Revenue Intelligence Engine",
    description="Assessment-driven tool retrieval, research and report synthesis",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint. Reports which providers are configured."""
    handles = getattr(request.app.state, "handles", None)
    providers = handles.available() if handles else {}
    return JSONResponse(content={"status": "ok", "providers": providers}, status_code=200)


# Include v1 API router
app.include_router(api_router, prefix="/v1", tags=["v1"])
