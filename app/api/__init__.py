"""API router for v1 endpoints."""

from fastapi import APIRouter

from app.api import assessments, intelligence, reports

router = APIRouter()

# Assessment submission and report generation
router.include_router(assessments.router, tags=["assessments"])

# Stored reports and feedback
router.include_router(reports.router, tags=["reports"])

# Tool catalog search and stats
router.include_router(intelligence.router, tags=["intelligence"])
