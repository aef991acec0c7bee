"""Research orchestration: query planning, gap detection, external research.

Usage:
    from app.research import ResearchOrchestrator, build_research_orchestrator
"""

from app.research.engine import (
    ResearchOrchestrator,
    build_research_orchestrator,
    format_research_results,
    merge_tools,
)
from app.research.extractors import ExtractionError, ExtractorRegistry, default_registry
from app.research.planner import build_plan, identify_gaps

__all__ = [
    "ExtractionError",
    "ExtractorRegistry",
    "ResearchOrchestrator",
    "build_plan",
    "build_research_orchestrator",
    "default_registry",
    "format_research_results",
    "identify_gaps",
    "merge_tools",
]
