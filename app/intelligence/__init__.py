"""Tool and pattern intelligence: local catalog, curated fallback, retrieval chain.

Usage:
    from app.intelligence import LocalIntelligenceStore, FallbackIntelligenceProvider
"""

from app.intelligence.fallback import FallbackIntelligenceProvider
from app.intelligence.gatherer import IntelligenceGatherer
from app.intelligence.local_store import LocalIntelligenceStore
from app.intelligence.retriever import SearchOptions, ToolRetriever, build_tool_retriever

__all__ = [
    "FallbackIntelligenceProvider",
    "IntelligenceGatherer",
    "LocalIntelligenceStore",
    "SearchOptions",
    "ToolRetriever",
    "build_tool_retriever",
]
