"""In-memory catalog of tools and implementation patterns.

Loaded once from a flat JSON document (``{tools, patterns, metadata}``) and
shared read-only across report runs.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from dateutil import parser as dateutil_parser

from app.core.logging import get_logger
from app.core.schemas_intelligence import (
    CapabilityLayer,
    Complexity,
    Momentum,
    Pattern,
    Segment,
    Tool,
)

logger = get_logger(__name__)

DEFAULT_DATA_PATH = Path(__file__).parent / "data" / "local_intelligence.json"

# smart_search weights per matched field
NAME_WEIGHT = 10
CATEGORY_WEIGHT = 8
SUBCATEGORY_WEIGHT = 8
DESCRIPTION_WEIGHT = 6
USE_CASE_WEIGHT = 7
BEST_FOR_WEIGHT = 6
INTEGRATION_WEIGHT = 4
TECH_STACK_WEIGHT = 3
SEGMENT_FIT_WEIGHT = 5
HEALTH_WEIGHT = 2
MOMENTUM_BONUS = 2


def _normalize(text: str) -> str:
    """Lowercase and treat hyphens/underscores as spaces so tags match prose."""
    return " ".join(text.lower().replace("-", " ").replace("_", " ").split())


def _segment_key(segment: Segment | str | None) -> str | None:
    if segment is None:
        return None
    return segment.value if isinstance(segment, Segment) else str(segment).lower()


class LocalIntelligenceStore:
    """Static tool/pattern catalog with deterministic lookups."""

    def __init__(
        self,
        tools: list[Tool],
        patterns: list[Pattern],
        metadata: dict[str, Any] | None = None,
    ):
        self._tools = list(tools)
        self._patterns = list(patterns)
        self.metadata = metadata or {}

    @classmethod
    def from_file(cls, path: str | Path | None = None) -> "LocalIntelligenceStore":
        """
        Load the catalog from a JSON seed file.

        Args:
            path: Seed file path (defaults to the bundled catalog)

        Returns:
            LocalIntelligenceStore

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the document is not ``{tools, patterns, metadata}`` shaped
        """
        data_path = Path(path) if path else DEFAULT_DATA_PATH
        with data_path.open(encoding="utf-8") as f:
            document = json.load(f)

        if not isinstance(document, dict) or "tools" not in document:
            raise ValueError(f"Malformed intelligence document: {data_path}")

        tools = [Tool.model_validate(row) for row in document.get("tools", [])]
        patterns = [Pattern.model_validate(row) for row in document.get("patterns", [])]

        logger.info(
            f"Loaded local intelligence: {len(tools)} tools, {len(patterns)} patterns",
            extra={"path": str(data_path)},
        )
        return cls(tools, patterns, document.get("metadata") or {})

    @property
    def tools(self) -> list[Tool]:
        return list(self._tools)

    @property
    def patterns(self) -> list[Pattern]:
        return list(self._patterns)

    def last_updated(self) -> datetime | None:
        """Catalog timestamp from metadata, or the newest ``last_validated``."""
        raw = self.metadata.get("last_updated")
        if raw:
            try:
                parsed = dateutil_parser.isoparse(raw)
                return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
            except (ValueError, TypeError):
                logger.warning(f"Unparseable catalog timestamp: {raw}")

        validated = [t.last_validated for t in self._tools if t.last_validated]
        return max(validated) if validated else None

    # =========================================================================
    # Lookups
    # =========================================================================

    def lookup_by_use_case(self, tag: str, limit: int = 10) -> list[Tool]:
        """Tools whose use cases, description or best-for mention ``tag``, healthiest first."""
        needle = _normalize(tag or "")
        if not needle:
            return []

        matches = [
            t
            for t in self._tools
            if any(needle in _normalize(uc) for uc in t.use_cases)
            or needle in _normalize(t.description)
            or needle in _normalize(t.best_for)
        ]
        matches.sort(key=lambda t: t.health_score, reverse=True)
        return matches[:limit]

    def lookup_by_category(self, category: str, limit: int = 10) -> list[Tool]:
        needle = _normalize(category or "")
        if not needle:
            return []

        matches = [
            t
            for t in self._tools
            if needle in _normalize(t.category) or needle in _normalize(t.subcategory)
        ]
        return matches[:limit]

    def lookup_by_layer(self, layer: CapabilityLayer | str, limit: int = 10) -> list[Tool]:
        value = layer.value if isinstance(layer, CapabilityLayer) else str(layer)
        matches = [
            t for t in self._tools if t.capability_layer and t.capability_layer.value == value
        ]
        return matches[:limit]

    def lookup_by_segment_fit(
        self, segment: Segment | str, min_score: float = 0.6, limit: int = 10
    ) -> list[Tool]:
        """Tools fitting ``segment`` at or above ``min_score``, best fit first."""
        key = _segment_key(segment)
        matches = [t for t in self._tools if t.fit_for(key) >= min_score]
        matches.sort(key=lambda t: t.fit_for(key), reverse=True)
        return matches[:limit]

    def patterns_by_complexity(self, complexity: Complexity | str) -> list[Pattern]:
        value = complexity.value if isinstance(complexity, Complexity) else str(complexity)
        return [p for p in self._patterns if p.complexity.value == value]

    def patterns_by_segment(
        self, segment: Segment | str, min_score: float = 0.6
    ) -> list[Pattern]:
        key = _segment_key(segment)
        matches = [p for p in self._patterns if p.segment_fit.get(key, 0.0) >= min_score]
        matches.sort(key=lambda p: p.segment_fit.get(key, 0.0), reverse=True)
        return matches

    # =========================================================================
    # Smart search
    # =========================================================================

    def score_tool(self, tool: Tool, query: str, segment: Segment | str | None = None) -> float:
        """
        Weighted partial-match score of ``tool`` against a normalized query.

        Args:
            tool: Catalog entry
            query: Query already passed through ``_normalize``
            segment: Optional segment for the fit bonus

        Returns:
            Total score (may be negative for declining tools with no hits)
        """
        score = 0.0

        if query in _normalize(tool.name):
            score += NAME_WEIGHT
        if query in _normalize(tool.category):
            score += CATEGORY_WEIGHT
        if query in _normalize(tool.subcategory):
            score += SUBCATEGORY_WEIGHT
        if query in _normalize(tool.description):
            score += DESCRIPTION_WEIGHT
        if any(query in _normalize(uc) for uc in tool.use_cases):
            score += USE_CASE_WEIGHT
        if query in _normalize(tool.best_for):
            score += BEST_FOR_WEIGHT
        if any(query in _normalize(i) for i in tool.integrations):
            score += INTEGRATION_WEIGHT
        if any(query in _normalize(s) for s in tool.tech_stack):
            score += TECH_STACK_WEIGHT

        key = _segment_key(segment)
        if key:
            score += tool.fit_for(key) * SEGMENT_FIT_WEIGHT

        score += tool.health_score * HEALTH_WEIGHT
        if tool.momentum == Momentum.RISING:
            score += MOMENTUM_BONUS
        elif tool.momentum == Momentum.DECLINING:
            score -= MOMENTUM_BONUS

        return score

    def smart_search(
        self, query: str, segment: Segment | str | None = None, limit: int = 10
    ) -> list[Tool]:
        """
        Rank tools against a free-text query.

        Deterministic: ties keep catalog order. A blank or non-string query
        yields an empty list.

        Args:
            query: Free-text query
            segment: Optional segment code for the fit bonus
            limit: Max results

        Returns:
            Tools with a positive score, highest first
        """
        if not isinstance(query, str) or limit <= 0:
            return []
        needle = _normalize(query)
        if not needle:
            return []

        scored = [(self.score_tool(t, needle, segment), t) for t in self._tools]
        ranked = [(score, t) for score, t in scored if score > 0]
        ranked.sort(key=lambda pair: pair[0], reverse=True)
        return [t for _, t in ranked[:limit]]

    def benchmarks_for(self, segment: Segment | str | None) -> dict[str, str]:
        """Catalog benchmarks for a segment, empty when none are recorded."""
        key = _segment_key(segment)
        table = self.metadata.get("benchmarks") or {}
        return dict(table.get(key) or {}) if key else {}

    def intelligence_for_challenge(
        self,
        challenge: str,
        segment: Segment | str | None = None,
        complexity: Complexity | str | None = None,
    ) -> dict[str, list]:
        """Top tools plus matching patterns for one declared challenge."""
        tools = self.smart_search(challenge, segment, limit=5)
        patterns = self.patterns_by_complexity(complexity) if complexity is not None else []
        if not patterns:
            patterns = self.patterns_by_segment(segment) if segment is not None else self.patterns
        return {"tools": tools, "patterns": patterns}

    def stats(self) -> dict[str, Any]:
        """Catalog counts for the intelligence status endpoint."""
        categories = sorted({t.category for t in self._tools if t.category})
        layers = sorted({t.capability_layer.value for t in self._tools if t.capability_layer})
        use_cases = sorted({uc for t in self._tools for uc in t.use_cases})
        segments = sorted({s for t in self._tools for s in t.segment_fit})
        complexities = sorted({p.complexity.value for p in self._patterns})
        last_updated = self.last_updated()

        return {
            "total_tools": len(self._tools),
            "total_patterns": len(self._patterns),
            "categories": categories,
            "capability_layers": layers,
            "use_cases": use_cases,
            "segments": segments,
            "complexities": complexities,
            "last_updated": last_updated.isoformat() if last_updated else None,
        }
