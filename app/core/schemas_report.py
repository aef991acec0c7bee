"""Pydantic models for synthesized reports."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.core.schemas_intelligence import DataSource

CURATED_NOTICE = "Based on curated industry analysis"


class SynthesisTier(str, Enum):
    """Which synthesis strategy produced the report."""

    DETERMINISTIC = "deterministic"
    LLM = "llm"
    STATIC = "static"


class ReportSection(BaseModel):
    """One report section. ``body`` is lightweight markdown."""

    model_config = ConfigDict(frozen=True)

    key: str
    heading: str
    body: str


class ReportProvenance(BaseModel):
    """Where the report's data came from, surfaced to the reader."""

    model_config = ConfigDict(frozen=True)

    tier: SynthesisTier
    data_source: DataSource = DataSource.FALLBACK
    using_fallback: bool = True
    quality_score: float = 0.0
    freshness: float = 0.0
    data_age_days: float | None = None
    research_provider: str | None = None
    research_weak: bool = False
    research_failed: bool = False
    notices: list[str] = Field(default_factory=list)

    @property
    def is_curated(self) -> bool:
        return self.using_fallback or self.tier == SynthesisTier.STATIC


class Report(BaseModel):
    model_config = ConfigDict(frozen=True)

    company_name: str
    title: str
    sections: list[ReportSection]
    metrics: dict[str, Any] = Field(default_factory=dict)
    provenance: ReportProvenance
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def headings(self) -> list[str]:
        return [section.heading for section in self.sections]

    def section(self, key: str) -> ReportSection | None:
        return next((s for s in self.sections if s.key == key), None)

    def to_markdown(self) -> str:
        parts = [f"# {self.title}"]
        parts += [f"## {s.heading}\n\n{s.body.strip()}" for s in self.sections]
        return "\n\n".join(parts)
