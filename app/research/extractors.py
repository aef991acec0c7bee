"""Field extractors for free-text research output.

Each extractor pulls one field out of provider prose using fixed regular
expressions and falls back to a documented default when nothing matches.
The registry maps field names to extractors so any one of them can be
replaced (for example by a structured-output parser) without touching the
orchestrator.
"""

import re
from abc import ABC, abstractmethod
from typing import Any

from app.core.errors import ExtractionError
from app.core.schemas_intelligence import CapabilityLayer
from app.core.schemas_research import (
    BenchmarkFinding,
    CaseStudy,
    CompanyIntelligence,
    ExtractedTool,
    ImplementationExample,
    MarketTrend,
)

MAX_IMPLEMENTATIONS = 5
MAX_BENCHMARKS = 8
MAX_CASE_STUDIES = 3
MAX_MARKET_TRENDS = 5
MAX_PROMISES = 5

_LAYER_NAMES = "|".join(layer.value for layer in CapabilityLayer)


class BaseExtractor(ABC):
    """One field pulled out of research text."""

    field_name: str = ""

    @abstractmethod
    def extract(self, text: str) -> Any:
        """Extract the field from ``text``.

        Args:
            text: Provider output, or a block of it

        Returns:
            The extracted value, or the field default when nothing matches

        Raises:
            ExtractionError: If ``text`` is not a string
        """
        pass

    def _require_text(self, text: Any) -> str:
        if not isinstance(text, str):
            raise ExtractionError(
                f"Expected text, got {type(text).__name__}", extractor=self.field_name
            )
        return text


# =============================================================================
# Tool-level fields
# =============================================================================


class PricingExtractor(BaseExtractor):
    field_name = "pricing"
    default = "Contact for pricing"

    _pattern = re.compile(
        r"\$([0-9,]+(?:[-–]\$?[0-9,]+)?(?:/month|/year|/user)?)", re.IGNORECASE
    )

    def extract(self, text: str) -> str:
        found = self._pattern.search(self._require_text(text))
        return found.group(0) if found else self.default


class CapabilityLayerExtractor(BaseExtractor):
    """Keyword heuristic; the first layer whose keywords appear wins."""

    field_name = "capability_layer"

    _rules = [
        (
            CapabilityLayer.CONTEXT_ORCHESTRATION,
            re.compile(r"Context Orchestration|business logic|decision|workflow", re.IGNORECASE),
        ),
        (
            CapabilityLayer.KNOWLEDGE_RETRIEVAL,
            re.compile(r"Knowledge Retrieval|search|database|information", re.IGNORECASE),
        ),
        (
            CapabilityLayer.FUNCTION_EXECUTION,
            re.compile(r"Function Execution|automation|integration|API", re.IGNORECASE),
        ),
        (
            CapabilityLayer.CONVERSATIONAL_INTERFACE,
            re.compile(
                r"Conversational Interface|chatbot|voice|natural language", re.IGNORECASE
            ),
        ),
    ]

    def extract(self, text: str) -> CapabilityLayer:
        text = self._require_text(text)
        for layer, pattern in self._rules:
            if pattern.search(text):
                return layer
        return CapabilityLayer.FUNCTION_EXECUTION


class IntegrationExtractor(BaseExtractor):
    field_name = "integration"
    default = "API available"

    _pattern = re.compile(r"integrat[^.]*?([^.]+\.)", re.IGNORECASE)

    def extract(self, text: str) -> str:
        found = self._pattern.search(self._require_text(text))
        return found.group(1).strip() if found else self.default


class ReasonExtractor(BaseExtractor):
    field_name = "reason"
    default = "Suitable for the identified use case"

    _pattern = re.compile(r"(?:because|since|addresses|suitable)[^.]*?([^.]+\.)", re.IGNORECASE)

    def extract(self, text: str) -> str:
        found = self._pattern.search(self._require_text(text))
        return found.group(1).strip() if found else self.default


class ToolBlockExtractor(BaseExtractor):
    """Finds tool blocks and parses each with the tool-level extractors."""

    field_name = "tools"

    _layer_block = re.compile(
        rf"(?:{_LAYER_NAMES}).*?(?=(?:{_LAYER_NAMES})|$)", re.IGNORECASE | re.DOTALL
    )
    _bold_mention = re.compile(
        r"\*\*[^*]+\*\*[^*]*?(?:addresses the|GABI layer|pricing|cost).*?(?=\*\*|$)",
        re.IGNORECASE | re.DOTALL,
    )
    _name = re.compile(r"\*\*([^*\n]{2,60})\*\*")

    def __init__(
        self,
        pricing: PricingExtractor | None = None,
        layer: CapabilityLayerExtractor | None = None,
        integration: IntegrationExtractor | None = None,
        reason: ReasonExtractor | None = None,
    ):
        self.pricing = pricing or PricingExtractor()
        self.layer = layer or CapabilityLayerExtractor()
        self.integration = integration or IntegrationExtractor()
        self.reason = reason or ReasonExtractor()

    def blocks(self, text: str) -> list[str]:
        text = self._require_text(text)
        found = [m.group(0) for m in self._layer_block.finditer(text)]
        found += [m.group(0) for m in self._bold_mention.finditer(text)]
        return found

    def parse_block(self, block: str) -> ExtractedTool | None:
        named = self._name.search(block)
        if not named:
            return None

        name = named.group(1).strip().rstrip(":").strip()
        if not name or "layer" in name.lower() or name in {layer.value for layer in CapabilityLayer}:
            return None

        return ExtractedTool(
            name=name,
            capability_layer=self.layer.extract(block),
            pricing=self.pricing.extract(block),
            integration=self.integration.extract(block),
            reason=self.reason.extract(block),
        )

    def extract(self, text: str) -> list[ExtractedTool]:
        tools: list[ExtractedTool] = []
        seen: set[str] = set()
        for block in self.blocks(text):
            tool = self.parse_block(block)
            if tool and tool.name.lower() not in seen:
                seen.add(tool.name.lower())
                tools.append(tool)
        return tools


# =============================================================================
# Report-level fields
# =============================================================================


class ImplementationExtractor(BaseExtractor):
    field_name = "implementations"

    _labeled = re.compile(
        r"(?:Implementation|Example|Case):\s*([^\n]+)\s*(?:Timeline|Duration):\s*([^\n]+)",
        re.IGNORECASE,
    )
    _narrative = re.compile(
        r"(?:Company|Organization)\s+(\w+)\s+(?:implemented|deployed|built)[^.]+in\s+(\d+\s+\w+)",
        re.IGNORECASE,
    )

    def extract(self, text: str) -> list[ImplementationExample]:
        text = self._require_text(text)
        found = []
        for pattern in (self._labeled, self._narrative):
            for match in pattern.finditer(text):
                found.append(
                    ImplementationExample(
                        description=match.group(1).strip() or "Implementation example",
                        timeline=match.group(2).strip() or "Variable",
                    )
                )
        return found[:MAX_IMPLEMENTATIONS]


class BenchmarkExtractor(BaseExtractor):
    field_name = "benchmarks"

    _metric = re.compile(
        r"((?:conversion|efficiency|productivity|cycle)\s*(?:rate|time)?)\s*:\s*(\d+%?)",
        re.IGNORECASE,
    )
    _labeled = re.compile(r"(industry average|benchmark|standard):\s*([^\n]+)", re.IGNORECASE)

    def extract(self, text: str) -> list[BenchmarkFinding]:
        text = self._require_text(text)
        found = []
        for pattern in (self._metric, self._labeled):
            for match in pattern.finditer(text):
                found.append(
                    BenchmarkFinding(
                        metric=match.group(1).strip().capitalize(),
                        value=match.group(2).strip(),
                    )
                )
        return found[:MAX_BENCHMARKS]


class CaseStudyExtractor(BaseExtractor):
    """Splits on case-study markers and reads labelled lines from each section."""

    field_name = "case_studies"
    min_section_chars = 20

    _marker = re.compile(r"case study|example|success story", re.IGNORECASE)
    _bold = re.compile(r"\*\*([^*\n]+)\*\*")
    _proper_noun = re.compile(r"\b([A-Z][\w&.]*(?:\s+[A-Z][\w&.]*){0,3})")
    _challenge = re.compile(r"(?:challenge|problem)\s*:\s*([^\n.]+)", re.IGNORECASE)
    _solution = re.compile(r"(?:solution|implemented|deployed)\s*:?\s*([^\n.]+)", re.IGNORECASE)
    _result = re.compile(
        r"(?:result|outcome|achieved|increased|reduced)\w*\s*:?\s*([^\n.]+)", re.IGNORECASE
    )

    def _company(self, section: str) -> str:
        for pattern in (self._bold, self._proper_noun):
            found = pattern.search(section)
            if found:
                return found.group(1).strip(" :")
        return "Company from research"

    @staticmethod
    def _first(pattern: re.Pattern, section: str) -> str:
        found = pattern.search(section)
        return found.group(1).strip() if found else ""

    def extract(self, text: str) -> list[CaseStudy]:
        text = self._require_text(text)
        sections = self._marker.split(text)[1 : MAX_CASE_STUDIES + 1]

        studies = []
        for section in sections:
            section = section.strip(" :-*#\n")
            if len(section) < self.min_section_chars:
                continue
            solution = self._first(self._solution, section)
            if not solution:
                solution = section.split(".")[0].strip()[:160]
            studies.append(
                CaseStudy(
                    company=self._company(section),
                    challenge=self._first(self._challenge, section),
                    solution=solution,
                    result=self._first(self._result, section),
                )
            )
        return studies


class MarketContextExtractor(BaseExtractor):
    field_name = "market_context"

    _labeled = re.compile(r"(?:trend|adoption|growth):\s*([^\n]+)", re.IGNORECASE)
    _share = re.compile(
        r"(\d+%)\s+of\s+(?:companies|organizations)\s+(?:are|have)\s+([^\n]+)", re.IGNORECASE
    )

    def extract(self, text: str) -> list[MarketTrend]:
        text = self._require_text(text)
        found = [MarketTrend(trend=m.group(1).strip()) for m in self._labeled.finditer(text)]
        found += [
            MarketTrend(trend=m.group(2).strip(), adoption=m.group(1))
            for m in self._share.finditer(text)
        ]
        return found[:MAX_MARKET_TRENDS]


class CompanyIntelligenceExtractor(BaseExtractor):
    field_name = "company"

    _profile = [
        re.compile(r"(?:about|profile|company):\s*[^.]+\.", re.IGNORECASE),
        re.compile(r"is\s+a\s+[^.]+\.", re.IGNORECASE),
        re.compile(r"founded\s+in\s+\d{4}[^.]+\.", re.IGNORECASE),
        re.compile(r"specializes?\s+in\s+[^.]+\.", re.IGNORECASE),
    ]
    _website = [
        re.compile(r"website\s+[^.]+\.", re.IGNORECASE),
        re.compile(r"promises?\s+[^.]+\.", re.IGNORECASE),
        re.compile(r"advertises?\s+[^.]+\.", re.IGNORECASE),
        re.compile(r"positions?\s+[^.]+\.", re.IGNORECASE),
    ]
    _team_size = [
        re.compile(r"\d+\s*(?:-\s*\d+)?\s*employees?", re.IGNORECASE),
        re.compile(r"team\s+of\s+\d+", re.IGNORECASE),
        re.compile(r"\d+\s*people", re.IGNORECASE),
        re.compile(r"\d+\s*staff", re.IGNORECASE),
    ]
    _promises = [
        re.compile(r"promises?\s+to\s+([^.]+)", re.IGNORECASE),
        re.compile(r"offers?\s+([^.]+)", re.IGNORECASE),
        re.compile(r"delivers?\s+([^.]+)", re.IGNORECASE),
        re.compile(r"provides?\s+([^.]+)", re.IGNORECASE),
    ]
    _competitors = [
        re.compile(r"competitors?\s+in\s+[^.]+\.", re.IGNORECASE),
        re.compile(r"vs\s+competitors?\s+[^.]+\.", re.IGNORECASE),
        re.compile(r"compared\s+to\s+[^.]+\.", re.IGNORECASE),
    ]
    # Case-sensitive: a capitalized place name is the signal
    _location = [
        re.compile(r"in\s+[A-Z][a-z]+(?:,\s*[A-Z]{2})?\s+market"),
        re.compile(r"serving\s+[A-Z][a-z]+\s+area"),
        re.compile(r"located\s+in\s+[A-Z][a-z]+"),
    ]

    @staticmethod
    def _collect(patterns: list[re.Pattern], text: str, per_pattern: int | None = None) -> list[str]:
        found = []
        for pattern in patterns:
            matches = [m.group(0).strip() for m in pattern.finditer(text)]
            found.extend(matches[:per_pattern] if per_pattern else matches)
        return found

    @staticmethod
    def _first(patterns: list[re.Pattern], text: str) -> str | None:
        for pattern in patterns:
            found = pattern.search(text)
            if found:
                return found.group(0).strip()
        return None

    def extract(self, text: str) -> CompanyIntelligence:
        text = self._require_text(text)
        defaults = CompanyIntelligence()

        profile = self._collect(self._profile, text)[:3]
        website = self._collect(self._website, text, per_pattern=2)
        competitors = self._collect(self._competitors, text, per_pattern=2)

        promises = []
        for pattern in self._promises:
            for match in pattern.finditer(text):
                promise = match.group(1).strip()
                if promise and len(promise) < 100:
                    promises.append(promise)

        return CompanyIntelligence(
            profile=" ".join(profile) or defaults.profile,
            website_analysis=" ".join(website) or defaults.website_analysis,
            team_size=self._first(self._team_size, text) or defaults.team_size,
            website_promises=promises[:MAX_PROMISES],
            competitor_context=" ".join(competitors) or defaults.competitor_context,
            location_context=self._first(self._location, text) or defaults.location_context,
        )


# =============================================================================
# Registry
# =============================================================================


class ExtractorRegistry:
    """Field name to extractor mapping used by the research orchestrator."""

    def __init__(self, extractors: list[BaseExtractor] | None = None):
        self._extractors: dict[str, BaseExtractor] = {}
        for extractor in extractors or []:
            self.register(extractor)

    def register(self, extractor: BaseExtractor) -> None:
        """Register an extractor, replacing any existing one for its field."""
        self._extractors[extractor.field_name] = extractor

    def get(self, field_name: str) -> BaseExtractor:
        try:
            return self._extractors[field_name]
        except KeyError:
            raise ExtractionError(f"No extractor registered for '{field_name}'") from None

    def fields(self) -> list[str]:
        return list(self._extractors)

    def extract(self, field_name: str, text: str) -> Any:
        return self.get(field_name).extract(text)


def default_registry() -> ExtractorRegistry:
    """Registry with every regex extractor registered."""
    pricing = PricingExtractor()
    layer = CapabilityLayerExtractor()
    integration = IntegrationExtractor()
    reason = ReasonExtractor()

    return ExtractorRegistry(
        [
            pricing,
            layer,
            integration,
            reason,
            ToolBlockExtractor(pricing, layer, integration, reason),
            ImplementationExtractor(),
            BenchmarkExtractor(),
            CaseStudyExtractor(),
            MarketContextExtractor(),
            CompanyIntelligenceExtractor(),
        ]
    )
