"""Tool retrieval with an ordered chain of strategies.

Vector similarity search is tried first, then keyword scoring over the local
catalog, then the curated fallback tables. Each strategy exposes the same
``attempt()`` contract and the first one that returns tools wins; results
from different tiers are never merged within one call.
"""

import asyncio
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any

from openai import OpenAI
from supabase import Client

from app.core.config import Settings
from app.core.embeddings import embed_texts_async
from app.core.errors import (
    BackendQueryFailed,
    ConfigurationError,
    EmbeddingGenerationFailed,
    ProviderCallFailed,
)
from app.core.logging import get_logger
from app.core.rate_limiter import RateLimiter
from app.core.schemas_intelligence import (
    BudgetBand,
    CapabilityLayer,
    DataSource,
    Momentum,
    Pricing,
    Segment,
    Tool,
    ToolMatch,
)
from app.intelligence.fallback import FallbackIntelligenceProvider, map_challenge_to_use_case
from app.intelligence.local_store import LocalIntelligenceStore

logger = get_logger(__name__)

LOCAL_MATCH_SIMILARITY = 0.8


@dataclass
class SearchOptions:
    """Filters passed to every strategy."""

    segment_filter: Segment | str | None = None
    challenge_filter: str | None = None
    budget_filter: BudgetBand | str | None = None
    match_threshold: float = 0.6
    match_count: int = 10

    @property
    def segment_key(self) -> str | None:
        if self.segment_filter is None:
            return None
        if isinstance(self.segment_filter, Segment):
            return self.segment_filter.value
        return str(self.segment_filter).lower()

    @property
    def budget_key(self) -> str | None:
        if self.budget_filter is None:
            return None
        if isinstance(self.budget_filter, BudgetBand):
            return self.budget_filter.value
        return str(self.budget_filter).lower()


@dataclass
class StrategyResult:
    """Outcome of one strategy attempt."""

    strategy: str
    source: DataSource
    matches: list[ToolMatch] = field(default_factory=list)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.matches)


@dataclass
class RetrievalResult:
    """Winning strategy's matches plus the trail of attempts."""

    matches: list[ToolMatch]
    source: DataSource | None
    attempts: list[StrategyResult] = field(default_factory=list)

    @property
    def tools(self) -> list[Tool]:
        return [m.tool for m in self.matches]


# =============================================================================
# Row conversion
# =============================================================================

_PRICE_NUMBER = re.compile(r"\d+")


def budget_bands_from_pricing(details: str) -> list[BudgetBand]:
    """
    Derive budget bands from a pricing string.

    "free" anywhere adds the free band; the lowest positive number picks
    low (<100), medium (<1000) or high. Defaults to medium.
    """
    text = (details or "").lower()
    bands: list[BudgetBand] = []

    if "free" in text:
        bands.append(BudgetBand.FREE)

    prices = [int(n) for n in _PRICE_NUMBER.findall(text) if int(n) > 0]
    if prices:
        lowest = min(prices)
        if lowest < 100:
            bands.append(BudgetBand.LOW)
        elif lowest < 1000:
            bands.append(BudgetBand.MEDIUM)
        else:
            bands.append(BudgetBand.HIGH)

    return bands or [BudgetBand.MEDIUM]


_DESCRIPTION_FIELDS = {
    "category": "Category",
    "description": "Description",
    "best_for": "Best For",
    "pricing": "Pricing",
    "use_cases": "Use Cases",
    "integrations": "Integrations",
    "tech_stack": "Technical Stack",
    "layer": "GABI Layer",
    "trending_context": "Trending Context",
    "why_now": "Why Now",
}

_HEALTH_LINE = re.compile(r"Health Score:\s*([\d.]+)(?:/1\.0)?(?:\s*\(Momentum:\s*(\w+)\))?")


def _parse_description_full(text: str) -> dict[str, str]:
    """Split the ``Label: value`` lines stored in ``description_full``."""
    parsed: dict[str, str] = {}
    for line in (text or "").splitlines():
        label, sep, value = line.partition(":")
        if not sep:
            continue
        for key, expected in _DESCRIPTION_FIELDS.items():
            if label.strip().lower() == expected.lower():
                parsed[key] = value.strip()
    return parsed


def _split_list(value: str | None) -> list[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


def _clamp_fit(raw: Any) -> dict[str, float]:
    if not isinstance(raw, dict):
        return {}
    fit = {}
    for key, value in raw.items():
        try:
            fit[str(key)] = min(1.0, max(0.0, float(value)))
        except (TypeError, ValueError):
            continue
    return fit


def tool_from_row(row: dict[str, Any]) -> Tool:
    """Build a Tool from a ``tools_minimal`` row."""
    fields = _parse_description_full(row.get("description_full", ""))

    layer = None
    if fields.get("layer"):
        try:
            layer = CapabilityLayer(fields["layer"])
        except ValueError:
            layer = None

    health = 0.5
    momentum = Momentum.STABLE
    health_match = _HEALTH_LINE.search(row.get("description_full", "") or "")
    if health_match:
        health = min(1.0, max(0.0, float(health_match.group(1))))
        if health_match.group(2):
            try:
                momentum = Momentum(health_match.group(2).lower())
            except ValueError:
                momentum = Momentum.STABLE

    bands = []
    for band in row.get("budget_range") or []:
        try:
            bands.append(BudgetBand(str(band).lower()))
        except ValueError:
            continue

    pricing_details = fields.get("pricing", "")
    category = fields.get("category", "").split(" ", 1)

    return Tool(
        name=row["name"],
        slug=str(row.get("id") or ""),
        category=category[0] if category else "",
        subcategory=category[1].strip() if len(category) > 1 else "",
        description=fields.get("description", ""),
        best_for=fields.get("best_for", ""),
        pricing=Pricing(details=pricing_details),
        integrations=_split_list(fields.get("integrations")),
        use_cases=_split_list(fields.get("use_cases")),
        tech_stack=_split_list(fields.get("tech_stack")),
        segment_fit=_clamp_fit(row.get("icp_fit")),
        challenge_fit=_clamp_fit(row.get("challenge_fit")),
        budget_bands=bands or budget_bands_from_pricing(pricing_details),
        health_score=health,
        momentum=momentum,
        capability_layer=layer,
        trending_context=fields.get("trending_context", ""),
        why_now=fields.get("why_now", ""),
        last_validated=row.get("last_validated"),
    )


# =============================================================================
# Strategies
# =============================================================================


class RetrievalStrategy(ABC):
    """One tier of the retrieval chain."""

    name: str = "strategy"
    source: DataSource = DataSource.FALLBACK

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether this tier has what it needs to run."""

    @abstractmethod
    async def attempt(self, query: str, options: SearchOptions) -> StrategyResult:
        """Run once. Never raises; failures go in ``StrategyResult.error``."""

    def _failed(self, error: Exception) -> StrategyResult:
        return StrategyResult(strategy=self.name, source=self.source, error=error)


class VectorSearchStrategy(RetrievalStrategy):
    """Embedding similarity search through a Supabase RPC."""

    name = "vector-search"
    source = DataSource.VECTOR_SEARCH

    def __init__(
        self,
        openai_client: OpenAI | None,
        supabase: Client | None,
        settings: Settings,
        limiter: RateLimiter | None = None,
    ):
        self.openai_client = openai_client
        self.supabase = supabase
        self.settings = settings
        self.limiter = limiter

    def is_configured(self) -> bool:
        return self.openai_client is not None and self.supabase is not None

    async def _query_backend(self, embedding: list[float], options: SearchOptions) -> list[dict]:
        params = {
            "query_embedding": embedding,
            "icp_filter": options.segment_key,
            "challenge_filter": options.challenge_filter,
            "budget_filter": options.budget_key,
            "match_threshold": options.match_threshold,
            "match_count": options.match_count,
        }
        try:
            response = await asyncio.to_thread(
                lambda: self.supabase.rpc(self.settings.VECTOR_SEARCH_RPC, params).execute()
            )
        except Exception as e:
            raise BackendQueryFailed(str(e), provider="supabase") from e
        return response.data or []

    async def attempt(self, query: str, options: SearchOptions) -> StrategyResult:
        if not self.is_configured():
            return self._failed(ConfigurationError("Vector search needs OpenAI and Supabase"))

        try:
            if self.limiter is not None:
                await self.limiter.acquire("openai")
            embeddings = await embed_texts_async(self.openai_client, [query], self.settings)
            if not embeddings:
                raise EmbeddingGenerationFailed("No embedding returned", provider="openai")
            rows = await self._query_backend(embeddings[0], options)
        except ProviderCallFailed as e:
            logger.warning(f"Vector search failed, degrading: {e}", extra={"strategy": self.name})
            return self._failed(e)

        matches = []
        for row in rows:
            try:
                similarity = min(1.0, max(0.0, float(row.get("similarity") or 0.0)))
                matches.append(ToolMatch(tool=tool_from_row(row), similarity=similarity))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed vector row: {e}")

        logger.info(f"Vector search returned {len(matches)} tools", extra={"query": query})
        return StrategyResult(strategy=self.name, source=self.source, matches=matches)


class LocalKeywordStrategy(RetrievalStrategy):
    """Weighted keyword scoring over the local catalog."""

    name = "local-keyword"
    source = DataSource.LOCAL_KEYWORD

    def __init__(self, store: LocalIntelligenceStore | None):
        self.store = store

    def is_configured(self) -> bool:
        return self.store is not None

    async def attempt(self, query: str, options: SearchOptions) -> StrategyResult:
        if self.store is None:
            return self._failed(ConfigurationError("No local intelligence store loaded"))

        search_text = options.challenge_filter or query
        tools = self.store.smart_search(search_text, options.segment_key, options.match_count)

        budget = options.budget_key
        if budget:
            tools = [
                t for t in tools if not t.budget_bands or budget in {b.value for b in t.budget_bands}
            ]

        matches = [ToolMatch(tool=t, similarity=LOCAL_MATCH_SIMILARITY) for t in tools]
        logger.info(
            f"Local keyword search returned {len(matches)} tools",
            extra={"query": search_text},
        )
        return StrategyResult(strategy=self.name, source=self.source, matches=matches)


class FallbackStrategy(RetrievalStrategy):
    """Curated tools for the challenge's use case."""

    name = "fallback"
    source = DataSource.FALLBACK

    def __init__(self, provider: FallbackIntelligenceProvider | None):
        self.provider = provider

    def is_configured(self) -> bool:
        return self.provider is not None

    async def attempt(self, query: str, options: SearchOptions) -> StrategyResult:
        if self.provider is None:
            return self._failed(ConfigurationError("No fallback provider"))

        use_case = map_challenge_to_use_case(options.challenge_filter or query)
        tools = self.provider.tools_for(use_case, options.segment_filter)
        key = options.segment_key
        matches = [
            ToolMatch(
                tool=t,
                similarity=t.fit_for(key) if key else 0.5,
                reason=t.best_for or "Good fit for your requirements",
            )
            for t in tools[: options.match_count]
        ]
        return StrategyResult(strategy=self.name, source=self.source, matches=matches)


# =============================================================================
# Retriever
# =============================================================================


class ToolRetriever:
    """Runs the strategy chain in order until one returns tools."""

    def __init__(self, strategies: list[RetrievalStrategy], defaults: SearchOptions | None = None):
        self.strategies = list(strategies)
        self.defaults = defaults or SearchOptions()

    @property
    def strategy_names(self) -> list[str]:
        return [s.name for s in self.strategies]

    def options(self, **filters: Any) -> SearchOptions:
        """Default threshold and count with the given filters applied."""
        return replace(self.defaults, **filters)

    async def search(self, query: str, options: SearchOptions | None = None) -> RetrievalResult:
        """
        Search for tools, degrading one tier at a time.

        Args:
            query: Free-text query
            options: Filters; threshold and count pass through to the backend

        Returns:
            RetrievalResult from the first strategy that produced tools, or an
            empty result if every configured strategy came back empty

        Raises:
            ConfigurationError: If no strategy is configured at all
        """
        options = options or self.defaults
        configured = [s for s in self.strategies if s.is_configured()]
        if not configured:
            raise ConfigurationError("No retrieval provider or fallback data is configured")

        attempts: list[StrategyResult] = []
        for strategy in configured:
            result = await strategy.attempt(query, options)
            attempts.append(result)
            if result.ok:
                return RetrievalResult(matches=result.matches, source=result.source, attempts=attempts)
            logger.info(
                f"Strategy {strategy.name} produced no tools, trying next tier",
                extra={"strategy": strategy.name, "failed": result.error is not None},
            )

        return RetrievalResult(matches=[], source=None, attempts=attempts)

    async def search_tools(self, query: str, options: SearchOptions | None = None) -> list[Tool]:
        result = await self.search(query, options)
        return result.tools


def build_tool_retriever(
    settings: Settings,
    openai_client: OpenAI | None,
    supabase: Client | None,
    store: LocalIntelligenceStore | None,
    fallback: FallbackIntelligenceProvider | None,
    limiter: RateLimiter | None = None,
) -> ToolRetriever:
    """Standard chain: vector search, then local keywords, then curated fallback."""
    return ToolRetriever(
        [
            VectorSearchStrategy(openai_client, supabase, settings, limiter),
            LocalKeywordStrategy(store),
            FallbackStrategy(fallback),
        ],
        defaults=SearchOptions(
            match_threshold=settings.MATCH_THRESHOLD, match_count=settings.MATCH_COUNT
        ),
    )
