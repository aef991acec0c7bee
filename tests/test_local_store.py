"""Tests for the local tool/pattern catalog."""

import json

import pytest

from app.core.schemas_intelligence import (
    CapabilityLayer,
    Complexity,
    Momentum,
    Pattern,
    Segment,
    Tool,
)
from app.intelligence.local_store import LocalIntelligenceStore


# ============================================================================
# Loading
# ============================================================================


class TestLoading:
    def test_bundled_catalog_loads(self, local_store):
        assert len(local_store.tools) >= 10
        assert local_store.patterns

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            LocalIntelligenceStore.from_file(tmp_path / "missing.json")

    def test_malformed_document(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps([{"name": "x"}]))

        with pytest.raises(ValueError, match="Malformed"):
            LocalIntelligenceStore.from_file(path)

    def test_last_updated_from_metadata(self, local_store):
        last_updated = local_store.last_updated()
        assert last_updated is not None
        assert last_updated.tzinfo is not None

    def test_last_updated_falls_back_to_validation_dates(self):
        store = LocalIntelligenceStore(
            [Tool(name="A", last_validated="2024-10-01T00:00:00Z")], [], metadata={}
        )
        assert store.last_updated().isoformat().startswith("2024-10-01")


# ============================================================================
# Smart search
# ============================================================================


class TestSmartSearch:
    def test_workflow_automation_for_itsm_ranks_n8n_first(self, local_store):
        results = local_store.smart_search("workflow automation", "itsm")

        assert results[0].name == "n8n"

    def test_hyphenated_tags_match_prose_query(self, local_store):
        results = local_store.smart_search("lead qualification", Segment.AGENCY, limit=5)
        names = [t.name for t in results]

        assert "GPT-4o-mini" in names
        assert "Clay.com" in names

    def test_deterministic(self, local_store):
        first = [t.name for t in local_store.smart_search("automation", "saas")]
        second = [t.name for t in local_store.smart_search("automation", "saas")]

        assert first == second

    def test_limit_respected(self, local_store):
        assert len(local_store.smart_search("automation", limit=2)) <= 2

    def test_blank_and_non_string_queries(self, local_store):
        assert local_store.smart_search("") == []
        assert local_store.smart_search("   ") == []
        assert local_store.smart_search(None) == []
        assert local_store.smart_search("automation", limit=0) == []

    def test_scores_sorted_descending(self, local_store):
        query = "automation"
        results = local_store.smart_search(query, "itsm")
        scores = [local_store.score_tool(t, query, "itsm") for t in results]

        assert scores == sorted(scores, reverse=True)
        assert all(score > 0 for score in scores)

    def test_declining_momentum_penalized(self):
        rising = Tool(name="Rising", description="crm", momentum=Momentum.RISING)
        declining = Tool(name="Declining", description="crm", momentum=Momentum.DECLINING)
        store = LocalIntelligenceStore([declining, rising], [])

        assert [t.name for t in store.smart_search("crm")] == ["Rising", "Declining"]


# ============================================================================
# Lookups
# ============================================================================


class TestLookups:
    def test_lookup_by_use_case(self, local_store):
        tools = local_store.lookup_by_use_case("vector-search")
        names = {t.name for t in tools}

        assert {"Supabase", "Pinecone"} <= names
        healths = [t.health_score for t in tools]
        assert healths == sorted(healths, reverse=True)

    def test_lookup_by_category(self, local_store):
        assert {t.name for t in local_store.lookup_by_category("automation")} >= {"n8n", "Zapier"}

    def test_lookup_by_layer(self, local_store):
        tools = local_store.lookup_by_layer(CapabilityLayer.CONVERSATIONAL_INTERFACE)
        assert tools
        assert all(t.capability_layer == CapabilityLayer.CONVERSATIONAL_INTERFACE for t in tools)

    def test_lookup_by_segment_fit(self, local_store):
        tools = local_store.lookup_by_segment_fit("saas", min_score=0.9)
        fits = [t.fit_for("saas") for t in tools]

        assert fits and min(fits) >= 0.9
        assert fits == sorted(fits, reverse=True)

    def test_patterns_by_complexity(self, local_store):
        for pattern in local_store.patterns_by_complexity(Complexity.SIMPLE):
            assert pattern.complexity == Complexity.SIMPLE

    def test_benchmarks_for(self, local_store):
        assert "lead_conversion" in local_store.benchmarks_for(Segment.ITSM)
        assert local_store.benchmarks_for(None) == {}
        assert local_store.benchmarks_for("unknown") == {}

    def test_intelligence_for_challenge(self, local_store):
        result = local_store.intelligence_for_challenge("workflow automation", "itsm")

        assert result["tools"][0].name == "n8n"
        assert "patterns" in result

    def test_intelligence_for_challenge_uses_segment_patterns_without_complexity_match(self):
        router = Pattern(
            name="Lead Router", complexity=Complexity.MODERATE, segment_fit={"itsm": 0.8}
        )
        store = LocalIntelligenceStore([Tool(name="n8n")], [router])

        result = store.intelligence_for_challenge("automation", "itsm", Complexity.COMPLEX)

        assert [p.name for p in result["patterns"]] == ["Lead Router"]
        moderate = store.intelligence_for_challenge("automation", "itsm", "moderate")
        assert moderate["patterns"] == [router]

    def test_stats(self, local_store):
        stats = local_store.stats()

        assert stats["total_tools"] == len(local_store.tools)
        assert stats["total_patterns"] == len(local_store.patterns)
        assert "automation" in stats["categories"]
        assert stats["last_updated"].startswith("2024-11-18")
