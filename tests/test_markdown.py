"""Tests for splitting markdown reports into sections."""

from app.reports.markdown import parse_markdown_sections, section_key


class TestSectionKey:
    def test_slugifies(self):
        assert section_key("Return on Investment Analysis") == "return_on_investment_analysis"
        assert section_key("Market Context: AI Adoption") == "market_context_ai_adoption"

    def test_empty_heading(self):
        assert section_key("!!!") == "section"


class TestParseMarkdownSections:
    def test_splits_on_level_two_headers(self):
        text = """# Title

Intro that is dropped.

## Executive Summary

Summary text.

### Detail

Nested detail stays in the body.

## Next Steps

1. Call us
"""
        sections = parse_markdown_sections(text)

        assert [s.heading for s in sections] == ["Executive Summary", "Next Steps"]
        assert sections[0].key == "executive_summary"
        assert "### Detail" in sections[0].body
        assert "Intro" not in sections[0].body
        assert sections[1].body == "1. Call us"

    def test_skips_empty_sections(self):
        sections = parse_markdown_sections("## Empty\n\n## Full\n\nBody")

        assert [s.heading for s in sections] == ["Full"]

    def test_duplicate_headings_get_unique_keys(self):
        sections = parse_markdown_sections("## Notes\n\nOne\n\n## Notes\n\nTwo")

        assert len({s.key for s in sections}) == 2

    def test_trailing_hashes_stripped(self):
        sections = parse_markdown_sections("## Summary ##\n\nBody")

        assert sections[0].heading == "Summary"

    def test_no_headers(self):
        assert parse_markdown_sections("just prose") == []
        assert parse_markdown_sections("") == []
