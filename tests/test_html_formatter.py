"""Tests for HTML report rendering."""

from unittest.mock import patch

from app.core.schemas_report import (
    CURATED_NOTICE,
    Report,
    ReportProvenance,
    ReportSection,
    SynthesisTier,
)
from app.reports.html_formatter import (
    extract_section_headings,
    format_markdown,
    format_report,
    markdown_to_html,
    render_sections,
)


def _report(sections, **provenance) -> Report:
    return Report(
        company_name="Acme IT",
        title="Revenue Intelligence Report: Acme IT",
        sections=sections,
        provenance=ReportProvenance(tier=SynthesisTier.DETERMINISTIC, **provenance),
    )


# ============================================================================
# Markdown conversion
# ============================================================================


class TestMarkdownToHtml:
    def test_escapes_markup(self):
        out = markdown_to_html('<script>alert("x")</script> & more')

        assert "<script>" not in out
        assert "&lt;script&gt;" in out
        assert "&amp; more" in out

    def test_body_headers_never_h2(self):
        out = markdown_to_html("## Sub\n\n### Detail\n\n#### Deep")

        assert "<h2" not in out
        assert "<h3>Sub</h3>" in out
        assert "<h3>Detail</h3>" in out
        assert "<h4>Deep</h4>" in out

    def test_lists(self):
        out = markdown_to_html("- one\n- two\n\n1. first\n2. second")

        assert "<ul><li>one</li><li>two</li></ul>" in out
        assert "<ol><li>first</li><li>second</li></ol>" in out

    def test_star_bullets_are_not_italic(self):
        out = markdown_to_html("* alpha\n* beta")

        assert "<em>" not in out
        assert "<li>alpha</li>" in out

    def test_inline_spans(self):
        out = markdown_to_html("**bold** and *soft* and `code`")

        assert out == "<p><strong>bold</strong> and <em>soft</em> and <code>code</code></p>"

    def test_table(self):
        out = markdown_to_html("| Metric | Value |\n|---|---|\n| ROI | 497% |")

        assert "<thead><tr><th>Metric</th><th>Value</th></tr></thead>" in out
        assert "<tbody><tr><td>ROI</td><td>497%</td></tr></tbody>" in out

    def test_paragraphs_join_lines(self):
        assert markdown_to_html("line one\nline two\n\nnext") == (
            "<p>line one line two</p>\n<p>next</p>"
        )


# ============================================================================
# Sections and documents
# ============================================================================


class TestRenderSections:
    def test_headings_round_trip(self):
        sections = [
            ReportSection(key="executive_summary", heading="Executive Summary", body="Text"),
            ReportSection(key="roi", heading="ROI & Payback", body="## Inner\n\nMore"),
        ]

        rendered = render_sections(sections)

        assert extract_section_headings(rendered) == ["Executive Summary", "ROI & Payback"]
        assert 'id="executive_summary"' in rendered

    def test_empty_sections_render_raw_container(self):
        assert 'class="section section-raw"' in render_sections([])

    def test_render_failure_falls_back_to_escaped_raw_text(self):
        sections = [ReportSection(key="a", heading="A", body="<b>raw</b>")]

        with patch(
            "app.reports.html_formatter.render_section", side_effect=TypeError("boom")
        ):
            rendered = render_sections(sections)

        assert "<pre>" in rendered
        assert "&lt;b&gt;raw&lt;/b&gt;" in rendered


class TestFormatReport:
    def test_document_structure(self):
        report = _report(
            [ReportSection(key="executive_summary", heading="Executive Summary", body="Hi")],
            using_fallback=False,
            quality_score=0.85,
            freshness=0.9,
        )

        document = format_report(report, "hello@example.com")

        assert document.startswith("<!DOCTYPE html>")
        assert "<title>Revenue Intelligence Report - Acme IT</title>" in document
        assert "mailto:hello@example.com?subject=Revenue%20Intelligence%20Report%20-%20Acme%20IT" in document
        assert "Data Freshness: 90% current | Confidence: 85/100" in document
        assert CURATED_NOTICE not in document

    def test_curated_footer_and_notices(self):
        report = _report(
            [ReportSection(key="a", heading="A", body="b")],
            notices=[CURATED_NOTICE],
        )

        document = format_report(report, "hello@example.com")

        assert '<div class="notice">' in document
        assert f"<em>{CURATED_NOTICE}</em>" in document

    def test_company_name_escaped(self):
        report = Report(
            company_name="<Evil> Co",
            title="t",
            sections=[ReportSection(key="a", heading="A", body="b")],
            provenance=ReportProvenance(tier=SynthesisTier.STATIC),
        )

        document = format_report(report, "hello@example.com")

        assert "<Evil>" not in document
        assert "&lt;Evil&gt; Co" in document


class TestFormatMarkdown:
    def test_sections_from_headers(self):
        document = format_markdown("## One\n\nA\n\n## Two\n\nB", "Acme IT", "x@example.com")

        assert extract_section_headings(document) == ["One", "Two"]

    def test_headerless_text_is_one_section(self):
        document = format_markdown("Plain text report", "Acme IT", "x@example.com")

        assert extract_section_headings(document) == ["Report"]
        assert "<p>Plain text report</p>" in document
