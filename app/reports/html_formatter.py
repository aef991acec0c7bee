"""Render reports as standalone HTML documents.

Section bodies are lightweight markdown converted by ordered regex passes:
escape, tables, headers, lists, inline spans, paragraphs. Each pass assumes
the earlier ones already ran. Lists must become ``<li>`` before the italic
pass, otherwise ``* item`` bullets would be read as emphasis.
"""

import html
import re
from typing import Callable
from urllib.parse import quote

from app.core.logging import get_logger
from app.core.schemas_report import (
    CURATED_NOTICE,
    Report,
    ReportProvenance,
    ReportSection,
    SynthesisTier,
)
from app.reports.markdown import parse_markdown_sections, section_key

logger = get_logger(__name__)

_TABLE_BLOCK = re.compile(r"(?:^[ \t]*\|.*\|[ \t]*(?:\n|$))+", re.MULTILINE)
_TABLE_SEPARATOR = re.compile(r"^\|?[\s:|-]+\|?$")
_HEADER = re.compile(r"^(#{2,6})[ \t]+(.+?)[ \t]*#*[ \t]*$", re.MULTILINE)
_BULLET_BLOCK = re.compile(r"(?:^[ \t]*[-*][ \t]+.+(?:\n|$))+", re.MULTILINE)
_NUMBERED_BLOCK = re.compile(r"(?:^[ \t]*\d+\.[ \t]+.+(?:\n|$))+", re.MULTILINE)
_BULLET_ITEM = re.compile(r"^[ \t]*(?:[-*]|\d+\.)[ \t]+")
_BOLD = re.compile(r"\*\*(.+?)\*\*")
_ITALIC = re.compile(r"(?<![*\w])\*(?!\s)(.+?)(?<!\s)\*(?![*\w])")
_CODE = re.compile(r"`([^`\n]+)`")
_BLOCK_START = re.compile(r"^<(?:h\d|ul|ol|table|div|p)\b")
_SECTION_TITLE = re.compile(r'<h2 class="section-title">(.*?)</h2>', re.DOTALL)

STYLES = """
    * { margin: 0; padding: 0; box-sizing: border-box; }
    body {
      font-family: 'Inter', -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;
      line-height: 1.6;
      color: #2c3e50;
      background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
    }
    .container { max-width: 900px; margin: 0 auto; background: white; }
    header {
      background: linear-gradient(135deg, #2c3e50 0%, #34495e 100%);
      color: white;
      padding: 60px 40px;
      text-align: center;
    }
    header h1 { font-size: 2.5rem; font-weight: 700; margin-bottom: 10px; }
    .subtitle { font-size: 1.2rem; opacity: 0.9; font-weight: 300; }
    .content { padding: 50px 40px; }
    .section { margin-bottom: 40px; }
    .section-executive_summary {
      background: #f8f9fa;
      padding: 30px;
      border-radius: 15px;
      border-left: 5px solid #3498db;
    }
    h2 {
      color: #667eea;
      font-size: 1.8rem;
      margin: 40px 0 20px;
      padding-bottom: 10px;
      border-bottom: 2px solid #667eea;
    }
    h3 { color: #764ba2; font-size: 1.3rem; margin: 25px 0 15px; }
    h4 { color: #0ea5e9; margin: 20px 0 10px; }
    p { margin-bottom: 15px; }
    ul, ol { margin: 15px 0 15px 30px; }
    li { margin-bottom: 8px; }
    code { background: #f1f5f9; padding: 2px 6px; border-radius: 4px; }
    table { width: 100%; border-collapse: collapse; margin: 20px 0; }
    th, td { padding: 15px; text-align: left; border-bottom: 1px solid #e5e7eb; }
    th { background: #667eea; color: white; font-weight: 600; }
    .section-roi th { background: #10b981; }
    .notice {
      background: #fef3c7;
      padding: 15px;
      border-radius: 8px;
      border-left: 4px solid #f59e0b;
      margin-bottom: 30px;
    }
    .cta-section {
      background: linear-gradient(135deg, #1e293b 0%, #334155 100%);
      color: white;
      padding: 40px;
      border-radius: 12px;
      text-align: center;
      margin: 40px 0;
    }
    .cta-button {
      display: inline-block;
      background: #667eea;
      color: white;
      padding: 15px 30px;
      border-radius: 8px;
      text-decoration: none;
      font-weight: 600;
      margin-top: 20px;
    }
    footer {
      background: #f9fafb;
      padding: 30px;
      text-align: center;
      font-size: 0.9rem;
      color: #6b7280;
    }
    pre { white-space: pre-wrap; font-family: inherit; }
    @media print {
      body { background: white; }
      .cta-section { display: none; }
    }
"""


# =============================================================================
# Markdown passes
# =============================================================================


def _cells(row: str) -> list[str]:
    return [cell.strip() for cell in row.strip().strip("|").split("|")]


def _table(match: re.Match) -> str:
    rows = [line for line in match.group(0).splitlines() if line.strip()]
    rows = [row for row in rows if not _TABLE_SEPARATOR.match(row.strip())]
    if not rows:
        return ""
    head = "".join(f"<th>{c}</th>" for c in _cells(rows[0]))
    body = "".join(
        "<tr>" + "".join(f"<td>{c}</td>" for c in _cells(row)) + "</tr>" for row in rows[1:]
    )
    return f"\n\n<table><thead><tr>{head}</tr></thead><tbody>{body}</tbody></table>\n\n"


def convert_tables(text: str) -> str:
    return _TABLE_BLOCK.sub(_table, text)


def convert_headers(text: str) -> str:
    """Body headers never become ``<h2>``; that level is reserved for section titles."""

    def header(match: re.Match) -> str:
        level = max(3, len(match.group(1)))
        return f"\n\n<h{level}>{match.group(2)}</h{level}>\n\n"

    return _HEADER.sub(header, text)


def _list(tag: str) -> Callable[[re.Match], str]:
    def render(match: re.Match) -> str:
        items = [
            _BULLET_ITEM.sub("", line) for line in match.group(0).splitlines() if line.strip()
        ]
        body = "".join(f"<li>{item}</li>" for item in items)
        return f"\n\n<{tag}>{body}</{tag}>\n\n"

    return render


def convert_lists(text: str) -> str:
    text = _BULLET_BLOCK.sub(_list("ul"), text)
    return _NUMBERED_BLOCK.sub(_list("ol"), text)


def convert_inline(text: str) -> str:
    text = _BOLD.sub(r"<strong>\1</strong>", text)
    text = _ITALIC.sub(r"<em>\1</em>", text)
    return _CODE.sub(r"<code>\1</code>", text)


def convert_paragraphs(text: str) -> str:
    blocks = []
    for chunk in re.split(r"\n{2,}", text):
        chunk = chunk.strip()
        if not chunk:
            continue
        if _BLOCK_START.match(chunk):
            blocks.append(chunk)
        else:
            blocks.append(f"<p>{' '.join(chunk.splitlines())}</p>")
    return "\n".join(blocks)


MARKDOWN_PASSES: list[Callable[[str], str]] = [
    lambda text: html.escape(text, quote=True),
    convert_tables,
    convert_headers,
    convert_lists,
    convert_inline,
    convert_paragraphs,
]


def markdown_to_html(text: str) -> str:
    for markdown_pass in MARKDOWN_PASSES:
        text = markdown_pass(text)
    return text


# =============================================================================
# Sections
# =============================================================================


def render_section(section: ReportSection) -> str:
    key = html.escape(section_key(section.key), quote=True)
    heading = html.escape(section.heading, quote=False)
    return (
        f'<div class="section section-{key}" id="{key}">\n'
        f'<h2 class="section-title">{heading}</h2>\n'
        f"{markdown_to_html(section.body)}\n"
        "</div>"
    )


def render_sections(sections: list[ReportSection]) -> str:
    """
    Render report sections in order.

    Falls back to one section holding the escaped raw text when the sections
    cannot be rendered.
    """
    if not sections:
        return _raw_section("")
    try:
        return "\n\n".join(render_section(s) for s in sections)
    except (re.error, TypeError, AttributeError) as e:
        logger.warning(f"Section rendering failed, using raw container: {e}")
        raw = "\n\n".join(f"{s.heading}\n\n{s.body}" for s in sections)
        return _raw_section(raw)


def _raw_section(text: str) -> str:
    return f'<div class="section section-raw"><pre>{html.escape(text or "")}</pre></div>'


def extract_section_headings(document: str) -> list[str]:
    """Ordered section titles from a rendered document."""
    return [html.unescape(m.group(1)) for m in _SECTION_TITLE.finditer(document)]


# =============================================================================
# Document
# =============================================================================


def _footer(report: Report) -> str:
    provenance = report.provenance
    generated = report.generated_at.strftime("%A, %B %d, %Y at %H:%M UTC")
    lines = [
        f"<p><strong>Report Generated:</strong> {generated}</p>",
        f"<p>Data Freshness: {round(provenance.freshness * 100)}% current"
        f" | Confidence: {round(provenance.quality_score * 100)}/100</p>",
    ]
    if provenance.is_curated:
        lines.append(f"<p><em>{html.escape(CURATED_NOTICE)}</em></p>")
    return "\n".join(lines)


def _notices(report: Report) -> str:
    if not report.provenance.notices:
        return ""
    items = "".join(f"<li>{html.escape(n)}</li>" for n in report.provenance.notices)
    return f'<div class="notice"><ul>{items}</ul></div>'


def format_report(report: Report, contact_email: str) -> str:
    """
    Render a report as a self-contained HTML document.

    Args:
        report: Synthesized report
        contact_email: Mailto target for the call to action

    Returns:
        Full HTML document with inline styles
    """
    company = html.escape(report.company_name)
    subject = quote(f"Revenue Intelligence Report - {report.company_name}")
    mailto = html.escape(f"mailto:{contact_email}?subject={subject}", quote=True)

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Revenue Intelligence Report - {company}</title>
  <style>{STYLES}</style>
</head>
<body>
  <div class="container">
    <header>
      <h1>Revenue Intelligence Report</h1>
      <div class="subtitle">{company} - AI Transformation Analysis</div>
    </header>
    <div class="content">
{_notices(report)}
{render_sections(report.sections)}
      <div class="cta-section">
        <h3>Ready to Transform Your Revenue Operations?</h3>
        <p>Schedule a strategic consultation to discuss your personalized implementation roadmap.</p>
        <a href="{mailto}" class="cta-button">Schedule Strategy Session</a>
      </div>
    </div>
    <footer>
{_footer(report)}
    </footer>
  </div>
</body>
</html>
"""


def format_markdown(content: str, company_name: str, contact_email: str) -> str:
    """Render a raw markdown report. Text with no ``## `` headers becomes one section."""
    sections = parse_markdown_sections(content)
    if not sections:
        sections = [ReportSection(key="report", heading="Report", body=content or "")]
    report = Report(
        company_name=company_name,
        title=f"Revenue Intelligence Report: {company_name}",
        sections=sections,
        provenance=ReportProvenance(tier=SynthesisTier.LLM, notices=[]),
    )
    return format_report(report, contact_email)
