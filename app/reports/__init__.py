"""Report synthesis and HTML rendering.

Usage:
    from app.reports import ReportSynthesizer, build_report_synthesizer, format_report
"""

from app.reports.html_formatter import extract_section_headings, format_markdown, format_report
from app.reports.sections import SectionContext, generate_sections
from app.reports.synthesizer import (
    DeterministicSynthesis,
    LLMSynthesis,
    ReportSynthesizer,
    StaticSynthesis,
    build_report_synthesizer,
)

__all__ = [
    "DeterministicSynthesis",
    "LLMSynthesis",
    "ReportSynthesizer",
    "SectionContext",
    "StaticSynthesis",
    "build_report_synthesizer",
    "extract_section_headings",
    "format_markdown",
    "format_report",
    "generate_sections",
]
