"""Splitting markdown reports into sections."""

import re

from app.core.schemas_report import ReportSection

_SECTION_HEADER = re.compile(r"^##[ \t]+(.+?)[ \t]*#*[ \t]*$", re.MULTILINE)


def section_key(heading: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", heading.lower()).strip("_") or "section"


def parse_markdown_sections(text: str) -> list[ReportSection]:
    """Split markdown on ``## `` headers. Text before the first header is dropped."""
    text = text or ""
    matches = list(_SECTION_HEADER.finditer(text))
    sections = []
    seen: set[str] = set()
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        heading = match.group(1).strip()
        body = text[match.end():end].strip()
        if not heading or not body:
            continue
        key = section_key(heading)
        if key in seen:
            key = f"{key}_{i}"
        seen.add(key)
        sections.append(ReportSection(key=key, heading=heading, body=body))
    return sections
