"""Bounded content previews that keep markdown tables intact where possible."""

from __future__ import annotations

from collections.abc import Sequence

from chat_agent.types import Chunk

TABLE_CONTEXT_LINES = 3
MIN_PARTIAL_SECTION = 200


def _is_table_line(line: str) -> bool:
    stripped = line.strip()
    return len(stripped) > 1 and stripped.startswith("|") and stripped.endswith("|")


def table_sections(text: str) -> list[str]:
    """Each markdown table in ``text`` with a few lines of context around it."""
    lines = text.split("\n")
    sections: list[str] = []
    index = 0
    while index < len(lines):
        if not _is_table_line(lines[index]):
            index += 1
            continue
        start = max(0, index - TABLE_CONTEXT_LINES)
        end = index
        while end < len(lines) and _is_table_line(lines[end]):
            end += 1
        stop = min(len(lines), end + TABLE_CONTEXT_LINES)
        sections.append("\n".join(lines[start:stop]).strip())
        index = end
    return sections


def build_preview(text: str, chunks: Sequence[Chunk], limit: int = 5000) -> str:
    if len(text) <= limit:
        return text

    sections = table_sections(text)
    if sections:
        preview = ""
        for section in sections:
            if len(preview) + len(section) <= limit:
                preview += section + "\n\n"
                continue
            remaining = limit - len(preview)
            if remaining > MIN_PARTIAL_SECTION:
                preview += section[: remaining - 3] + "..."
            break
        if preview:
            return preview.rstrip()

    if chunks:
        return chunks[0].content[:limit]
    return text[:limit]
