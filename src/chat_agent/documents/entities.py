"""Regex entity extraction over extracted document text."""

from __future__ import annotations

import re
from collections.abc import Iterable

from chat_agent.types import Entity

DEFAULT_CONFIDENCE = 0.8

ENTITY_PATTERNS: dict[str, re.Pattern[str]] = {
    "email": re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
    "phone": re.compile(r"(?:\+?1[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b"),
    "date": re.compile(
        r"\b(?:\d{1,2}[/-]\d{1,2}[/-]\d{2,4}|\d{4}[/-]\d{1,2}[/-]\d{1,2}"
        r"|[A-Za-z]+\s+\d{1,2},?\s+\d{4})\b"
    ),
    "currency": re.compile(r"[$€£¥]\s*\d{1,3}(?:,\d{3})*(?:\.\d{2})?"),
    "percentage": re.compile(r"\b\d+(?:\.\d+)?%"),
    "url": re.compile(r"https?://[-\w.]+(?::\d+)?(?:/[\w._~:/?#\[\]@!$&'()*+,;=%-]*)?"),
    "ssn": re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),
    "zipcode": re.compile(r"\b\d{5}(?:-\d{4})?\b"),
}

# Tabular formats also carry identifier columns worth surfacing.
STRUCTURED_PATTERNS: dict[str, re.Pattern[str]] = {
    "id": re.compile(r"\b(?:ID|id)[-_]?\s*:?\s*[A-Z0-9-]+\b"),
    "reference": re.compile(r"\b(?:REF|ref|reference)[-_]?\s*:?\s*[A-Z0-9-]+\b"),
}

STRUCTURED_FILE_TYPES = frozenset({".csv", ".xls", ".xlsx"})


def _confidence(entity_type: str, value: str) -> float:
    if entity_type == "email" and "@" in value:
        return 0.95
    if entity_type == "phone" and len(value) >= 10:
        return 0.9
    if entity_type == "url" and value.startswith("http"):
        return 0.95
    return DEFAULT_CONFIDENCE


def extract_entities(text: str, file_type: str = "") -> list[Entity]:
    patterns = dict(ENTITY_PATTERNS)
    if file_type.lower() in STRUCTURED_FILE_TYPES:
        patterns.update(STRUCTURED_PATTERNS)

    found: list[Entity] = []
    for entity_type, pattern in patterns.items():
        for match in pattern.finditer(text):
            value = match.group(0).strip()
            if value:
                found.append(Entity(type=entity_type, value=value, confidence=_confidence(entity_type, value)))
    return deduplicate_entities(found)


def deduplicate_entities(entities: Iterable[Entity]) -> list[Entity]:
    """Drop repeated ``(type, value)`` pairs, keeping the first occurrence."""
    seen: set[tuple[str, str]] = set()
    unique: list[Entity] = []
    for entity in entities:
        key = (entity.type, entity.value)
        if key in seen:
            continue
        seen.add(key)
        unique.append(entity)
    return unique
