"""Paragraph-aware and sliding-window chunking for extracted documents."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from chat_agent.config import ChunkingConfig
from chat_agent.types import Chunk, ChunkKind

_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")


@dataclass(slots=True)
class _ChunkState:
    parts: list[str] = field(default_factory=list)
    length: int = 0

    def add(self, text: str) -> None:
        self.length += len(text) + (2 if self.parts else 0)
        self.parts.append(text)

    def text(self) -> str:
        return "\n\n".join(self.parts)


class AdaptiveChunker:
    """Splits text into bounded chunks that keep context across boundaries.

    Strategy selection:
    1. Text that fits in ``max_chunk_chars`` becomes a single ``SECTION`` chunk.

    2. Paragraph packing when the text is made of many reasonably sized
       paragraphs (more than two, average length below
       ``semantic_paragraph_ratio * max_chunk_chars``). Paragraphs are packed
       greedily; a chunk is closed once the next paragraph would overflow it
       and it already holds ``min_chunk_chars``. The closed chunk is extended
       with the head of the next paragraph (cut back to a sentence end) and
       the next chunk opens with the tail of the closed one (cut forward to a
       sentence start), so neighbours always share text.

    3. Fixed windows otherwise: ``window=max_chunk_chars`` with
       ``stride=max_chunk_chars - overlap_chars``. The last window always
       reaches the end of the text, so no tail is lost.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()

    def chunk(self, text: str, analysis_type: str = "general") -> list[Chunk]:
        config = self.config.for_analysis(analysis_type)
        if len(text) <= config.max_chunk_chars:
            return [Chunk(content=text, index=0, kind=ChunkKind.SECTION)]

        paragraphs = self._split_paragraphs(text)
        if self._use_paragraphs(paragraphs, config):
            return self._pack_paragraphs(paragraphs, config)
        return self._windows(text, config)

    @staticmethod
    def _split_paragraphs(text: str) -> list[str]:
        return [part.strip() for part in _PARAGRAPH_SPLIT.split(text) if part.strip()]

    @staticmethod
    def _use_paragraphs(paragraphs: list[str], config: ChunkingConfig) -> bool:
        if len(paragraphs) <= 2:
            return False
        average = sum(len(p) for p in paragraphs) / len(paragraphs)
        return average < config.max_chunk_chars * config.semantic_paragraph_ratio

    def _pack_paragraphs(self, paragraphs: list[str], config: ChunkingConfig) -> list[Chunk]:
        overlap = config.overlap_chars
        chunks: list[Chunk] = []
        state = _ChunkState()
        # A piece plus the tail overlap it may follow must fit in one chunk.
        piece_limit = max(1, config.max_chunk_chars - overlap - 2)

        for paragraph in _split_oversized(paragraphs, piece_limit):
            projected = state.length + len(paragraph) + (2 if state.parts else 0)
            if state.parts and projected > config.max_chunk_chars and state.length >= config.min_chunk_chars:
                closed = state.text()
                head = head_overlap(paragraph, overlap)
                content = f"{closed}\n\n{head}" if head else closed
                chunks.append(Chunk(content=content, index=len(chunks), kind=ChunkKind.PARAGRAPH))

                state = _ChunkState()
                tail = tail_overlap(closed, overlap)
                if tail:
                    state.add(tail)
            state.add(paragraph)

        if state.parts:
            chunks.append(Chunk(content=state.text(), index=len(chunks), kind=ChunkKind.PARAGRAPH))
        return chunks

    @staticmethod
    def _windows(text: str, config: ChunkingConfig) -> list[Chunk]:
        size = config.max_chunk_chars
        stride = size - config.overlap_chars
        chunks: list[Chunk] = []
        start = 0

        while start < len(text):
            window = text[start : start + size]
            end = start + len(window)
            # Short leftovers are only kept when they carry text no earlier window covered.
            if len(window.strip()) >= config.min_chunk_chars or end >= len(text):
                chunks.append(Chunk(content=window, index=len(chunks), kind=ChunkKind.HYBRID))
            if end >= len(text):
                break
            start += stride

        return chunks


def head_overlap(text: str, size: int) -> str:
    """Leading ``size`` chars of ``text``, cut back to the last sentence end."""
    if size <= 0:
        return ""
    window = text[:size]
    if len(window) < len(text):
        cut = window.rfind(". ")
        if cut > 0:
            return window[: cut + 1]
    return window


def tail_overlap(text: str, size: int) -> str:
    """Trailing ``size`` chars of ``text``, cut forward to the next sentence start."""
    if size <= 0:
        return ""
    window = text[-size:]
    if len(window) < len(text):
        cut = window.find(". ")
        if cut != -1 and cut + 2 < len(window):
            return window[cut + 2 :]
    return window


def _split_oversized(paragraphs: list[str], limit: int) -> list[str]:
    pieces: list[str] = []
    for paragraph in paragraphs:
        if len(paragraph) <= limit:
            pieces.append(paragraph)
            continue
        pieces.extend(paragraph[start : start + limit] for start in range(0, len(paragraph), limit))
    return pieces
