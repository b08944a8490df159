"""Per-chunk analysis and progressive summary assembly."""

from __future__ import annotations

import math
import re
from collections.abc import Sequence

from chat_agent.agent.model import LanguageModel
from chat_agent.config import FAST_POLICY, AnalysisConfig
from chat_agent.obs.log import get_logger
from chat_agent.resilience.retry import with_retry
from chat_agent.types import Chunk, ChunkSummary, DocumentMetadata, ProcessingStrategy

logger = get_logger(__name__)

_SENTENCE_END = re.compile(r"[.!?]\s+")

ANALYSIS_INSTRUCTIONS: dict[str, str] = {
    "general": "Provide a concise analysis focusing on key information and main points.",
    "summary": (
        "Create a comprehensive summary highlighting: main topics, key findings, "
        "important details, and conclusions."
    ),
    "extraction": (
        "Extract and list all important data: names, dates, numbers, addresses, emails, "
        "phone numbers, organizations, and key facts. Format as structured list."
    ),
    "legal": (
        "Legal analysis focusing on: key terms, dates, parties involved, obligations, "
        "rights, deadlines, and legal implications."
    ),
    "financial": (
        "Financial analysis focusing on: amounts, dates, financial terms, parties, "
        "obligations, ratios, and financial implications."
    ),
    "technical": (
        "Technical analysis focusing on: specifications, procedures, requirements, "
        "technical terms, processes, and implementation details."
    ),
    "medical": (
        "Medical analysis focusing on: patient information, medical terms, diagnoses, "
        "treatments, medications, dates, and clinical details."
    ),
}

SUMMARY_SEPARATOR = "\n\n---\n\n"


def build_chunk_prompt(
    chunk: Chunk,
    *,
    total_chunks: int,
    file_name: str,
    analysis_type: str,
    questions: Sequence[str] | None = None,
) -> str:
    if total_chunks > 1:
        prefix = f'Analyzing {chunk.kind.value} {chunk.index + 1}/{total_chunks} from "{file_name}":\n\n'
    else:
        prefix = f'Analyzing document "{file_name}":\n\n'
    focus = f"\nFocus on these specific questions: {'; '.join(questions)}\n" if questions else ""
    instruction = ANALYSIS_INSTRUCTIONS.get(analysis_type, ANALYSIS_INSTRUCTIONS["general"])
    return f"{prefix}{instruction}{focus}\n\nContent:\n{chunk.content}"


def output_token_budget(content_length: int, total_chunks: int) -> int:
    """Per-chunk output allowance: larger for long chunks, smaller as chunk count grows."""
    content_ratio = min(content_length / 8000, 1.5)
    chunk_penalty = max(1 - total_chunks * 0.1, 0.5)
    return math.floor(800 * content_ratio * chunk_penalty)


def extractive_summary(content: str) -> str:
    """Leading sentences of ``content``, used whenever no model summary is available."""
    limit = min(len(content), 1000)
    summary = ""
    for sentence in _SENTENCE_END.split(content):
        if len(summary) + len(sentence) > limit:
            break
        summary += sentence + ". "

    if len(summary) < 100 and len(content) < 1000:
        return content
    if not summary:
        summary = content[:limit]
    return (
        summary.rstrip()
        + f"\n\nNote: this is an automatically generated extractive summary of a "
        f"{len(content)}-character section."
    )


def format_combined_summary(
    combined: str, *, file_name: str, section_count: int, metadata: DocumentMetadata
) -> str:
    header = f'Analysis of "{file_name}" ({metadata.file_type.lstrip(".").upper()})'
    plural = "s" if section_count > 1 else ""
    return f"{header}\n{'=' * len(header)}\n\nProcessed {section_count} section{plural}\n\n{combined}"


def build_meta_summary_prompt(
    combined: str,
    *,
    file_name: str,
    analysis_type: str,
    section_count: int,
    metadata: DocumentMetadata,
) -> str:
    info = [f"File: {file_name}", f"Type: {metadata.file_type}", f"Sections analyzed: {section_count}"]
    if metadata.page_count:
        info.append(f"Pages: {metadata.page_count}")
    if metadata.sheet_names:
        info.append(f"Sheets: {', '.join(metadata.sheet_names)}")
    return (
        f'Create a comprehensive final summary by synthesizing these {section_count} section '
        f'analyses of "{file_name}".\n\n'
        f"Document Info: {' | '.join(info)}\n\n"
        f"Analysis Type: {analysis_type}\n\n"
        f"Section Analyses:\n{combined}\n\n"
        "Provide a unified, coherent summary that captures the essential information from all "
        "sections while eliminating redundancy."
    )


class ChunkSummarizer:
    """Runs the per-chunk model calls and folds their outputs into one summary.

    Without a model, or when a call fails, every chunk gets an extractive
    summary instead; a document analysis never fails because summarization
    did.
    """

    def __init__(self, model: LanguageModel | None = None, config: AnalysisConfig | None = None) -> None:
        self.model = model
        self.config = config or AnalysisConfig()

    async def summarize_chunks(
        self,
        chunks: Sequence[Chunk],
        *,
        file_name: str,
        analysis_type: str,
        questions: Sequence[str] | None = None,
    ) -> list[ChunkSummary]:
        results: list[ChunkSummary] = []
        for chunk in chunks:
            summary = await self._summarize_chunk(
                chunk,
                total_chunks=len(chunks),
                file_name=file_name,
                analysis_type=analysis_type,
                questions=questions,
            )
            results.append(ChunkSummary(index=chunk.index, summary=summary, tokens=math.ceil(len(summary) / 4)))
        return results

    async def _summarize_chunk(
        self,
        chunk: Chunk,
        *,
        total_chunks: int,
        file_name: str,
        analysis_type: str,
        questions: Sequence[str] | None,
    ) -> str:
        if self.model is None:
            return extractive_summary(chunk.content)

        prompt = build_chunk_prompt(
            chunk,
            total_chunks=total_chunks,
            file_name=file_name,
            analysis_type=analysis_type,
            questions=questions,
        )
        model = self.model
        try:
            generation = await with_retry(
                lambda: model.generate(
                    prompt,
                    max_output_tokens=output_token_budget(len(chunk.content), total_chunks),
                    temperature=0.3,
                ),
                FAST_POLICY,
                operation=f"analyze chunk {chunk.index + 1}/{total_chunks}",
            )
        except Exception as exc:
            logger.warning("Chunk %d of %s fell back to extractive summary: %s", chunk.index + 1, file_name, exc)
            return extractive_summary(chunk.content)

        if not generation.text.strip():
            return extractive_summary(chunk.content)
        return generation.text.strip()

    async def combine(
        self,
        summaries: Sequence[ChunkSummary],
        *,
        file_name: str,
        analysis_type: str,
        metadata: DocumentMetadata,
    ) -> tuple[str, ProcessingStrategy]:
        ordered = sorted(summaries, key=lambda item: item.index)
        if len(ordered) == 1:
            return ordered[0].summary, ProcessingStrategy.SINGLE_PASS

        combined = SUMMARY_SEPARATOR.join(item.summary for item in ordered)
        formatted = format_combined_summary(
            combined, file_name=file_name, section_count=len(ordered), metadata=metadata
        )
        total_tokens = sum(item.tokens for item in ordered)
        if total_tokens < self.config.combined_direct_token_limit or self.model is None:
            return formatted, ProcessingStrategy.COMBINED_DIRECT

        logger.info("Building meta-summary of %d sections for %s", len(ordered), file_name)
        prompt = build_meta_summary_prompt(
            combined,
            file_name=file_name,
            analysis_type=analysis_type,
            section_count=len(ordered),
            metadata=metadata,
        )
        try:
            generation = await self.model.generate(
                prompt,
                max_output_tokens=min(self.config.meta_summary_max_tokens, math.floor(total_tokens * 0.6)),
                temperature=0.2,
            )
        except Exception as exc:
            logger.warning("Meta-summary for %s failed, using combined sections: %s", file_name, exc)
            return formatted, ProcessingStrategy.COMBINED_DIRECT

        if not generation.text.strip():
            return formatted, ProcessingStrategy.COMBINED_DIRECT
        return generation.text.strip(), ProcessingStrategy.PROGRESSIVE_META
