"""Document analysis pipeline: extract, chunk, summarize, cache."""

from __future__ import annotations

import asyncio
import base64
import binascii
import time
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from hashlib import sha256

from chat_agent.agent.model import LanguageModel
from chat_agent.cache.store import TTLStore
from chat_agent.config import AnalysisConfig
from chat_agent.documents.chunker import AdaptiveChunker
from chat_agent.documents.entities import extract_entities
from chat_agent.documents.extractors import ExtractorRegistry, file_extension
from chat_agent.documents.preview import build_preview
from chat_agent.documents.summarizer import ChunkSummarizer
from chat_agent.errors import DocumentError, InvalidDocumentError, NoExtractableContentError
from chat_agent.obs.log import get_logger
from chat_agent.types import (
    DocumentAnalysisResult,
    DocumentMetadata,
    ProcessingStrategy,
)

logger = get_logger(__name__)


class DocumentAnalyzer:
    """Turns attachment bytes into a bounded, summarized analysis result.

    Every outcome is cached under ``(file_name, analysis_type, sha256(data))``,
    failures and deadline placeholders included, so an identical attachment
    is never processed twice while its entry lives. Analysis runs under a
    hard deadline; work still running when it passes is cancelled.
    """

    def __init__(
        self,
        model: LanguageModel | None = None,
        config: AnalysisConfig | None = None,
        *,
        extractors: ExtractorRegistry | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or AnalysisConfig()
        self.extractors = extractors or ExtractorRegistry()
        self.chunker = AdaptiveChunker(self.config.chunking)
        self.summarizer = ChunkSummarizer(model, self.config)
        self._results: TTLStore[DocumentAnalysisResult] = TTLStore(clock=clock)
        self._key_locks: dict[str, asyncio.Lock] = {}

    @staticmethod
    def cache_key(data: bytes, file_name: str, analysis_type: str) -> str:
        return f"{file_name}|{analysis_type}|{sha256(data).hexdigest()}"

    @property
    def cached_results(self) -> int:
        return len(self._results)

    async def analyze(
        self,
        data: bytes,
        file_name: str,
        analysis_type: str = "general",
        specific_questions: Sequence[str] | None = None,
    ) -> DocumentAnalysisResult:
        key = self.cache_key(data, file_name, analysis_type)
        cached = self._results.get(key)
        if cached is not None:
            logger.info("Using cached analysis for %s", file_name)
            return cached.value

        lock = self._key_locks.setdefault(key, asyncio.Lock())
        try:
            async with lock:
                # A concurrent request for the same document may have finished first.
                cached = self._results.get(key)
                if cached is not None:
                    return cached.value

                started = time.perf_counter()
                try:
                    result = await asyncio.wait_for(
                        self._run(data, file_name, analysis_type, specific_questions),
                        timeout=self.config.timeout_seconds,
                    )
                except asyncio.TimeoutError:
                    logger.warning(
                        "Analysis of %s exceeded %.0fs deadline", file_name, self.config.timeout_seconds
                    )
                    result = self._timeout_result(data, file_name)

                self._results.set(key, result, self.config.result_ttl_seconds)
                logger.info(
                    "Analyzed %s in %.0fms (success=%s, strategy=%s)",
                    file_name,
                    (time.perf_counter() - started) * 1000.0,
                    result.success,
                    result.processing_strategy.value if result.processing_strategy else None,
                )
                return result
        finally:
            if not lock.locked():
                self._key_locks.pop(key, None)

    async def analyze_base64(
        self,
        content_base64: str,
        file_name: str,
        analysis_type: str = "general",
        specific_questions: Sequence[str] | None = None,
    ) -> DocumentAnalysisResult:
        """Decode a base64 payload (optionally a ``data:`` URL) and analyze it."""
        payload = content_base64.split(",", 1)[1] if content_base64.startswith("data:") else content_base64
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            logger.warning("Rejected %s: invalid base64 content", file_name)
            return self._failed_result(
                b"", file_name, InvalidDocumentError(f"Invalid base64 content: {exc}")
            )
        return await self.analyze(data, file_name, analysis_type, specific_questions)

    def clear_cache(self) -> int:
        return self._results.clear()

    async def _run(
        self,
        data: bytes,
        file_name: str,
        analysis_type: str,
        specific_questions: Sequence[str] | None,
    ) -> DocumentAnalysisResult:
        try:
            extractor = self.extractors.extractor_for(file_name)
            if not data:
                raise NoExtractableContentError(f"Document {file_name} is empty.")
            if extractor.binary and len(data) < self.config.min_document_bytes:
                raise InvalidDocumentError(
                    f"Document {file_name} is too small ({len(data)} bytes); the upload may be truncated."
                )
            extracted = await asyncio.to_thread(self.extractors.extract, data, file_name)
        except DocumentError as exc:
            logger.warning("Analysis of %s failed (%s): %s", file_name, exc.kind.value, exc)
            return self._failed_result(data, file_name, exc)

        text = extracted.text
        chunks = self.chunker.chunk(text, analysis_type)
        logger.info("Split %s into %d %s chunk(s)", file_name, len(chunks), chunks[0].kind.value)

        metadata = extracted.metadata
        metadata.file_name = file_name
        metadata.file_size = len(data)
        metadata.chunk_count = len(chunks)
        metadata.total_characters = len(text)
        metadata.word_count = len(text.split())
        metadata.processed_at = datetime.now(timezone.utc).isoformat()

        summaries = await self.summarizer.summarize_chunks(
            chunks,
            file_name=file_name,
            analysis_type=analysis_type,
            questions=specific_questions,
        )
        summary, strategy = await self.summarizer.combine(
            summaries,
            file_name=file_name,
            analysis_type=analysis_type,
            metadata=metadata,
        )

        return DocumentAnalysisResult(
            success=True,
            content=build_preview(text, chunks, self.config.preview_chars),
            metadata=metadata,
            summary=summary,
            entities=extract_entities(text, metadata.file_type),
            processing_strategy=strategy,
        )

    def _base_metadata(self, data: bytes, file_name: str) -> DocumentMetadata:
        return DocumentMetadata(
            file_type=file_extension(file_name),
            file_name=file_name,
            file_size=len(data),
            processed_at=datetime.now(timezone.utc).isoformat(),
        )

    def _failed_result(self, data: bytes, file_name: str, error: DocumentError) -> DocumentAnalysisResult:
        return DocumentAnalysisResult(
            success=False,
            content="",
            metadata=self._base_metadata(data, file_name),
            error=str(error),
            error_kind=error.kind,
        )

    def _timeout_result(self, data: bytes, file_name: str) -> DocumentAnalysisResult:
        seconds = self.config.timeout_seconds
        message = (
            f"Processing of {file_name} was stopped after {seconds:.0f}s. "
            "The document is too large or complex to analyze within the time limit."
        )
        return DocumentAnalysisResult(
            success=True,
            content=message,
            metadata=self._base_metadata(data, file_name),
            summary=message,
            entities=[],
            processing_strategy=ProcessingStrategy.TIMEOUT_LIMITED,
        )

