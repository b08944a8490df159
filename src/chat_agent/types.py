"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ChunkKind(str, Enum):
    PARAGRAPH = "paragraph"
    HYBRID = "hybrid"
    SECTION = "section"


class ProcessingStrategy(str, Enum):
    SINGLE_PASS = "single-pass"
    COMBINED_DIRECT = "combined-direct"
    PROGRESSIVE_META = "progressive-meta"
    TIMEOUT_LIMITED = "timeout-limited"


class DocumentErrorKind(str, Enum):
    UNSUPPORTED_FORMAT = "unsupported-format"
    NO_EXTRACTABLE_CONTENT = "no-extractable-content"
    INVALID_INPUT = "invalid-input"
    EXTRACTION_FAILED = "extraction-failed"


@dataclass(slots=True)
class ExtractedText:
    """Raw text pulled out of a document by a format extractor."""

    text: str
    metadata: "DocumentMetadata"


@dataclass(slots=True)
class DocumentMetadata:
    """Format metadata produced once per attachment."""

    file_type: str
    estimated_tokens: int = 0
    page_count: int | None = None
    sheet_names: list[str] | None = None
    headers: list[str] | None = None
    encoding: str | None = None
    file_name: str = ""
    file_size: int = 0
    chunk_count: int = 0
    total_characters: int = 0
    word_count: int = 0
    processed_at: str = ""


@dataclass(slots=True)
class Chunk:
    """A bounded slice of extracted text, processed independently."""

    content: str
    index: int
    kind: ChunkKind


@dataclass(slots=True)
class ChunkSummary:
    index: int
    summary: str
    tokens: int


@dataclass(slots=True, frozen=True)
class Entity:
    type: str
    value: str
    confidence: float


@dataclass(slots=True)
class DocumentAnalysisResult:
    """Outcome of analyzing one attachment, cached per document identity."""

    success: bool
    content: str
    metadata: DocumentMetadata
    summary: str | None = None
    entities: list[Entity] | None = None
    processing_strategy: ProcessingStrategy | None = None
    error: str | None = None
    error_kind: DocumentErrorKind | None = None


@dataclass(slots=True)
class ToolExecutionRecord:
    """Audit entry for one external tool invocation within a request."""

    name: str
    input: dict[str, Any]
    output: Any
    timestamp: str
    duration_ms: float


@dataclass(slots=True)
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass(slots=True)
class Generation:
    """What the language-model collaborator returns for one prompt."""

    text: str
    model: str
    usage: TokenUsage | None = None


@dataclass(slots=True)
class Attachment:
    """A file attached to a chat message, content still base64-encoded."""

    file_name: str
    content_base64: str | None
    mime_type: str = "application/octet-stream"
    analysis_type: str = "general"


@dataclass(slots=True)
class AnalyzedAttachment:
    """A successfully analyzed attachment ready for prompt assembly."""

    name: str
    mime_type: str
    excerpt: str
    summary: str | None
    metadata: DocumentMetadata


@dataclass(slots=True)
class ChatOrchestrationResult:
    success: bool
    message_text: str
    conversation_id: str
    model: str
    timestamp: str
    tool_calls: list[ToolExecutionRecord] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)
    degraded: bool = False
