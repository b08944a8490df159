"""Error taxonomy and upstream failure classification."""

from __future__ import annotations

import asyncio
from enum import Enum

from chat_agent.types import DocumentErrorKind


class ErrorClass(str, Enum):
    OVERLOADED = "overloaded"
    RATE_LIMITED = "rate-limited"
    TRANSIENT_SERVER = "transient-server"
    NETWORK_TIMEOUT = "network-timeout"
    NON_RETRYABLE = "non-retryable"

    @property
    def retryable(self) -> bool:
        return self is not ErrorClass.NON_RETRYABLE


class UpstreamError(Exception):
    """Failure reported by the upstream model provider or a tool backend."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NonRetryableError(Exception):
    """Raised by the retry controller when a failure must not be re-attempted."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"Non-retryable error: {cause}")
        self.cause = cause


class DocumentError(Exception):
    """Terminal per-document failure; becomes a failed analysis result."""

    kind: DocumentErrorKind = DocumentErrorKind.EXTRACTION_FAILED


class UnsupportedFormatError(DocumentError):
    kind = DocumentErrorKind.UNSUPPORTED_FORMAT


class NoExtractableContentError(DocumentError):
    kind = DocumentErrorKind.NO_EXTRACTABLE_CONTENT


class InvalidDocumentError(DocumentError):
    kind = DocumentErrorKind.INVALID_INPUT


class ExtractionFailedError(DocumentError):
    kind = DocumentErrorKind.EXTRACTION_FAILED


_NETWORK_MARKERS = ("timeout", "timed out", "econnreset", "enotfound", "network", "connection")


def classify_error(error: BaseException) -> ErrorClass:
    """Map a raw exception to an :class:`ErrorClass`.

    Status codes are read from ``status_code``, ``status`` or ``code``
    attributes (or ``response.status_code``), which covers the OpenAI,
    Anthropic and httpx exception shapes. Message heuristics apply when no
    status is present or the status is not conclusive.
    """
    if isinstance(error, NonRetryableError):
        return ErrorClass.NON_RETRYABLE

    status = _status_code(error)
    message = str(error).lower()

    if status == 529 or "overloaded" in message:
        return ErrorClass.OVERLOADED
    if status == 429 or "rate limit" in message:
        return ErrorClass.RATE_LIMITED
    if status is not None and 500 <= status < 600:
        return ErrorClass.TRANSIENT_SERVER
    if isinstance(error, (TimeoutError, asyncio.TimeoutError, ConnectionError)):
        return ErrorClass.NETWORK_TIMEOUT
    if any(marker in message for marker in _NETWORK_MARKERS):
        return ErrorClass.NETWORK_TIMEOUT
    return ErrorClass.NON_RETRYABLE


def is_overload(error: BaseException) -> bool:
    if isinstance(error, NonRetryableError):
        return False
    return classify_error(error) is ErrorClass.OVERLOADED


def _status_code(error: BaseException) -> int | None:
    for attr in ("status_code", "status", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int):
        return value
    return None
