"""Per-request state: credentials and the tool execution audit trail."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from chat_agent.types import ToolExecutionRecord


class ToolExecutionTracker:
    """Collects tool invocation records for exactly one in-flight request."""

    def __init__(self) -> None:
        self._records: list[ToolExecutionRecord] = []
        self._lock = threading.Lock()

    def record(
        self,
        name: str,
        input: dict[str, Any],
        output: Any,
        duration_ms: float,
    ) -> ToolExecutionRecord:
        entry = ToolExecutionRecord(
            name=name,
            input=dict(input),
            output=output,
            timestamp=datetime.now(timezone.utc).isoformat(),
            duration_ms=duration_ms,
        )
        with self._lock:
            self._records.append(entry)
        return entry

    def drain_and_clear(self) -> list[ToolExecutionRecord]:
        """Return everything recorded so far and reset; a second drain is empty."""
        with self._lock:
            drained, self._records = self._records, []
        return drained

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


@dataclass(slots=True, frozen=True)
class AuthTokens:
    """Per-request delegated credentials for the calendar and drive backends."""

    calendar: str | None = None
    drive: str | None = None


@dataclass(slots=True)
class RequestContext:
    conversation_id: str
    auth_tokens: AuthTokens = field(default_factory=AuthTokens)
    tracker: ToolExecutionTracker = field(default_factory=ToolExecutionTracker)
    documents_preanalyzed: bool = False
