"""Deterministic mock responder used when the upstream model is unavailable."""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from hashlib import sha256

from chat_agent.errors import is_overload
from chat_agent.obs.log import get_logger

logger = get_logger(__name__)

WEB_SEARCH = "web_search"
CALENDAR = "calendar"
DRIVE = "drive"
DOCUMENT_ANALYSIS = "document_analysis"

# Approximate: plain substring matching over English and Spanish keywords.
BADGE_KEYWORDS: dict[str, tuple[str, ...]] = {
    WEB_SEARCH: ("busca", "search", "noticias", "news", "información", "últimas"),
    CALENDAR: ("calendario", "calendar", "reunión", "meeting", "cita", "evento"),
    DRIVE: ("drive", "documento", "archivo", "file", "pdf", "guardar"),
    DOCUMENT_ANALYSIS: ("analiza", "analyze", "resumen", "summary", "extracto"),
}

BADGE_LINES = {
    WEB_SEARCH: "Web search: relevant information would be looked up online",
    CALENDAR: "Calendar: your calendar would be checked for related events",
    DRIVE: "Drive: documents in your drive would be consulted",
    DOCUMENT_ANALYSIS: "Document analysis: attached documents would be processed",
}

SIMULATED_DISCLAIMER = (
    "Note: this is a simulated response. The assistant's language model is "
    "temporarily unavailable, so no real information was retrieved."
)

EMERGENCY_DISCLAIMER = (
    "The service is running in emergency mode because the model provider is "
    "overloaded. Please try again in a few minutes."
)


@dataclass(slots=True)
class MockToolBadge:
    tool_name: str
    status: str
    execution_time_ms: int


@dataclass(slots=True)
class MockResult:
    message: str
    conversation_id: str
    tool_badges: list[MockToolBadge] = field(default_factory=list)
    success: bool = True


class MockResponder:
    """Builds a clearly labelled simulated reply without calling any model.

    Output depends only on the inputs: badge execution times derive from a
    hash of the message and tool name.
    """

    def generate(self, user_message: str, conversation_id: str, *, emergency: bool = False) -> MockResult:
        badges = [
            MockToolBadge(
                tool_name=tool,
                status="success",
                execution_time_ms=_simulated_duration(user_message, tool),
            )
            for tool in infer_tool_badges(user_message)
        ]
        logger.info(
            "Generated mock response (%s) with badges %s",
            "emergency" if emergency else "proactive",
            [badge.tool_name for badge in badges],
        )
        return MockResult(
            message=self._message(user_message, badges, emergency=emergency),
            conversation_id=conversation_id,
            tool_badges=badges,
        )

    @staticmethod
    def _message(user_message: str, badges: list[MockToolBadge], *, emergency: bool) -> str:
        lines = ["I processed your request with the following tools:", ""]
        lines.extend(f"- {BADGE_LINES[badge.tool_name]}" for badge in badges)
        lines.append("")
        lines.append(
            "Under normal conditions you would receive real, up-to-date information "
            f'for your request: "{user_message}"'
        )
        lines.append("")
        lines.append(SIMULATED_DISCLAIMER)
        if emergency:
            lines.append("")
            lines.append(EMERGENCY_DISCLAIMER)
        return "\n".join(lines)


def infer_tool_badges(user_message: str) -> list[str]:
    message = user_message.lower()
    tools = [tool for tool, keywords in BADGE_KEYWORDS.items() if any(word in message for word in keywords)]
    return tools or [WEB_SEARCH]


def _simulated_duration(user_message: str, tool: str) -> int:
    digest = sha256(f"{tool}:{user_message}".encode("utf-8")).hexdigest()
    return 500 + int(digest[:8], 16) % 2000


class OverloadMonitor:
    """Sliding window of recent overload-class failures."""

    def __init__(
        self,
        window_seconds: float = 300.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds
        self._clock = clock
        self._events: deque[tuple[float, BaseException]] = deque()
        self._lock = threading.Lock()

    def record(self, error: BaseException) -> None:
        if not is_overload(error):
            return
        with self._lock:
            self._events.append((self._clock(), error))
            self._prune()
        logger.warning("Recorded upstream overload (%d in window)", len(self))

    def recent_errors(self) -> list[BaseException]:
        with self._lock:
            self._prune()
            return [error for _, error in self._events]

    def __len__(self) -> int:
        with self._lock:
            self._prune()
            return len(self._events)

    def _prune(self) -> None:
        cutoff = self._clock() - self.window_seconds
        while self._events and self._events[0][0] < cutoff:
            self._events.popleft()


def should_use_mock(
    enable_mock_mode: bool,
    recent_overloads: Iterable[BaseException],
    threshold: int = 3,
) -> bool:
    """Proactive switch: explicit mock mode, or ``threshold`` recent overload errors."""
    if enable_mock_mode:
        return True
    return sum(1 for error in recent_overloads if is_overload(error)) >= threshold
