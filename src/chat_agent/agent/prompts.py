"""System prompt fragments and builders, served through the prompt cache."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from chat_agent.cache.prompt_cache import PromptCache
from chat_agent.types import AnalyzedAttachment

PROMPT_VERSION = "2.1.0"

PROMPT_FEATURES = [
    "context-aware",
    "temporal-context",
    "tool-guidelines",
    "conversation-patterns",
    "prompt-cache",
    "document-preanalysis",
]

BASE_SYSTEM_PROMPT = """
You are a friendly, efficient personal assistant.

Identity:
- Answer clearly and directly, in the language the user writes in.
- Be honest about what you do not know and never invent facts, events or files.
- Keep answers concise unless the user asks for detail.
""".strip()

TOOL_GUIDELINES = """
## Tool usage
Use a tool only when it adds real value to the answer:
- search_web: current or specific information you cannot answer from knowledge.
- list_calendar_events: the user's agenda between concrete dates.
- list_drive_files: locating or listing the user's files.
- analyze_document: documents the user shares that have not been analyzed yet.

Do not use tools for greetings, small talk, general knowledge or the current
date and time, which you already have. Prefer a single well-chosen call over
several speculative ones. When a tool reports an error, explain it plainly
and suggest what the user can do.
""".strip()

CONVERSATION_PATTERNS = """
## Conversation patterns
- Greetings: reply warmly and briefly, offer help.
- Direct questions: answer first, then add context if useful.
- Ambiguous requests: ask one short clarifying question.
- Follow-ups: build on what was already said instead of repeating it.
""".strip()

CONVERSATION_EXAMPLES = """
## Examples
User: Hi!
Assistant: Hi! How can I help you today?

User: What meetings do I have tomorrow?
Assistant: (calls list_calendar_events for tomorrow, then summarizes the events)

User: What is the capital of France?
Assistant: Paris.
""".strip()

FINAL_INSTRUCTIONS = """
## Final instructions
Think before acting, answer directly when you can, use tools when they help,
and offer a relevant follow-up.
""".strip()

STATIC_FRAGMENTS: dict[str, str] = {
    "BASE_SYSTEM": BASE_SYSTEM_PROMPT,
    "TOOL_GUIDELINES": TOOL_GUIDELINES,
    "CONVERSATION_PATTERNS": CONVERSATION_PATTERNS,
    "EXAMPLES": CONVERSATION_EXAMPLES,
}

FIRST_MESSAGE_CONTEXT = (
    "## Context: first interaction\n"
    "This is the first message of the conversation. Be welcoming and briefly "
    "explain what you can help with."
)

RECENT_TOOLS_CONTEXT = (
    "## Context: tools used recently\n"
    "Tools were already used in this conversation. Avoid calling them again "
    "unless it is really necessary."
)

DOCUMENTS_PREANALYZED_INSTRUCTION = (
    "IMPORTANT: the attached documents have already been analyzed. Do NOT use the "
    "analyze_document tool to analyze them again; everything relevant is included "
    "in the user's message."
)


class PromptBuilder:
    """Assembles system prompts from cached fragments."""

    def __init__(
        self,
        cache: PromptCache,
        *,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.cache = cache
        self._clock = clock

    def fragment(self, category: str) -> str:
        return self.cache.get_or_set(STATIC_FRAGMENTS[category], category)

    def temporal_context(self) -> str:
        now = self._clock()
        content = (
            "## Current temporal context\n"
            f"- Current date: {now.strftime('%A, %B %d, %Y')}\n"
            f"- Current time: {now.strftime('%H:%M')} ({now.tzname() or 'UTC'})\n\n"
            "You already know the date and time; do not use tools for basic date or time questions."
        )
        return self.cache.get_or_set(content, "TEMPORAL_CONTEXT")

    def build_system_prompt(self, *, include_examples: bool = True, include_datetime: bool = True) -> str:
        sections = [self.fragment("BASE_SYSTEM")]
        if include_datetime:
            sections.append(self.temporal_context())
        sections.append(self.fragment("TOOL_GUIDELINES"))
        sections.append(self.fragment("CONVERSATION_PATTERNS"))
        if include_examples:
            sections.append(self.fragment("EXAMPLES"))
        sections.append(FINAL_INSTRUCTIONS)
        return "\n\n".join(sections)

    def build_context_aware_prompt(self, *, has_used_tools: bool = False, conversation_length: int = 0) -> str:
        base = self.build_system_prompt(include_examples=False)
        if conversation_length == 0:
            return f"{base}\n\n{FIRST_MESSAGE_CONTEXT}"
        if has_used_tools:
            return f"{base}\n\n{RECENT_TOOLS_CONTEXT}"
        return base

    def build_lightweight_prompt(self) -> str:
        return f"{self.fragment('BASE_SYSTEM')}\n\n{self.temporal_context()}"


def build_document_block(documents: Sequence[AnalyzedAttachment]) -> str:
    """Render analyzed attachments for the user turn, with format-specific guidance."""
    if not documents:
        return ""

    lines = ["===== ATTACHED DOCUMENT CONTENT =====", ""]
    for document in documents:
        lines.append(f"Name: {document.name}")
        lines.append(f"Type: {document.mime_type}")
        lines.append("")
        if document.summary:
            lines.extend(["Summary:", document.summary, ""])
        lines.extend(["Content:", document.excerpt, ""])
    lines.append("===== END OF DOCUMENT CONTENT =====")
    lines.append("")

    request = "Please analyze this document in detail."
    if any(_is_spreadsheet(document.mime_type) for document in documents):
        request += (
            " Pay special attention to numeric data and the relationships between rows and columns."
            " No additional financial analysis is needed; work from the content provided."
        )
    elif any(document.name.lower().endswith(".csv") for document in documents):
        request += " Identify patterns in the data and present clear conclusions."
    elif any(document.name.lower().endswith(".pdf") for document in documents):
        request += " Identify the main sections and key points of the document."
    lines.append(request)
    return "\n".join(lines)


def _is_spreadsheet(mime_type: str) -> bool:
    lowered = mime_type.lower()
    return "spreadsheet" in lowered or "excel" in lowered
