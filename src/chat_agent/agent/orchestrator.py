"""Request orchestration: documents, prompt assembly, model call, degradation."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from datetime import datetime, timezone

from chat_agent.agent.context import AuthTokens, RequestContext
from chat_agent.agent.fallback import MockResponder, MockResult, OverloadMonitor, should_use_mock
from chat_agent.agent.model import LanguageModel
from chat_agent.agent.prompts import (
    DOCUMENTS_PREANALYZED_INSTRUCTION,
    PromptBuilder,
    build_document_block,
)
from chat_agent.agent.registry import ToolRegistry
from chat_agent.agent.tools import ANALYZE_DOCUMENT
from chat_agent.config import PATIENT_POLICY, AgentConfig
from chat_agent.documents.analyzer import DocumentAnalyzer
from chat_agent.errors import is_overload
from chat_agent.obs.log import get_logger
from chat_agent.obs.tracing import Timer, TraceStore, estimate_token_count
from chat_agent.resilience.retry import Sleep, with_retry
from chat_agent.types import (
    AnalyzedAttachment,
    Attachment,
    ChatOrchestrationResult,
    Generation,
    TokenUsage,
    ToolExecutionRecord,
)

logger = get_logger(__name__)


class RequestOrchestrator:
    """Turns one chat message (plus attachments) into one assistant reply.

    The orchestrator owns the degradation policy: it answers with the mock
    responder up front when mock mode is on, no model is configured, or the
    provider has recently been overloaded, and falls back to it reactively
    when overload persists through the patient retry policy. Any other
    failure propagates to the caller.
    """

    def __init__(
        self,
        *,
        model: LanguageModel | None,
        analyzer: DocumentAnalyzer,
        registry: ToolRegistry,
        prompt_builder: PromptBuilder,
        trace_store: TraceStore | None = None,
        config: AgentConfig | None = None,
        mock_responder: MockResponder | None = None,
        overload_monitor: OverloadMonitor | None = None,
        retry_sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.model = model
        self.analyzer = analyzer
        self.registry = registry
        self.prompt_builder = prompt_builder
        self.trace_store = trace_store if trace_store is not None else TraceStore()
        self.config = config or AgentConfig()
        self.mock_responder = mock_responder or MockResponder()
        self.overload_monitor = (
            overload_monitor
            if overload_monitor is not None
            else OverloadMonitor(self.config.overload_window_seconds)
        )
        self._retry_sleep = retry_sleep

    @property
    def model_name(self) -> str:
        return self.model.model_name if self.model is not None else self.config.model_name

    async def handle(
        self,
        message: str,
        conversation_id: str,
        *,
        attachments: Sequence[Attachment] | None = None,
        conversation_length: int = 0,
        auth_tokens: AuthTokens | None = None,
    ) -> ChatOrchestrationResult:
        if not message or not message.strip():
            raise ValueError("Message must not be empty")

        analyzed_count = 0
        with Timer() as timer:
            if self._use_mock():
                logger.info("Answering %s in mock mode", conversation_id)
                result = self._mock_result(message, conversation_id, emergency=False)
            else:
                documents = await self.analyze_attachments(attachments or [])
                analyzed_count = len(documents)
                result = await self._generate(
                    self.model,
                    message,
                    conversation_id,
                    documents=documents,
                    conversation_length=conversation_length,
                    auth_tokens=auth_tokens or AuthTokens(),
                )

        self.trace_store.create_record(
            conversation_id=conversation_id,
            message=message,
            answer=result.message_text,
            model=result.model,
            degraded=result.degraded,
            tool_names=[call.name for call in result.tool_calls],
            attachments_analyzed=analyzed_count,
            input_tokens=result.usage.input_tokens,
            output_tokens=result.usage.output_tokens,
            latency_ms=timer.elapsed_ms,
        )
        if timer.elapsed_ms > self.config.target_latency_seconds * 1000.0:
            logger.warning("Request %s took %.0fms", conversation_id, timer.elapsed_ms)
        return result

    async def analyze_attachments(self, attachments: Sequence[Attachment]) -> list[AnalyzedAttachment]:
        """Analyze attachments concurrently; failures are logged and left out."""
        semaphore = asyncio.Semaphore(self.config.max_parallel_documents)

        async def _one(attachment: Attachment) -> AnalyzedAttachment | None:
            if not attachment.content_base64:
                return None
            async with semaphore:
                try:
                    result = await self.analyzer.analyze_base64(
                        attachment.content_base64,
                        attachment.file_name,
                        attachment.analysis_type,
                    )
                except Exception:
                    logger.exception("Error processing attachment %s", attachment.file_name)
                    return None
            if not result.success:
                logger.warning("Skipping attachment %s: %s", attachment.file_name, result.error)
                return None
            return AnalyzedAttachment(
                name=attachment.file_name,
                mime_type=attachment.mime_type,
                excerpt=result.content[: self.config.document_excerpt_chars],
                summary=result.summary,
                metadata=result.metadata,
            )

        results = await asyncio.gather(*(_one(attachment) for attachment in attachments))
        return [item for item in results if item is not None]

    def _use_mock(self) -> bool:
        if self.model is None:
            return True
        return should_use_mock(
            self.config.enable_mock_mode,
            self.overload_monitor.recent_errors(),
            self.config.overload_threshold,
        )

    async def _generate(
        self,
        model: LanguageModel,
        message: str,
        conversation_id: str,
        *,
        documents: list[AnalyzedAttachment],
        conversation_length: int,
        auth_tokens: AuthTokens,
    ) -> ChatOrchestrationResult:
        context = RequestContext(
            conversation_id=conversation_id,
            auth_tokens=auth_tokens,
            documents_preanalyzed=bool(documents),
        )

        system = self.prompt_builder.build_context_aware_prompt(conversation_length=conversation_length)
        prompt = message
        if documents:
            system = f"{system}\n\n{DOCUMENTS_PREANALYZED_INSTRUCTION}"
            prompt = f"{message}\n\n{build_document_block(documents)}"
        tools = self.registry.as_langchain_tools(
            context, exclude={ANALYZE_DOCUMENT} if context.documents_preanalyzed else ()
        )

        async def _attempt() -> Generation:
            try:
                return await model.generate(
                    prompt,
                    system=system,
                    tools=tools,
                    temperature=self.config.temperature,
                )
            except Exception as exc:
                self.overload_monitor.record(exc)
                raise

        try:
            generation = await with_retry(
                _attempt,
                PATIENT_POLICY,
                operation="chat completion",
                sleep=self._retry_sleep,
            )
        except Exception as exc:
            context.tracker.drain_and_clear()
            if not is_overload(exc):
                raise
            logger.error("Provider still overloaded after retries; serving fallback for %s", conversation_id)
            return self._mock_result(message, conversation_id, emergency=True)

        usage = generation.usage or TokenUsage(
            input_tokens=estimate_token_count(system + prompt),
            output_tokens=estimate_token_count(generation.text),
        )
        if not usage.total_tokens:
            usage.total_tokens = usage.input_tokens + usage.output_tokens

        return ChatOrchestrationResult(
            success=True,
            message_text=generation.text or "Response generated",
            conversation_id=conversation_id,
            model=generation.model or model.model_name,
            timestamp=_now(),
            tool_calls=context.tracker.drain_and_clear(),
            usage=usage,
        )

    def _mock_result(self, message: str, conversation_id: str, *, emergency: bool) -> ChatOrchestrationResult:
        mock = self.mock_responder.generate(message, conversation_id, emergency=emergency)
        suffix = "fallback" if emergency else "mock"
        input_tokens = estimate_token_count(message)
        output_tokens = estimate_token_count(mock.message)
        return ChatOrchestrationResult(
            success=mock.success,
            message_text=mock.message,
            conversation_id=conversation_id,
            model=f"{self.model_name}-{suffix}",
            timestamp=_now(),
            tool_calls=_badge_records(mock, message),
            usage=TokenUsage(
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
            degraded=True,
        )


def _badge_records(mock: MockResult, message: str) -> list[ToolExecutionRecord]:
    timestamp = _now()
    return [
        ToolExecutionRecord(
            name=badge.tool_name,
            input={"query": message},
            output={"status": badge.status, "execution_time_ms": badge.execution_time_ms},
            timestamp=timestamp,
            duration_ms=float(badge.execution_time_ms),
        )
        for badge in mock.tool_badges
    ]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
