"""FastAPI entrypoint for chat, cache and trace endpoints."""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from chat_agent.agent.context import AuthTokens
from chat_agent.agent.model import create_language_model
from chat_agent.agent.orchestrator import RequestOrchestrator
from chat_agent.agent.prompts import PROMPT_FEATURES, PROMPT_VERSION, STATIC_FRAGMENTS, PromptBuilder
from chat_agent.agent.registry import ToolRegistry
from chat_agent.agent.tools import register_builtin_tools
from chat_agent.cache.prompt_cache import PromptCache
from chat_agent.config import Settings
from chat_agent.documents.analyzer import DocumentAnalyzer
from chat_agent.errors import NonRetryableError
from chat_agent.obs.log import get_logger
from chat_agent.obs.tracing import TraceStore
from chat_agent.types import Attachment, ChatOrchestrationResult

logger = get_logger(__name__)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatAttachment(_CamelModel):
    """Accepts both ``{content|base64|file}`` and ``{fileName|name}`` spellings."""

    content: str | None = None
    base64: str | None = None
    file: str | None = None
    file_name: str | None = None
    name: str | None = None
    mime_type: str = "application/octet-stream"
    analysis_type: str = "general"

    def to_attachment(self) -> Attachment:
        return Attachment(
            file_name=self.file_name or self.name or "attachment",
            content_base64=self.content or self.base64 or self.file,
            mime_type=self.mime_type,
            analysis_type=self.analysis_type,
        )


class ChatRequest(_CamelModel):
    message: str = Field(min_length=1)
    conversation_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    conversation_length: int = Field(default=0, ge=0)
    attachments: list[ChatAttachment] = Field(default_factory=list)


class UsageModel(_CamelModel):
    input_tokens: int
    output_tokens: int
    total_tokens: int


class ToolCallModel(_CamelModel):
    name: str
    input: dict[str, Any]
    output: Any
    timestamp: str
    duration_ms: float


class ChatResponse(_CamelModel):
    success: bool
    message: str
    conversation_id: str
    model: str
    usage: UsageModel
    tool_calls: list[ToolCallModel]
    timestamp: str
    degraded: bool

    @classmethod
    def from_result(cls, result: ChatOrchestrationResult) -> "ChatResponse":
        return cls(
            success=result.success,
            message=result.message_text,
            conversation_id=result.conversation_id,
            model=result.model,
            usage=UsageModel(**asdict(result.usage)),
            tool_calls=[ToolCallModel(**asdict(call)) for call in result.tool_calls],
            timestamp=result.timestamp,
            degraded=result.degraded,
        )


_settings = Settings.from_env()
_model = create_language_model(_settings)
_prompt_cache = PromptCache(_settings.cache)
_prompt_builder = PromptBuilder(_prompt_cache)
_analyzer = DocumentAnalyzer(_model, _settings.analysis)
_registry = ToolRegistry()
register_builtin_tools(_registry, _analyzer)
_trace_store = TraceStore()
_orchestrator = RequestOrchestrator(
    model=_model,
    analyzer=_analyzer,
    registry=_registry,
    prompt_builder=_prompt_builder,
    trace_store=_trace_store,
    config=_settings.agent,
)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    _prompt_cache.preload(STATIC_FRAGMENTS)
    _prompt_cache.start_auto_cleanup(_settings.cache.sweep_interval_seconds)
    logger.info(
        "Chat service ready (model=%s, mock_mode=%s)",
        _orchestrator.model_name,
        _model is None or _settings.agent.enable_mock_mode,
    )
    try:
        yield
    finally:
        await _prompt_cache.stop_auto_cleanup()


app = FastAPI(title="Chat Agent Service", version="0.1.0", lifespan=lifespan)


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "status": "ok",
        "llm_configured": _model is not None,
        "mode": "mock" if _model is None or _settings.agent.enable_mock_mode else "live",
        "recent_overloads": len(_orchestrator.overload_monitor),
        "trace_count": len(_trace_store),
    }


@app.post("/api/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    x_calendar_token: str | None = Header(default=None),
    x_drive_token: str | None = Header(default=None),
) -> ChatResponse | JSONResponse:
    try:
        result = await _orchestrator.handle(
            request.message,
            request.conversation_id,
            attachments=[attachment.to_attachment() for attachment in request.attachments],
            conversation_length=request.conversation_length,
            auth_tokens=AuthTokens(calendar=x_calendar_token, drive=x_drive_token),
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except NonRetryableError as exc:
        logger.error("Upstream rejected request %s: %s", request.conversation_id, exc.cause)
        return JSONResponse(status_code=502, content={"success": False, "message": str(exc)})
    except Exception as exc:
        logger.exception("Chat request %s failed", request.conversation_id)
        return JSONResponse(status_code=500, content={"success": False, "message": str(exc)})
    return ChatResponse.from_result(result)


@app.get("/api/cache-stats")
def cache_stats() -> dict[str, Any]:
    return {
        "prompt_cache": asdict(_prompt_cache.stats()),
        "prompt_cache_info": asdict(_prompt_cache.info()),
        "document_results_cached": _analyzer.cached_results,
    }


@app.get("/api/prompt-info")
def prompt_info() -> dict[str, Any]:
    prompt = _prompt_builder.build_system_prompt()
    return {
        "prompt_length": len(prompt),
        "version": PROMPT_VERSION,
        "features": PROMPT_FEATURES,
        "cache": asdict(_prompt_cache.stats()),
    }


@app.get("/traces")
def traces(limit: int = 20) -> dict[str, Any]:
    records = [asdict(record) for record in _trace_store.list_recent(limit=limit)]
    return {"items": records}


@app.get("/traces/{trace_id}")
def trace_detail(trace_id: str) -> dict[str, Any]:
    try:
        record = _trace_store.get(trace_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return asdict(record)


@app.get("/metrics")
def metrics() -> dict[str, Any]:
    return _trace_store.summary()
