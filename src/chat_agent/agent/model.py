"""Language-model collaborator and its LangChain implementation."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any, Protocol

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_core.tools import BaseTool

from chat_agent.config import Settings
from chat_agent.obs.log import get_logger
from chat_agent.types import Generation, TokenUsage

logger = get_logger(__name__)


class LanguageModel(Protocol):
    """What the orchestrator and the document pipeline need from a model."""

    model_name: str

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        tools: Sequence[BaseTool] | None = None,
        max_output_tokens: int | None = None,
        temperature: float | None = None,
    ) -> Generation: ...


class LangChainModel:
    """Runs a LangChain chat model with a bounded tool-calling loop.

    Tools are bound with ``bind_tools``; each tool call the model emits is
    executed and fed back as a ``ToolMessage`` until the model answers in
    plain text or ``max_tool_iterations`` rounds have been spent.
    """

    def __init__(self, llm: Any, *, max_tool_iterations: int = 6, model_name: str | None = None) -> None:
        self.llm = llm
        self.max_tool_iterations = max_tool_iterations
        self.model_name = model_name or str(
            getattr(llm, "model_name", None) or getattr(llm, "model", None) or "langchain"
        )

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        tools: Sequence[BaseTool] | None = None,
        max_output_tokens: int | None = None,
        temperature: float | None = None,
    ) -> Generation:
        options: dict[str, Any] = {}
        if max_output_tokens is not None:
            options["max_tokens"] = max_output_tokens
        if temperature is not None:
            options["temperature"] = temperature

        tool_list = list(tools or [])
        if tool_list:
            runnable = self.llm.bind_tools(tool_list, **options)
        elif options:
            runnable = self.llm.bind(**options)
        else:
            runnable = self.llm
        tools_by_name = {tool.name: tool for tool in tool_list}

        messages: list[BaseMessage] = []
        if system:
            messages.append(SystemMessage(content=system))
        messages.append(HumanMessage(content=prompt))

        usage = TokenUsage()
        response: AIMessage | None = None
        for _ in range(self.max_tool_iterations):
            response = await runnable.ainvoke(messages)
            _add_usage(usage, response)
            messages.append(response)

            tool_calls = getattr(response, "tool_calls", None) or []
            if not tool_calls:
                break
            for call in tool_calls:
                messages.append(await _run_tool_call(tools_by_name, call))
        else:
            logger.warning("Tool loop stopped after %d iterations", self.max_tool_iterations)

        text = _content_text(response.content) if response is not None else ""
        model = self.model_name
        if response is not None:
            model = str(response.response_metadata.get("model_name") or model)
        return Generation(text=text, model=model, usage=usage if usage.total_tokens else None)


def create_language_model(settings: Settings) -> LangChainModel | None:
    """Build the OpenAI-backed model when a key is configured, else ``None``."""
    if not settings.openai_api_key:
        return None

    from langchain_openai import ChatOpenAI

    llm = ChatOpenAI(
        model=settings.agent.model_name,
        temperature=settings.agent.temperature,
        api_key=settings.openai_api_key,
        max_retries=0,
    )
    return LangChainModel(
        llm,
        max_tool_iterations=settings.agent.max_tool_iterations,
        model_name=settings.agent.model_name,
    )


async def _run_tool_call(tools_by_name: dict[str, BaseTool], call: dict[str, Any]) -> ToolMessage:
    name = call["name"]
    tool = tools_by_name.get(name)
    if tool is None:
        content = json.dumps({"success": False, "error": f"Unknown tool: {name}"})
    else:
        content = str(await tool.ainvoke(call.get("args", {})))
    return ToolMessage(content=content, tool_call_id=call.get("id") or name, name=name)


def _add_usage(usage: TokenUsage, response: Any) -> None:
    metadata = getattr(response, "usage_metadata", None)
    if not metadata:
        return
    usage.input_tokens += int(metadata.get("input_tokens", 0))
    usage.output_tokens += int(metadata.get("output_tokens", 0))
    usage.total_tokens += int(metadata.get("total_tokens", 0))


def _content_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            elif isinstance(item, str):
                parts.append(item)
        return " ".join(parts).strip()
    return str(content)
