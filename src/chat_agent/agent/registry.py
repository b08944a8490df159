"""Tool registry built on Pydantic v2 models."""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable, Collection
from time import perf_counter
from typing import Any

from langchain_core.tools import StructuredTool
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from chat_agent.agent.context import RequestContext
from chat_agent.obs.log import get_logger

logger = get_logger(__name__)

ToolHandler = Callable[[BaseModel, RequestContext], Awaitable[dict[str, Any]]]


class ToolSpec(BaseModel):
    """Declarative tool specification for registration and validation."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    description: str
    args_schema: type[BaseModel]
    handler: ToolHandler
    tags: list[str] = Field(default_factory=list)

    def validate_input(self, payload: dict[str, Any]) -> BaseModel:
        return self.args_schema.model_validate(payload)


class ToolRegistry:
    """Stores tool specs, runs them against a request context and exports LangChain tools.

    Every execution is timed and recorded on ``context.tracker``. A handler
    that raises is recorded with an error payload, and that payload is what
    the caller (usually the model) gets back.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._tools:
            raise ValueError(f"Tool already registered: {spec.name}")
        self._tools[spec.name] = spec

    def specs(self) -> list[ToolSpec]:
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools)

    async def execute(
        self, name: str, payload: dict[str, Any], context: RequestContext
    ) -> dict[str, Any]:
        spec = self._tools.get(name)
        if spec is None:
            raise KeyError(f"Unknown tool: {name}")
        return await self._execute_spec(spec, payload, context)

    def as_langchain_tools(
        self, context: RequestContext, exclude: Collection[str] = ()
    ) -> list[StructuredTool]:
        tools: list[StructuredTool] = []
        for spec in self._tools.values():
            if spec.name in exclude:
                continue
            tools.append(
                StructuredTool.from_function(
                    name=spec.name,
                    description=spec.description,
                    # Dict schema: LangChain skips validation, _execute_spec owns it.
                    args_schema=spec.args_schema.model_json_schema(),
                    coroutine=self._build_coroutine(spec, context),
                )
            )
        return tools

    def _build_coroutine(
        self, spec: ToolSpec, context: RequestContext
    ) -> Callable[..., Awaitable[str]]:
        async def _call(**kwargs: Any) -> str:
            try:
                output = await self._execute_spec(spec, kwargs, context)
            except ValidationError as exc:
                logger.warning("Tool %s rejected arguments: %s", spec.name, exc)
                output = {"success": False, "error": f"Invalid arguments for {spec.name}: {exc}"}
                context.tracker.record(spec.name, kwargs, output, 0.0)
            return json.dumps(output, ensure_ascii=False, default=str)

        return _call

    async def _execute_spec(
        self, spec: ToolSpec, payload: dict[str, Any], context: RequestContext
    ) -> dict[str, Any]:
        data = spec.validate_input(payload)
        start = perf_counter()
        try:
            output = await spec.handler(data, context)
        except Exception as exc:
            logger.warning("Tool %s failed: %s", spec.name, exc)
            output = {"success": False, "error": str(exc)}
        duration_ms = (perf_counter() - start) * 1000.0

        context.tracker.record(spec.name, payload, output, duration_ms)
        logger.info("Tool %s finished in %.0fms", spec.name, duration_ms)
        return output
