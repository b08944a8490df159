import json

import pytest
from langchain_core.messages import AIMessage, ToolMessage
from pydantic import BaseModel

from chat_agent.agent.context import RequestContext
from chat_agent.agent.model import LangChainModel
from chat_agent.agent.registry import ToolRegistry, ToolSpec


class FakeChatModel:
    """Replays AI messages and remembers what it was bound with."""

    model_name = "fake-chat"

    def __init__(self, responses: list[AIMessage]) -> None:
        self.responses = list(responses)
        self.bound: dict = {}
        self.seen: list[list] = []

    def bind_tools(self, tools, **kwargs):
        self.bound = {"tools": [tool.name for tool in tools], **kwargs}
        return self

    def bind(self, **kwargs):
        self.bound = kwargs
        return self

    async def ainvoke(self, messages):
        self.seen.append(list(messages))
        return self.responses.pop(0)


class QueryInput(BaseModel):
    query: str


async def _search(data: QueryInput, context: RequestContext) -> dict:
    return {"success": True, "results": [data.query.upper()]}


@pytest.mark.asyncio
async def test_tool_calls_run_and_feed_back_until_text_answer() -> None:
    registry = ToolRegistry()
    registry.register(ToolSpec(name="search_web", description="search", args_schema=QueryInput, handler=_search))
    context = RequestContext(conversation_id="c")
    llm = FakeChatModel(
        [
            AIMessage(
                content="",
                tool_calls=[{"name": "search_web", "args": {"query": "news"}, "id": "call-1"}],
                usage_metadata={"input_tokens": 10, "output_tokens": 2, "total_tokens": 12},
            ),
            AIMessage(
                content="Here is the news.",
                usage_metadata={"input_tokens": 20, "output_tokens": 5, "total_tokens": 25},
            ),
        ]
    )
    model = LangChainModel(llm)

    generation = await model.generate(
        "what's new?", system="be brief", tools=registry.as_langchain_tools(context), temperature=0.1
    )

    assert generation.text == "Here is the news."
    assert generation.model == "fake-chat"
    assert generation.usage is not None
    assert generation.usage.total_tokens == 37
    assert llm.bound == {"tools": ["search_web"], "temperature": 0.1}
    tool_message = llm.seen[1][-1]
    assert isinstance(tool_message, ToolMessage)
    assert tool_message.tool_call_id == "call-1"
    assert json.loads(tool_message.content) == {"success": True, "results": ["NEWS"]}
    assert [record.name for record in context.tracker.drain_and_clear()] == ["search_web"]


@pytest.mark.asyncio
async def test_tool_loop_is_bounded() -> None:
    looping = AIMessage(content="", tool_calls=[{"name": "missing", "args": {}, "id": "x"}])
    llm = FakeChatModel([looping] * 5)
    model = LangChainModel(llm, max_tool_iterations=2)

    generation = await model.generate("loop", max_output_tokens=50)

    assert len(llm.seen) == 2
    assert generation.text == ""
    assert generation.usage is None
    assert llm.bound == {"max_tokens": 50}
