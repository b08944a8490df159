import asyncio

import pytest

from chat_agent.agent.context import AuthTokens, RequestContext, ToolExecutionTracker


def test_drain_returns_records_once() -> None:
    tracker = ToolExecutionTracker()
    tracker.record("search_web", {"query": "news"}, {"success": True}, 12.5)
    tracker.record("list_drive_files", {}, {"success": False}, 3.0)

    drained = tracker.drain_and_clear()

    assert [record.name for record in drained] == ["search_web", "list_drive_files"]
    assert drained[0].timestamp
    assert tracker.drain_and_clear() == []
    assert len(tracker) == 0


def test_recorded_input_is_a_copy() -> None:
    tracker = ToolExecutionTracker()
    payload = {"query": "a"}
    tracker.record("search_web", payload, None, 1.0)
    payload["query"] = "changed"

    assert tracker.drain_and_clear()[0].input == {"query": "a"}


@pytest.mark.asyncio
async def test_concurrent_requests_do_not_share_records() -> None:
    async def _request(name: str) -> list[str]:
        context = RequestContext(conversation_id=name, auth_tokens=AuthTokens(calendar=f"tok-{name}"))
        for step in range(3):
            await asyncio.sleep(0)
            context.tracker.record(f"{name}-tool-{step}", {}, None, 0.0)
        return [record.name for record in context.tracker.drain_and_clear()]

    first, second = await asyncio.gather(_request("a"), _request("b"))

    assert first == ["a-tool-0", "a-tool-1", "a-tool-2"]
    assert second == ["b-tool-0", "b-tool-1", "b-tool-2"]
