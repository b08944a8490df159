import base64

import pytest
from fastapi.testclient import TestClient

from chat_agent.api import main
from chat_agent.errors import NonRetryableError


@pytest.fixture()
def client(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(main._settings.agent, "enable_mock_mode", True)
    with TestClient(main.app) as test_client:
        yield test_client


def test_chat_in_mock_mode_returns_camel_case_payload(client: TestClient) -> None:
    response = client.post(
        "/api/chat",
        json={"message": "Search the latest news", "conversationId": "conv-api", "conversationLength": 0},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["conversationId"] == "conv-api"
    assert payload["model"].endswith("-mock")
    assert payload["degraded"] is True
    assert payload["usage"]["totalTokens"] == payload["usage"]["inputTokens"] + payload["usage"]["outputTokens"]
    assert payload["toolCalls"][0]["name"] == "web_search"
    assert "durationMs" in payload["toolCalls"][0]
    assert "simulated response" in payload["message"]


def test_chat_accepts_attachment_aliases_and_records_trace(client: TestClient) -> None:
    encoded = base64.b64encode(b"Meeting notes for the quarterly planning session.").decode("ascii")
    response = client.post(
        "/api/chat",
        json={
            "message": "Summarize the file",
            "attachments": [{"name": "notes.txt", "base64": encoded, "mimeType": "text/plain"}],
        },
    )
    assert response.status_code == 200

    traces = client.get("/traces").json()["items"]
    assert traces
    latest = traces[-1]
    detail = client.get(f"/traces/{latest['trace_id']}")
    assert detail.status_code == 200
    assert detail.json()["conversation_id"] == response.json()["conversationId"]
    assert client.get("/traces/does-not-exist").status_code == 404

    metrics = client.get("/metrics").json()
    assert metrics["total_requests"] >= 1
    assert metrics["degraded_requests"] >= 1
    assert metrics["total_estimated_cost_usd"] == 0.0


def test_blank_message_is_rejected(client: TestClient) -> None:
    assert client.post("/api/chat", json={"message": ""}).status_code == 422
    assert client.post("/api/chat", json={"message": "   "}).status_code == 422


def test_upstream_errors_map_to_status_codes(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    async def _rejected(*args, **kwargs):
        raise NonRetryableError(RuntimeError("invalid api key"))

    async def _broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(main._orchestrator, "handle", _rejected)
    rejected = client.post("/api/chat", json={"message": "Hi"})
    assert rejected.status_code == 502
    assert rejected.json()["success"] is False

    monkeypatch.setattr(main._orchestrator, "handle", _broken)
    broken = client.post("/api/chat", json={"message": "Hi"})
    assert broken.status_code == 500
    assert broken.json() == {"success": False, "message": "boom"}


def test_health_cache_stats_and_prompt_info(client: TestClient) -> None:
    health = client.get("/health").json()
    assert health["status"] == "ok"
    assert health["mode"] == "mock"

    info = client.get("/api/prompt-info").json()
    assert info["version"] == "2.1.0"
    assert info["prompt_length"] > 0
    assert "prompt-cache" in info["features"]

    stats = client.get("/api/cache-stats").json()
    assert stats["prompt_cache"]["hits"] >= 1
    assert stats["prompt_cache"]["entries"] >= 4
    assert stats["prompt_cache_info"]["size"] == stats["prompt_cache"]["entries"]
    assert "document_results_cached" in stats
