"""HTTP and SSE tests for the FastAPI app."""

from __future__ import annotations

import json
from typing import Any, Dict, Iterator, List, Tuple

import pytest
from conftest import scripted_llm
from fastapi.testclient import TestClient

from board_agent.api.sse import EventChannel, format_sse
from board_agent.core.dependencies import get_chat_model
from board_agent.core.errors import ModelError
from board_agent.main import app


@pytest.fixture
def client() -> Iterator[TestClient]:
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def use_llm(*responses: Any) -> None:
    llm = scripted_llm(*responses)
    app.dependency_overrides[get_chat_model] = lambda: llm


def parse_sse(body: str) -> List[Tuple[str, Dict[str, Any]]]:
    events = []
    for block in body.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.splitlines())
        events.append((lines["event"], json.loads(lines["data"])))
    return events


def body(instruction: str, snapshot) -> Dict[str, Any]:
    return {"instruction": instruction, "snapshot": snapshot.to_wire()}


class TestIntentEndpoint:
    def test_health(self, client):
        assert client.get("/api/health").json() == {"ok": True}

    def test_success(self, client, board):
        use_llm({"kind": "ChangeView", "viewMode": "todo", "confidence": 0.9, "source": "human"})
        res = client.post("/api/agent/intent", json=body("switch to todo list", board))
        assert res.status_code == 200
        data = res.json()
        assert data["success"] is True
        assert data["intent"]["kind"] == "ChangeView"
        assert data["trace"]["totalLLMCalls"] == 1
        assert len(data["trace"]["steps"]) == 6

    def test_clarification_is_200(self, client, board):
        use_llm({"kind": "DeleteTask", "targetHint": "API", "confidence": 0.9, "source": "human"})
        res = client.post("/api/agent/intent", json=body("delete API", board))
        assert res.status_code == 200
        data = res.json()
        assert data["success"] is True
        assert data["clarification"]["reason"] == "multiple_matches"
        assert len(data["clarification"]["candidates"]) == 2
        assert data["effects"] == []

    def test_bulk_delete_needs_confirmed_flag(self, client, board):
        skeleton = {"kind": "DeleteTask", "targetHint": "all todo tasks", "confidence": 0.9, "source": "human"}
        use_llm(skeleton)
        first = client.post("/api/agent/intent", json=body("delete all todo tasks", board)).json()
        assert first["clarification"]["reason"] == "confirm"
        assert first["effects"] == []

        use_llm(skeleton)
        again = client.post("/api/agent/intent",
                            json={**body("delete all todo tasks", board), "confirmed": True}).json()
        assert again["clarification"] is None
        assert len(again["effects"]) == 1

    def test_compiler_failure_is_400(self, client, board):
        use_llm("not json")
        res = client.post("/api/agent/intent", json=body("do it", board))
        assert res.status_code == 400
        assert res.json()["error"]["phase"] == "compiler"

    def test_blank_instruction_is_422(self, client, board):
        use_llm("{}")
        assert client.post("/api/agent/intent", json=body("   ", board)).status_code == 422

    def test_duplicate_task_ids_rejected(self, client, board):
        use_llm("{}")
        snapshot = board.to_wire()
        snapshot["data"]["tasks"].append(dict(snapshot["data"]["tasks"][0]))
        res = client.post("/api/agent/intent", json={"instruction": "hi", "snapshot": snapshot})
        assert res.status_code == 422

    def test_missing_model_is_503(self, client, board):
        def no_model():
            raise ModelError("OPENAI_API_KEY not found")

        app.dependency_overrides[get_chat_model] = no_model
        res = client.post("/api/agent/intent", json=body("show table", board))
        assert res.status_code == 503
        assert res.json()["error"]["code"] == "model_unavailable"


class TestStreaming:
    def test_intent_stream_ends_with_done(self, client, board):
        use_llm(
            {"kind": "ChangeStatus", "targetHint": "signup", "toStatus": "review", "confidence": 0.9, "source": "human"},
            {"message": "Moved Signup flow to review."},
        )
        res = client.post("/api/agent/intent/stream", json=body("move signup to review", board))
        assert res.status_code == 200
        assert res.headers["content-type"].startswith("text/event-stream")

        events = parse_sse(res.text)
        types = [t for t, _ in events]
        assert types[0] == "step:start"
        assert "intent" in types
        assert types[-1] == "done"
        assert types.count("done") + types.count("error") == 1
        assert events[-1][1]["message"] == "Moved Signup flow to review."

    def test_intent_stream_error(self, client, board):
        use_llm("garbage")
        events = parse_sse(client.post("/api/agent/intent/stream", json=body("??", board)).text)
        assert events[-1][0] == "error"
        assert events[-1][1]["error"]["phase"] == "compiler"

    def test_orchestrate_stream(self, client, board):
        use_llm(
            {"intent": "view", "agents": [{"agent": "view-control", "params": {"instruction": "table"}}]},
            {"message": "Table.", "actions": {"viewMode": "table"}},
        )
        events = parse_sse(client.post("/api/agent/orchestrate/stream", json=body("table please", board)).text)
        types = [t for t, _ in events]
        assert types.count("agent:start") == 2
        assert types[-1] == "done"
        assert len(events[-1][1]["effects"]) == 1


class TestOrchestrateAndDispatch:
    def test_orchestrate(self, client, board):
        use_llm(
            {"intent": "query", "agents": [{"agent": "query"}]},
            {"answer": "You have five tasks."},
        )
        res = client.post("/api/agent/orchestrate", json=body("what do I have?", board))
        assert res.status_code == 200
        data = res.json()
        assert data["message"] == "You have five tasks."
        assert data["decision"]["agents"][0]["agent"] == "query"
        assert [s["agentName"] for s in data["steps"]] == ["Orchestrator", "QueryAgent"]

    def test_orchestrator_failure_is_502(self, client, board):
        use_llm("nope")
        res = client.post("/api/agent/orchestrate", json=body("hello", board))
        assert res.status_code == 502
        assert res.json()["success"] is False

    def test_dispatch(self, client, board):
        res = client.post("/api/agent/dispatch", json={
            "intent": {"kind": "ChangeView", "viewMode": "table", "confidence": 1.0, "source": "ui"},
            "snapshot": board.to_wire(),
        })
        assert res.status_code == 200
        data = res.json()
        assert data["snapshot"]["state"]["viewMode"] == "table"
        assert data["diff"]["viewModeChanged"] is True

    def test_dispatch_error(self, client, board):
        res = client.post("/api/agent/dispatch", json={
            "intent": {"kind": "DeleteTask", "taskId": "t-missing", "confidence": 1.0, "source": "ui"},
            "snapshot": board.to_wire(),
        })
        assert res.status_code == 400
        assert res.json()["error"]["code"] == "task_not_found"


class TestEventChannel:
    def test_format(self):
        assert format_sse("done", {"a": "한"}) == 'event: done\ndata: {"a": "한"}\n\n'

    def test_single_terminal_event(self):
        channel = EventChannel()
        channel.put("step:start", {})
        channel.put("done", {})
        channel.put("error", {})
        channel.put("step:start", {})
        assert [t for t, _ in channel.events(timeout=1)] == ["step:start", "done"]

    def test_closed_channel_drops_events(self):
        channel = EventChannel()
        channel.close()
        channel.put("done", {})
        assert channel.closed
        assert not channel.terminated
