"""End-to-end tests for the single-intent LangGraph pipeline."""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

from conftest import scripted_llm

from board_agent.core.effects import task_path
from board_agent.core.trace import TraceEmitter
from board_agent.graphs.runner import run_intent_pipeline


def recorder() -> Tuple[TraceEmitter, List[Tuple[str, Dict[str, Any]]]]:
    events: List[Tuple[str, Dict[str, Any]]] = []
    return TraceEmitter(sink=lambda t, d: events.append((t, d))), events


def step_names(response) -> List[str]:
    return [s["agentName"] for s in response.trace.steps]


class TestSimplePath:
    def test_status_change(self, board, context):
        llm = scripted_llm(
            {"kind": "ChangeStatus", "targetHint": "signup", "toStatus": "done", "confidence": 0.9, "source": "human"},
            {"message": "Marked Signup flow as done."},
        )
        emitter, events = recorder()
        response = run_intent_pipeline("mark signup done", board, llm=llm, emitter=emitter, context=context)

        assert response.success
        assert response.intent["taskId"] == "t-signup"
        assert response.effects[0]["ops"][0]["path"] == task_path("t-signup", "status")
        assert response.message == "Marked Signup flow as done."
        assert response.trace.total_llm_calls == 2
        assert response.trace.compiler_used and response.trace.resolver_used and response.trace.interpreter_used
        assert step_names(response) == ["FastPath", "Compiler", "Resolver", "Runtime", "Differ", "Interpreter"]
        assert all(s["status"] == "completed" for s in response.trace.steps)

        types = [t for t, _ in events]
        assert types.count("intent") == 1
        assert types[-1] == "done"
        assert types.count("done") + types.count("error") == 1

    def test_view_switch_uses_local_message(self, board, context):
        llm = scripted_llm({"kind": "ChangeView", "viewMode": "table", "confidence": 0.95, "source": "human"})
        response = run_intent_pipeline("show table view", board, llm=llm, context=context)
        assert response.success
        assert response.trace.fast_path
        assert response.trace.total_llm_calls == 1
        assert not response.trace.interpreter_used
        assert response.message == "Switched to Table view."

    def test_query_skips_differ(self, board, context):
        llm = scripted_llm(
            {"kind": "QueryTasks", "query": "how many tasks are left?", "confidence": 0.9, "source": "human"},
            {"answer": "You have 4 open tasks."},
        )
        response = run_intent_pipeline("how many tasks are left?", board, llm=llm, context=context)
        assert response.success
        assert response.effects == []
        assert response.message == "You have 4 open tasks."
        assert "Differ" not in step_names(response)

    def test_wire_shape(self, board, context):
        llm = scripted_llm({"kind": "Undo", "confidence": 0.9, "source": "human"})
        wire = run_intent_pipeline("undo", board, llm=llm, context=context).to_wire()
        assert set(wire["trace"]) >= {"fastPath", "compilerUsed", "resolverUsed", "interpreterUsed",
                                      "totalLLMCalls", "language", "steps"}
        assert wire["effects"][0]["type"] == "snapshot.undo"


class TestClarification:
    def test_ambiguous_reference_is_not_an_error(self, board, context):
        llm = scripted_llm({"kind": "ChangeStatus", "targetHint": "API", "toStatus": "done",
                            "confidence": 0.9, "source": "human"})
        emitter, events = recorder()
        response = run_intent_pipeline("finish API", board, llm=llm, emitter=emitter, context=context)

        assert response.success
        assert response.effects == []
        assert response.clarification.reason == "multiple_matches"
        assert {c.id for c in response.clarification.candidates} == {"t-api-design", "t-api-review"}
        assert response.message == response.clarification.question
        assert response.trace.total_llm_calls == 1
        assert "Runtime" not in step_names(response)

        intent_events = [d for t, d in events if t == "intent"]
        assert intent_events[0]["clarification"]["reason"] == "multiple_matches"
        assert events[-1][0] == "done"

    def test_korean_clarification(self, board, context):
        llm = scripted_llm({"kind": "DeleteTask", "targetHint": "", "confidence": 0.5, "source": "human"})
        response = run_intent_pipeline("삭제해줘", board, llm=llm, context=context)
        assert response.success
        assert response.trace.language == "ko"
        assert response.clarification.question == "어떤 태스크를 삭제할까요?"


class TestFailures:
    def test_compiler_failure(self, board, context):
        emitter, events = recorder()
        response = run_intent_pipeline("do the thing", board, llm=scripted_llm("no json here"),
                                       emitter=emitter, context=context)
        assert not response.success
        assert response.error.phase == "compiler"
        assert response.error.code == "parsing"
        assert response.effects == []
        assert response.trace.steps[-1]["status"] == "failed"
        assert [t for t, _ in events][-1] == "error"
        assert "done" not in [t for t, _ in events]

    def test_runtime_failure(self, empty_board, context):
        llm = scripted_llm({"kind": "DeleteTask", "targetHint": "all done tasks", "confidence": 0.9, "source": "human"})
        response = run_intent_pipeline("delete all done tasks", empty_board, llm=llm, context=context)
        assert not response.success
        assert response.error.phase == "runtime"
        assert response.error.code == "empty_target"
        assert response.intent["taskIds"] == []
