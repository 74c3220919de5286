"""Tests for the pure runtime (Intent -> Effect)."""

from __future__ import annotations

from typing import Any, Dict

import pytest

from board_agent.core.effects import apply_effects, task_path
from board_agent.core.errors import AgentError
from board_agent.core.intent import CreateTask, DeleteTask, NewTask
from board_agent.services.runtime import (
    ExecutionContext,
    ExecutionFailure,
    ExecutionSuccess,
    execute,
    execute_intents,
)


def intent(kind: str, **fields: Any) -> Dict[str, Any]:
    return {"kind": kind, "confidence": 1.0, "source": "ui", **fields}


class TestPurity:
    def test_snapshot_not_mutated(self, board, context):
        before = board.model_dump()
        execute(intent("DeleteTask", taskId="t-login"), board, context)
        execute(intent("ChangeStatus", taskId="t-signup", toStatus="done"), board, context)
        assert board.model_dump() == before

    def test_same_context_same_effects(self, board, context):
        payload = intent("CreateTask", tasks=[{"title": "Write tests"}, {"title": "Ship"}])
        first = execute(payload, board, context)
        second = execute(payload, board, context)
        assert first.model_dump() == second.model_dump()

    def test_derived_context_gives_new_ids(self, board, context):
        payload = intent("CreateTask", tasks=[{"title": "Write tests"}])
        a = execute(payload, board, context)
        b = execute(payload, board, context.derive("agent-1"))
        assert a.effects[0].ops[0].value["id"] != b.effects[0].ops[0].value["id"]


class TestCreate:
    def test_create_appends_todo_task(self, board, context):
        result = execute(intent("CreateTask", tasks=[{"title": "Write tests", "priority": "high"}]), board, context)
        assert isinstance(result, ExecutionSuccess)
        ops = result.effects[0].ops
        assert ops[0].op == "append"
        assert ops[0].path == "data.tasks"
        task = ops[0].value
        assert task["title"] == "Write tests"
        assert task["status"] == "todo"
        assert task["priority"] == "high"
        assert task["id"].startswith("task-")
        assert task["createdAt"] == context.now
        assert ops[-1].path == "state.lastCreatedTaskIds"
        assert ops[-1].value == [task["id"]]

    def test_id_not_derived_from_title(self, board, context):
        result = execute(intent("CreateTask", tasks=[{"title": "Write tests"}]), board, context)
        assert "write" not in result.effects[0].ops[0].value["id"].lower()

    def test_empty_title_rejected(self, board, context):
        result = execute(intent("CreateTask", tasks=[{"title": "   "}]), board, context)
        assert isinstance(result, ExecutionFailure)
        assert result.code == "invalid_intent"


class TestMutations:
    def test_change_status_uses_id_path(self, board, context):
        result = execute(intent("ChangeStatus", taskId="t-signup", toStatus="done"), board, context)
        paths = [op.path for op in result.effects[0].ops]
        assert task_path("t-signup", "status") in paths
        assert task_path("t-signup", "updatedAt") in paths
        assert "state.lastModifiedTaskId" in paths

    def test_invalid_status(self, board, context):
        result = execute(intent("ChangeStatus", taskId="t-signup", toStatus="blocked"), board, context)
        assert isinstance(result, ExecutionFailure)
        assert result.code == "invalid_status"

    def test_unknown_task(self, board, context):
        result = execute(intent("ChangeStatus", taskId="t-missing", toStatus="done"), board, context)
        assert result.code == "task_not_found"

    def test_deleted_task_cannot_be_updated(self, board, context):
        result = execute(intent("UpdateTask", taskId="t-old", changes={"title": "New"}), board, context)
        assert result.code == "task_deleted"

    def test_update_only_explicit_fields(self, board, context):
        result = execute(intent("UpdateTask", taskId="t-login", changes={"dueDate": None}), board, context)
        ops = {op.path: op.value for op in result.effects[0].ops}
        assert ops[task_path("t-login", "dueDate")] is None
        assert task_path("t-login", "title") not in ops


class TestDeleteRestore:
    def test_soft_delete(self, board, context):
        result = execute(intent("DeleteTask", taskId="t-login"), board, context)
        op = result.effects[0].ops[0]
        assert (op.op, op.path, op.value) == ("remove", task_path("t-login"), context.now)
        after = apply_effects(board, result.effects)
        assert after.get_task("t-login").deleted_at == context.now
        assert len(after.data.tasks) == len(board.data.tasks)

    def test_bulk_delete(self, board, context):
        result = execute(intent("DeleteTask", taskIds=["t-signup", "t-api-design"]), board, context)
        assert [op.path for op in result.effects[0].ops] == [task_path("t-signup"), task_path("t-api-design")]

    def test_empty_bulk_delete(self, board, context):
        result = execute(intent("DeleteTask", taskIds=[]), board, context)
        assert result.code == "empty_target"

    def test_delete_clears_selection(self, board_with_selection, context):
        result = execute(intent("DeleteTask", taskId="t-signup"), board_with_selection, context)
        assert result.effects[0].ops[-1].path == "state.selectedTaskId"
        assert result.effects[0].ops[-1].value is None

    def test_restore(self, board, context):
        result = execute(intent("RestoreTask", taskId="t-old"), board, context)
        after = apply_effects(board, result.effects)
        assert after.get_task("t-old").deleted_at is None

    def test_restore_is_idempotent(self, board, context):
        first = execute(intent("RestoreTask", taskId="t-old"), board, context)
        after = apply_effects(board, first.effects)
        second = execute(intent("RestoreTask", taskId="t-old"), after, context)
        assert isinstance(second, ExecutionSuccess)
        assert second.effects == []
        assert apply_effects(after, second.effects).model_dump() == after.model_dump()


class TestViewAndMisc:
    def test_change_view(self, board, context):
        result = execute(intent("ChangeView", viewMode="table"), board, context)
        op = result.effects[0].ops[0]
        assert (op.path, op.value) == ("state.viewMode", "table")

    def test_clear_filter(self, board, context):
        result = execute(intent("SetDateFilter", filter=None), board, context)
        assert result.effects[0].ops[0].value is None

    def test_select_deleted_rejected(self, board, context):
        assert execute(intent("SelectTask", taskId="t-old"), board, context).code == "task_deleted"

    def test_query_has_no_effects(self, board, context):
        result = execute(intent("QueryTasks", query="how many?"), board, context)
        assert result.success and result.effects == []

    def test_undo_effect(self, board, context):
        result = execute(intent("Undo"), board, context)
        assert result.effects[0].type == "snapshot.undo"
        assert "ops" not in result.effects[0].to_wire()

    def test_unknown_kind(self, board, context):
        result = execute({"kind": "ArchiveTask", "confidence": 1.0, "source": "ui"}, board, context)
        assert result.code == "invalid_intent"


class TestExecuteIntents:
    def test_sequence_sees_previous_effects(self, board, context):
        create = CreateTask(kind="CreateTask", tasks=[NewTask(title="Temp")], confidence=1.0, source="agent")
        effects = execute_intents("task-creator", [create], board, context)
        created_id = effects[0].ops[0].value["id"]
        delete = DeleteTask(kind="DeleteTask", task_id=created_id, confidence=1.0, source="agent")
        # delete in the same batch works because it runs on the patched snapshot
        effects = execute_intents("task-creator", [create, delete], board, context)
        assert len(effects) == 2

    def test_failure_raises_agent_error(self, board, context):
        bad = DeleteTask(kind="DeleteTask", task_id="t-missing", confidence=1.0, source="agent")
        with pytest.raises(AgentError) as exc:
            execute_intents("task-mutator", [bad], board, context)
        assert exc.value.agent == "task-mutator"
        assert "task_not_found" in exc.value.message

    def test_context_clock(self):
        ctx = ExecutionContext(now="2026-03-10T09:00:00.000Z", request_id="r")
        assert ctx.clock().year == 2026
