"""Tests for effect application and snapshot diffing."""

from __future__ import annotations

import pytest
from conftest import make_snapshot, make_task

from board_agent.core.effects import Effect, EffectApplyError, PatchOp, apply_effects, task_path
from board_agent.services.differ import diff
from board_agent.services.runtime import execute


def patch(*ops: PatchOp) -> Effect:
    return Effect(id="eff-1", ops=list(ops))


class TestApplyEffects:
    def test_input_snapshot_untouched(self, board):
        before = board.model_dump()
        apply_effects(board, [patch(PatchOp(op="set", path=task_path("t-login", "title"), value="Login"))])
        assert board.model_dump() == before

    def test_legacy_index_path(self, board):
        after = apply_effects(board, [patch(PatchOp(op="set", path="data.tasks.1.priority", value="high"))])
        assert after.get_task("t-signup").priority == "high"

    def test_legacy_collection_remove_and_restore(self, board):
        after = apply_effects(board, [patch(PatchOp(op="remove", path="data.tasks", value="t-docs"))],
                              applied_at="2026-03-10T00:00:00Z")
        assert after.get_task("t-docs").deleted_at == "2026-03-10T00:00:00Z"
        restored = apply_effects(after, [patch(PatchOp(op="restore", path="data.tasks", value="t-docs"))])
        assert restored.get_task("t-docs").deleted_at is None

    def test_nested_state_set(self, board):
        after = apply_effects(board, [patch(PatchOp(op="set", path="state.dateFilter",
                                                    value={"field": "dueDate", "type": "week"}))])
        assert after.state.date_filter.type == "week"

    def test_unknown_task_fails(self, board):
        with pytest.raises(EffectApplyError):
            apply_effects(board, [patch(PatchOp(op="set", path=task_path("nope", "title"), value="x"))])

    def test_undo_is_skipped(self, board):
        after = apply_effects(board, [Effect(type="snapshot.undo", id="eff-undo")])
        assert after.model_dump() == board.model_dump()


class TestDiff:
    def test_no_changes(self, board):
        assert diff(board, board).is_empty

    def test_effect_diff_round_trip(self, board, context):
        result = execute({"kind": "ChangeStatus", "taskId": "t-signup", "toStatus": "done",
                          "confidence": 1.0, "source": "ui"}, board, context)
        d = diff(board, apply_effects(board, result.effects))
        assert [u.task_id for u in d.tasks_updated] == ["t-signup"]
        change = d.tasks_updated[0].changes["status"]
        assert (change.from_, change.to) == ("todo", "done")
        assert set(d.tasks_updated[0].changes) == {"status", "updatedAt"}
        assert set(d.state_changes) == {"lastModifiedTaskId"}
        assert d.state_changes["lastModifiedTaskId"].to == "t-signup"
        assert not (d.tasks_added or d.tasks_deleted or d.tasks_restored or d.tasks_removed)

    def test_added_deleted_restored(self, board, context):
        created = execute({"kind": "CreateTask", "tasks": [{"title": "New"}], "confidence": 1.0, "source": "ui"},
                          board, context)
        deleted = execute({"kind": "DeleteTask", "taskId": "t-login", "confidence": 1.0, "source": "ui"},
                          board, context)
        restored = execute({"kind": "RestoreTask", "taskId": "t-old", "confidence": 1.0, "source": "ui"},
                           board, context)
        after = apply_effects(board, created.effects + deleted.effects + restored.effects)
        d = diff(board, after)
        assert len(d.tasks_added) == 1
        assert d.tasks_deleted == ["t-login"]
        assert d.tasks_restored == ["t-old"]

    def test_order_independent(self):
        a = make_snapshot([make_task("a", "A"), make_task("b", "B")])
        b = make_snapshot([make_task("b", "B"), make_task("a", "A")])
        assert diff(a, b).is_empty

    def test_tags_are_sets(self):
        a = make_snapshot([make_task("a", "A", tags=["x", "y"])])
        b = make_snapshot([make_task("a", "A", tags=["y", "x"])])
        assert diff(a, b).is_empty

    def test_purged_task(self):
        a = make_snapshot([make_task("a", "A"), make_task("b", "B")])
        b = make_snapshot([make_task("a", "A")])
        assert diff(a, b).tasks_removed == ["b"]

    def test_view_flags_and_wire(self, board):
        after = board.model_copy(update={"state": board.state.model_copy(update={"view_mode": "table"})})
        d = diff(board, after)
        assert d.view_mode_changed
        wire = d.to_wire()
        assert wire["stateChanges"]["viewMode"] == {"from": "kanban", "to": "table"}
