"""Tests for deterministic reference resolution (targetHint -> task ids)."""

from __future__ import annotations

from typing import Any

from conftest import make_snapshot, make_task

from board_agent.core.effects import apply_effects
from board_agent.core.intent import parse_skeleton
from board_agent.services.resolver import (
    ResolverFailure,
    ResolverSuccess,
    is_bulk_reference,
    near_misses,
    resolve,
    select_targets,
    tokenize,
)
from board_agent.services.runtime import execute


def skeleton(kind: str, **fields: Any):
    return parse_skeleton({"kind": kind, "confidence": 0.9, "source": "human", **fields})


class TestReferenceBinding:
    """Single-target binding."""

    def test_exact_title_wins(self, board):
        result = resolve(skeleton("DeleteTask", targetHint="API design"), board)
        assert isinstance(result, ResolverSuccess)
        assert result.intent.task_id == "t-api-design"

    def test_exact_title_is_case_insensitive(self, board):
        result = resolve(skeleton("ChangeStatus", targetHint="login PAGE", toStatus="done"), board)
        assert result.ok
        assert result.intent.task_id == "t-login"
        assert result.intent.from_status == "in-progress"

    def test_single_substring_match(self, board):
        result = resolve(skeleton("DeleteTask", targetHint="signup"), board)
        assert result.ok
        assert result.intent.task_id == "t-signup"

    def test_existing_id_is_accepted(self, board):
        result = resolve(skeleton("SelectTask", targetHint="t-docs"), board)
        assert result.ok
        assert result.intent.task_id == "t-docs"

    def test_ordinal(self, board):
        result = resolve(skeleton("SelectTask", targetHint="the first one"), board)
        assert result.ok
        assert result.intent.task_id == "t-login"

    def test_deictic_uses_selection(self, board_with_selection):
        result = resolve(skeleton("ChangeStatus", targetHint="이거", toStatus="done"), board_with_selection)
        assert result.ok
        assert result.intent.task_id == "t-signup"

    def test_deictic_without_selection_asks(self, board):
        result = resolve(skeleton("ChangeStatus", targetHint="this", toStatus="done"), board)
        assert isinstance(result, ResolverFailure)
        assert result.error.type == "which_task"
        assert result.error.candidates == []

    def test_just_created(self, board):
        snap = board.model_copy(update={"state": board.state.model_copy(update={"last_created_task_ids": ["t-api-review"]})})
        result = resolve(skeleton("UpdateTask", targetHint="the one I just added", changes={"priority": "high"}), snap)
        assert result.ok
        assert result.intent.task_id == "t-api-review"

    def test_restore_looks_only_at_deleted(self, board):
        result = resolve(skeleton("RestoreTask", targetHint="Old report"), board)
        assert result.ok
        assert result.intent.task_id == "t-old"

    def test_resolution_is_deterministic(self, board):
        sk = skeleton("DeleteTask", targetHint="signup")
        first = resolve(sk, board)
        for _ in range(5):
            assert resolve(sk, board).model_dump() == first.model_dump()


class TestAmbiguity:
    """The resolver never picks among several candidates."""

    def test_shared_prefix_is_ambiguous(self, board):
        result = resolve(skeleton("ChangeStatus", targetHint="API", toStatus="done"), board)
        assert isinstance(result, ResolverFailure)
        assert result.error.type == "multiple_matches"
        assert {t.id for t in result.error.candidates} == {"t-api-design", "t-api-review"}
        assert '"API design"' in result.error.suggested_question

    def test_korean_question(self, board):
        result = resolve(skeleton("ChangeStatus", targetHint="API", toStatus="done"), board, language="ko")
        assert "또는" in result.error.suggested_question

    def test_no_match_offers_near_misses(self, board):
        result = resolve(skeleton("DeleteTask", targetHint="Lgoin paeg"), board)
        assert isinstance(result, ResolverFailure)
        assert result.error.type == "which_task"
        assert [t.id for t in result.error.candidates] == ["t-login"]

    def test_empty_hint_asks(self, board):
        result = resolve(skeleton("DeleteTask", targetHint=""), board)
        assert not result.ok
        assert result.error.suggested_question == "Which task would you like to delete?"

    def test_update_without_changes_is_ambiguous_action(self, board):
        result = resolve(skeleton("UpdateTask", targetHint="Signup flow", changes={}), board)
        assert not result.ok
        assert result.error.type == "ambiguous_action"

    def test_payload_shape(self, board):
        result = resolve(skeleton("ChangeStatus", targetHint="API", toStatus="done"), board)
        payload = result.error.to_payload()
        assert payload["reason"] == "multiple_matches"
        assert payload["candidates"][0] == {"id": "t-api-design", "title": "API design"}


class TestIdentitySafety:
    """Only ids that exist in the snapshot can be bound."""

    def test_fabricated_id_is_not_bound(self, board):
        result = resolve(skeleton("DeleteTask", targetHint="task-999"), board)
        assert not result.ok

    def test_deleted_task_not_bound_for_mutation(self, board):
        result = resolve(skeleton("DeleteTask", targetHint="Old report"), board)
        assert not result.ok

    def test_bound_ids_always_come_from_snapshot(self, board):
        ids = {t.id for t in board.data.tasks}
        for hint in ["signup", "API design", "Write docs", "the last one", "Login page"]:
            result = resolve(skeleton("SelectTask", targetHint=hint), board)
            assert result.ok
            assert result.intent.task_id in ids


class TestBulk:
    def test_bulk_delete_by_status(self, board):
        result = resolve(skeleton("DeleteTask", targetHint="all todo tasks"), board)
        assert result.ok
        assert result.intent.task_id is None
        assert result.intent.task_ids == ["t-signup", "t-api-design"]

    def test_bulk_with_no_targets_passes_empty_set(self, empty_board):
        result = resolve(skeleton("DeleteTask", targetHint="all done tasks"), empty_board)
        assert result.ok
        assert result.intent.task_ids == []

    def test_bulk_status_change_is_ambiguous(self, board):
        result = resolve(skeleton("ChangeStatus", targetHint="all todo tasks", toStatus="done"), board)
        assert not result.ok
        assert result.error.type == "multiple_matches"

    def test_all_alone_soft_deletes_every_active_task(self, context):
        snap = make_snapshot([
            make_task("t1", "Plan sprint"),
            make_task("t2", "Fix login", status="in-progress"),
            make_task("t3", "Ship release", status="done"),
            make_task("t4", "Archived note", deletedAt="2026-03-01T00:00:00.000Z"),
        ])
        result = resolve(skeleton("DeleteTask", targetHint="all"), snap)
        assert result.ok
        assert result.intent.task_ids == ["t1", "t2", "t3"]

        executed = execute(result.intent, snap, context)
        after = apply_effects(snap, executed.effects)
        assert len(after.data.tasks) == len(snap.data.tasks)
        for task_id in ("t1", "t2", "t3"):
            assert after.get_task(task_id).deleted_at == context.now
        assert after.get_task("t4").deleted_at == "2026-03-01T00:00:00.000Z"

    def test_korean_bulk_with_status(self, board):
        result = resolve(skeleton("DeleteTask", targetHint="완료된 거 전부"), board)
        assert result.ok
        assert result.intent.target_ids() == ["t-docs"]


class TestQuantifierInsideTitle:
    """A quantifier that is part of a title must not widen the target set."""

    def test_hyphenated_all_binds_the_title(self):
        snap = make_snapshot([
            make_task("t1", "All-hands meeting prep"),
            make_task("t2", "Signup flow"),
            make_task("t3", "Write docs"),
        ])
        result = resolve(skeleton("DeleteTask", targetHint="all-hands meeting"), snap)
        assert result.ok
        assert result.intent.task_id == "t1"
        assert result.intent.task_ids is None

    def test_korean_quantifier_word_in_title(self):
        snap = make_snapshot([make_task("k1", "전체 회의 준비"), make_task("k2", "보고서 작성")])
        result = resolve(skeleton("DeleteTask", targetHint="전체 회의"), snap)
        assert result.ok
        assert result.intent.task_id == "k1"

    def test_quantifier_with_unknown_words_asks(self, board):
        result = resolve(skeleton("DeleteTask", targetHint="all sprint stuff"), board)
        assert isinstance(result, ResolverFailure)
        assert result.error.type == "which_task"

    def test_is_bulk_reference(self):
        assert is_bulk_reference("all")
        assert is_bulk_reference("all done tasks")
        assert is_bulk_reference("모든 태스크를")
        assert not is_bulk_reference("all-hands meeting")
        assert not is_bulk_reference("전체 회의")

    def test_select_targets_does_not_assume_bulk(self):
        snap = make_snapshot([make_task("k1", "전체 회의 준비"), make_task("k2", "보고서 작성")])
        selection = select_targets("전체 회의 삭제해줘", snap)
        assert not selection.bulk
        assert selection.ambiguous
        assert [t.id for t in selection.tasks] == ["k1"]

    def test_select_targets_plain_bulk(self, board):
        selection = select_targets("delete all todo tasks", board)
        assert selection.bulk
        assert not selection.ambiguous
        assert [t.id for t in selection.tasks] == ["t-signup", "t-api-design"]


class TestNonReferenceKinds:
    def test_create_promoted(self, board):
        result = resolve(skeleton("CreateTask", tasks=[{"title": "Write tests"}]), board)
        assert result.ok
        assert result.intent.kind == "CreateTask"

    def test_create_without_title_asks(self, board):
        result = resolve(skeleton("CreateTask", tasks=[{"title": "  "}]), board)
        assert not result.ok
        assert result.error.type == "missing_title"

    def test_select_empty_hint_deselects(self, board_with_selection):
        result = resolve(skeleton("SelectTask", targetHint=""), board_with_selection)
        assert result.ok
        assert result.intent.task_id is None

    def test_view_promoted(self, board):
        result = resolve(skeleton("ChangeView", viewMode="table"), board)
        assert result.ok
        assert result.intent.view_mode == "table"


class TestHelpers:
    def test_tokenize_drops_short_and_stopwords(self):
        assert tokenize("mark the API docs as done") == ["api", "docs"]

    def test_near_misses_limit(self):
        snap = make_snapshot([make_task(f"t{i}", f"Report {i}") for i in range(6)])
        assert len(near_misses("Report", snap.active_tasks())) == 3

    def test_select_targets_prefers_longest_title(self, board):
        selection = select_targets("move API review to done", board)
        assert [t.id for t in selection.tasks] == ["t-api-review"]
        assert selection.explicit
        assert not selection.ambiguous

    def test_select_targets_ambiguous(self, board):
        selection = select_targets("finish the api stuff", board)
        assert {t.id for t in selection.tasks} == {"t-api-design", "t-api-review"}
        assert selection.ambiguous
