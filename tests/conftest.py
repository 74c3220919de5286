"""Pytest fixtures for board_agent tests."""

from __future__ import annotations

import json
from typing import Any, Dict, List

import pytest
from langchain_core.language_models import FakeListChatModel

from board_agent.core.models import Snapshot
from board_agent.services.runtime import ExecutionContext

NOW = "2026-03-10T09:00:00.000Z"


def scripted_llm(*responses: Any) -> FakeListChatModel:
    """Chat model that replies with the given payloads in order (dicts are JSON-encoded)."""
    return FakeListChatModel(
        responses=[r if isinstance(r, str) else json.dumps(r, ensure_ascii=False) for r in responses]
    )


def make_task(task_id: str, title: str, **extra: Any) -> Dict[str, Any]:
    task: Dict[str, Any] = {
        "id": task_id,
        "title": title,
        "status": "todo",
        "priority": "medium",
        "tags": [],
        "createdAt": "2026-03-01T00:00:00.000Z",
        "updatedAt": "2026-03-01T00:00:00.000Z",
    }
    task.update(extra)
    return task


def make_snapshot(tasks: List[Dict[str, Any]], **state: Any) -> Snapshot:
    return Snapshot.model_validate({"data": {"tasks": tasks}, "state": {"viewMode": "kanban", **state}})


@pytest.fixture
def context() -> ExecutionContext:
    return ExecutionContext(now=NOW, request_id="req-test")


@pytest.fixture
def board() -> Snapshot:
    """Small board with two API tasks that share a prefix, and one deleted task."""
    return make_snapshot([
        make_task("t-login", "Login page", status="in-progress", priority="high", dueDate="2026-03-10"),
        make_task("t-signup", "Signup flow"),
        make_task("t-api-design", "API design"),
        make_task("t-api-review", "API review", status="review"),
        make_task("t-docs", "Write docs", status="done", tags=["docs"]),
        make_task("t-old", "Old report", deletedAt="2026-03-05T00:00:00.000Z"),
    ])


@pytest.fixture
def board_with_selection(board: Snapshot) -> Snapshot:
    return board.model_copy(update={"state": board.state.model_copy(update={"selected_task_id": "t-signup"})})


@pytest.fixture
def empty_board() -> Snapshot:
    return make_snapshot([])
