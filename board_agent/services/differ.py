from __future__ import annotations
from typing import Any, Dict, List

from pydantic import Field

from board_agent.core.models import CamelModel, Snapshot

# 비교에서 제외할 키 (id 는 비교 기준)
_TASK_KEY = "id"


class FieldChange(CamelModel):
    from_: Any = Field(default=None, alias="from")
    to: Any = None


class TaskUpdate(CamelModel):
    task_id: str
    changes: Dict[str, FieldChange] = Field(default_factory=dict)


class SnapshotDiff(CamelModel):
    tasks_added: List[str] = Field(default_factory=list)
    tasks_deleted: List[str] = Field(default_factory=list)
    tasks_restored: List[str] = Field(default_factory=list)
    tasks_removed: List[str] = Field(default_factory=list)  # 레코드 자체가 사라진 경우 (외부 purge)
    tasks_updated: List[TaskUpdate] = Field(default_factory=list)
    view_mode_changed: bool = False
    date_filter_changed: bool = False
    selected_task_changed: bool = False
    state_changes: Dict[str, FieldChange] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.tasks_added or self.tasks_deleted or self.tasks_restored
                    or self.tasks_removed or self.tasks_updated or self.state_changes)


def _field_changes(before: Dict[str, Any], after: Dict[str, Any]) -> Dict[str, FieldChange]:
    out: Dict[str, FieldChange] = {}
    for key in sorted(set(before) | set(after)):
        if key == _TASK_KEY:
            continue
        b, a = before.get(key), after.get(key)
        if key == "tags" and b is not None and a is not None:
            # tags 는 집합 의미
            if sorted(b) == sorted(a):
                continue
        elif b == a:
            continue
        out[key] = FieldChange(from_=b, to=a)
    return out


def diff(before: Snapshot, after: Snapshot) -> SnapshotDiff:
    """
    두 스냅샷의 차이. ID 기준 비교라 태스크 순서와 무관하고, 결과 목록은 ID 로 정렬한다.
    deletedAt 변화는 tasks_deleted/tasks_restored 로 분류하고 필드 변경에도 남긴다.
    """
    b_tasks = {t.id: t.model_dump(by_alias=True, mode="json") for t in before.data.tasks}
    a_tasks = {t.id: t.model_dump(by_alias=True, mode="json") for t in after.data.tasks}

    result = SnapshotDiff()
    result.tasks_added = sorted(set(a_tasks) - set(b_tasks))
    result.tasks_removed = sorted(set(b_tasks) - set(a_tasks))

    for task_id in sorted(set(a_tasks) & set(b_tasks)):
        b, a = b_tasks[task_id], a_tasks[task_id]
        changes = _field_changes(b, a)
        if not changes:
            continue
        if "deletedAt" in changes:
            if b.get("deletedAt") is None:
                result.tasks_deleted.append(task_id)
            elif a.get("deletedAt") is None:
                result.tasks_restored.append(task_id)
        result.tasks_updated.append(TaskUpdate(task_id=task_id, changes=changes))

    b_state = before.state.model_dump(by_alias=True, mode="json")
    a_state = after.state.model_dump(by_alias=True, mode="json")
    result.state_changes = _field_changes(b_state, a_state)
    result.view_mode_changed = "viewMode" in result.state_changes
    result.date_filter_changed = "dateFilter" in result.state_changes
    result.selected_task_changed = "selectedTaskId" in result.state_changes
    return result
