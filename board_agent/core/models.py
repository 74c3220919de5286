from __future__ import annotations
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# ====== 공통 타입 ======
TaskStatus = Literal["todo", "in-progress", "review", "done"]
TaskPriority = Literal["low", "medium", "high"]
ViewMode = Literal["kanban", "table", "todo"]
DateFilterField = Literal["dueDate", "createdAt"]
DateFilterType = Literal["today", "week", "month", "custom"]

TASK_STATUSES: tuple[str, ...] = ("todo", "in-progress", "review", "done")
TASK_PRIORITIES: tuple[str, ...] = ("low", "medium", "high")


class CamelModel(BaseModel):
    """UI/스토어와 주고받는 모델은 camelCase 키를 사용한다."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self, *, exclude_none: bool = False) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=exclude_none)


class Task(CamelModel):
    id: str = Field(..., min_length=1, description="불변 식별자 (제목에서 파생하지 않음)")
    title: str
    description: Optional[str] = None
    status: TaskStatus = "todo"
    priority: TaskPriority = "medium"
    assignee: Optional[str] = None
    due_date: Optional[str] = Field(default=None, description="YYYY-MM-DD")
    tags: List[str] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    deleted_at: Optional[str] = Field(default=None, description="soft delete 타임스탬프")

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class DateFilter(CamelModel):
    field: DateFilterField = "dueDate"
    type: DateFilterType
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class ViewState(CamelModel):
    view_mode: ViewMode = "kanban"
    date_filter: Optional[DateFilter] = None
    selected_task_id: Optional[str] = None
    last_created_task_ids: List[str] = Field(default_factory=list)
    last_modified_task_id: Optional[str] = None
    assistant_open: bool = False


class SnapshotData(CamelModel):
    tasks: List[Task] = Field(default_factory=list)

    @field_validator("tasks")
    @classmethod
    def _unique_ids(cls, v: List[Task]) -> List[Task]:
        seen: set[str] = set()
        for t in v:
            if t.id in seen:
                raise ValueError(f"duplicate task id: {t.id}")
            seen.add(t.id)
        return v


class Snapshot(CamelModel):
    """요청 단위의 태스크 + 뷰 상태. 파이프라인은 이 객체를 절대 제자리에서 바꾸지 않는다."""
    data: SnapshotData = Field(default_factory=SnapshotData)
    state: ViewState = Field(default_factory=ViewState)

    def active_tasks(self) -> List[Task]:
        return [t for t in self.data.tasks if not t.is_deleted]

    def deleted_tasks(self) -> List[Task]:
        return [t for t in self.data.tasks if t.is_deleted]

    def get_task(self, task_id: Optional[str]) -> Optional[Task]:
        if not task_id:
            return None
        for t in self.data.tasks:
            if t.id == task_id:
                return t
        return None

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "Snapshot":
        return cls.model_validate(data)
