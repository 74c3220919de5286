from __future__ import annotations
import re
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import Field, TypeAdapter, field_serializer, field_validator, model_validator
from typing_extensions import Annotated

from board_agent.core.models import (
    CamelModel,
    DateFilter,
    TaskPriority,
    TaskStatus,
    ViewMode,
)

IntentSource = Literal["human", "ui", "agent"]
SkeletonSource = Literal["human", "agent"]
ClarificationReason = Literal[
    "which_task",
    "missing_title",
    "ambiguous_action",
    "missing_date",
    "multiple_matches",
    "missing_info",
    "unknown",
]

# 모델이 만들어낸 식별자처럼 보이는 문자열 (uuid, task-..., t_...)
_ID_LIKE = re.compile(
    r"^(?:[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}|task[-_][\w-]+|t_[\w-]+|id:\S+)$",
    re.IGNORECASE,
)


def looks_like_task_id(text: Optional[str]) -> bool:
    return bool(text) and bool(_ID_LIKE.match(text.strip()))


# ───────────────────────────────
# 공통 필드 조각
# ───────────────────────────────
class NewTask(CamelModel):
    title: str
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    tags: Optional[List[str]] = None
    due_date: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _strip_title(cls, v: str) -> str:
        return v.strip()


class TaskChanges(CamelModel):
    """UpdateTask 변경분. 명시된 필드만 의미가 있다 (dueDate/assignee 의 null 은 '지우기')."""
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    tags: Optional[List[str]] = None
    due_date: Optional[str] = None
    assignee: Optional[str] = None

    def changed(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_unset=True)

    def is_empty(self) -> bool:
        return not self.changed()


class Candidate(CamelModel):
    id: str
    title: str


class _CreateTaskFields(CamelModel):
    kind: Literal["CreateTask"]
    tasks: List[NewTask] = Field(..., min_length=1)


class _UpdateTaskFields(CamelModel):
    kind: Literal["UpdateTask"]
    changes: TaskChanges = Field(default_factory=TaskChanges)

    @field_serializer("changes")
    def _dump_changes(self, v: TaskChanges, _info):
        return v.changed()


class _ChangeStatusFields(CamelModel):
    kind: Literal["ChangeStatus"]
    to_status: TaskStatus


class _QueryTasksFields(CamelModel):
    kind: Literal["QueryTasks"]
    query: str


class _ChangeViewFields(CamelModel):
    kind: Literal["ChangeView"]
    view_mode: ViewMode


class _SetDateFilterFields(CamelModel):
    kind: Literal["SetDateFilter"]
    filter: Optional[DateFilter] = None


class _UndoFields(CamelModel):
    kind: Literal["Undo"]


class _ToggleAssistantFields(CamelModel):
    kind: Literal["ToggleAssistant"]
    open: bool


# ───────────────────────────────
# Intent (해결 완료, 구체 ID 포함)
# ───────────────────────────────
class IntentBase(CamelModel):
    confidence: float = Field(..., ge=0.0, le=1.0)
    source: IntentSource


class CreateTask(IntentBase, _CreateTaskFields):
    @model_validator(mode="after")
    def _titles_required(self):
        if any(not t.title for t in self.tasks):
            raise ValueError("every task requires a non-empty title")
        return self


class UpdateTask(IntentBase, _UpdateTaskFields):
    task_id: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def _changes_required(self):
        if self.changes.is_empty():
            raise ValueError("changes must not be empty")
        return self


class ChangeStatus(IntentBase, _ChangeStatusFields):
    task_id: str = Field(..., min_length=1)
    from_status: Optional[TaskStatus] = None


class DeleteTask(IntentBase):
    kind: Literal["DeleteTask"]
    task_id: Optional[str] = None
    task_ids: Optional[List[str]] = None

    @model_validator(mode="after")
    def _single_or_bulk(self):
        # 빈 taskIds 는 형식상 허용, 런타임이 empty_target 으로 거절
        if (self.task_id is None) == (self.task_ids is None):
            raise ValueError("exactly one of taskId or taskIds is required")
        return self

    def target_ids(self) -> List[str]:
        return list(self.task_ids) if self.task_ids is not None else [self.task_id]


class RestoreTask(IntentBase):
    kind: Literal["RestoreTask"]
    task_id: Optional[str] = None
    task_ids: Optional[List[str]] = None

    @model_validator(mode="after")
    def _single_or_bulk(self):
        if (self.task_id is None) == (self.task_ids is None):
            raise ValueError("exactly one of taskId or taskIds is required")
        return self

    def target_ids(self) -> List[str]:
        return list(self.task_ids) if self.task_ids is not None else [self.task_id]


class SelectTask(IntentBase):
    kind: Literal["SelectTask"]
    task_id: Optional[str] = None  # None 이면 선택 해제


class QueryTasks(IntentBase, _QueryTasksFields):
    pass


class ChangeView(IntentBase, _ChangeViewFields):
    pass


class SetDateFilter(IntentBase, _SetDateFilterFields):
    pass


class Undo(IntentBase, _UndoFields):
    pass


class ToggleAssistant(IntentBase, _ToggleAssistantFields):
    pass


class RequestClarification(IntentBase):
    kind: Literal["RequestClarification"]
    reason: ClarificationReason
    question: str
    candidates: Optional[List[Candidate]] = None
    original_input: str = ""


Intent = Annotated[
    Union[
        CreateTask,
        UpdateTask,
        ChangeStatus,
        DeleteTask,
        RestoreTask,
        SelectTask,
        QueryTasks,
        ChangeView,
        SetDateFilter,
        Undo,
        ToggleAssistant,
        RequestClarification,
    ],
    Field(discriminator="kind"),
]

INTENT_KINDS: tuple[str, ...] = (
    "CreateTask",
    "UpdateTask",
    "ChangeStatus",
    "DeleteTask",
    "RestoreTask",
    "SelectTask",
    "QueryTasks",
    "ChangeView",
    "SetDateFilter",
    "Undo",
    "ToggleAssistant",
    "RequestClarification",
)
READ_ONLY_KINDS = frozenset({"QueryTasks", "RequestClarification"})

INTENT_ADAPTER: TypeAdapter = TypeAdapter(Intent)


def parse_intent(data: Union[Dict[str, Any], IntentBase]) -> IntentBase:
    """dict 또는 Intent 인스턴스를 검증된 Intent 로 변환 (실패 시 pydantic.ValidationError)"""
    if isinstance(data, IntentBase):
        return data
    return INTENT_ADAPTER.validate_python(data)


# ───────────────────────────────
# Skeleton (모델 출력, ID 대신 targetHint)
# ───────────────────────────────
class SkeletonBase(CamelModel):
    confidence: float = Field(..., ge=0.0, le=1.0)
    source: SkeletonSource


class _TargetHint(CamelModel):
    target_hint: str = ""  # 빈 문자열 = 모델이 대상을 특정하지 못함


class CreateTaskSkeleton(SkeletonBase, _CreateTaskFields):
    pass


class UpdateTaskSkeleton(SkeletonBase, _UpdateTaskFields, _TargetHint):
    pass


class ChangeStatusSkeleton(SkeletonBase, _ChangeStatusFields, _TargetHint):
    pass


class DeleteTaskSkeleton(SkeletonBase, _TargetHint):
    kind: Literal["DeleteTask"]


class RestoreTaskSkeleton(SkeletonBase, _TargetHint):
    kind: Literal["RestoreTask"]


class SelectTaskSkeleton(SkeletonBase, _TargetHint):
    kind: Literal["SelectTask"]


class QueryTasksSkeleton(SkeletonBase, _QueryTasksFields):
    pass


class ChangeViewSkeleton(SkeletonBase, _ChangeViewFields):
    pass


class SetDateFilterSkeleton(SkeletonBase, _SetDateFilterFields):
    pass


class UndoSkeleton(SkeletonBase, _UndoFields):
    pass


class ToggleAssistantSkeleton(SkeletonBase, _ToggleAssistantFields):
    pass


IntentSkeleton = Annotated[
    Union[
        CreateTaskSkeleton,
        UpdateTaskSkeleton,
        ChangeStatusSkeleton,
        DeleteTaskSkeleton,
        RestoreTaskSkeleton,
        SelectTaskSkeleton,
        QueryTasksSkeleton,
        ChangeViewSkeleton,
        SetDateFilterSkeleton,
        UndoSkeleton,
        ToggleAssistantSkeleton,
    ],
    Field(discriminator="kind"),
]

SKELETON_KINDS: tuple[str, ...] = tuple(k for k in INTENT_KINDS if k != "RequestClarification")
REFERENCE_KINDS = frozenset({"UpdateTask", "ChangeStatus", "DeleteTask", "RestoreTask", "SelectTask"})

SKELETON_ADAPTER: TypeAdapter = TypeAdapter(IntentSkeleton)


def parse_skeleton(data: Dict[str, Any]) -> SkeletonBase:
    return SKELETON_ADAPTER.validate_python(data)
