from __future__ import annotations
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Literal, Optional, Union, get_args

from pydantic import BaseModel, ValidationError

from board_agent.core.effects import Effect, PatchOp, TASKS_PATH, apply_effects, task_path
from board_agent.core.errors import AgentError
from board_agent.core.intent import (
    ChangeStatus,
    ChangeView,
    CreateTask,
    DeleteTask,
    Intent,
    IntentBase,
    QueryTasks,
    RequestClarification,
    RestoreTask,
    SelectTask,
    SetDateFilter,
    ToggleAssistant,
    Undo,
    UpdateTask,
    parse_intent,
)
from board_agent.core.logger import get_logger
from board_agent.core.models import TASK_STATUSES, Snapshot, Task

logger = get_logger(__name__)

ErrorCode = Literal["invalid_intent", "invalid_status", "task_not_found", "task_deleted", "empty_target"]

_ID_NAMESPACE = uuid.UUID("6f1c2f1e-5b0a-4b8e-9a53-0c9f3b7d2a41")


class ExecutionContext(BaseModel):
    """실행 시각과 ID 시드. 같은 context 면 같은 effect 가 나온다."""
    now: str
    request_id: str

    @classmethod
    def fresh(cls, request_id: Optional[str] = None) -> "ExecutionContext":
        now = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
        return cls(now=now, request_id=request_id or uuid.uuid4().hex)

    def derive(self, label: str) -> "ExecutionContext":
        # 한 요청 안에서 여러 번 실행할 때 ID 충돌 방지
        return ExecutionContext(now=self.now, request_id=f"{self.request_id}/{label}")

    def clock(self) -> datetime:
        return datetime.fromisoformat(self.now.replace("Z", "+00:00"))

    def make_id(self, kind: str, index: int) -> str:
        return str(uuid.uuid5(_ID_NAMESPACE, f"{self.request_id}/{kind}/{index}"))


class ExecutionSuccess(BaseModel):
    success: Literal[True] = True
    intent: Intent
    effects: List[Effect]


class ExecutionFailure(BaseModel):
    success: Literal[False] = False
    code: ErrorCode
    error: str
    intent: Optional[Intent] = None


ExecutionResult = Union[ExecutionSuccess, ExecutionFailure]


class _DomainError(Exception):
    def __init__(self, code: ErrorCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def _require_task(snapshot: Snapshot, task_id: Optional[str]) -> Task:
    task = snapshot.get_task(task_id)
    if task is None:
        raise _DomainError("task_not_found", f"Task not found: {task_id}")
    return task


def _require_active(snapshot: Snapshot, task_id: Optional[str]) -> Task:
    task = _require_task(snapshot, task_id)
    if task.is_deleted:
        raise _DomainError("task_deleted", f"Task is deleted: {task_id}")
    return task


def _check_status(status: Optional[str]) -> None:
    if status is not None and status not in TASK_STATUSES:
        raise _DomainError("invalid_status", f"Invalid status: {status}")


# ───────────────────────────────
# 종류별 핸들러 (Intent → PatchOp 목록)
# ───────────────────────────────
def _change_view(intent: ChangeView, snapshot: Snapshot, ctx: ExecutionContext) -> List[PatchOp]:
    return [PatchOp(op="set", path="state.viewMode", value=intent.view_mode)]


def _set_date_filter(intent: SetDateFilter, snapshot: Snapshot, ctx: ExecutionContext) -> List[PatchOp]:
    value = intent.filter.to_wire(exclude_none=True) if intent.filter else None
    return [PatchOp(op="set", path="state.dateFilter", value=value)]


def _create_task(intent: CreateTask, snapshot: Snapshot, ctx: ExecutionContext) -> List[PatchOp]:
    ops: List[PatchOp] = []
    created: List[str] = []
    for i, item in enumerate(intent.tasks):
        task = Task(
            id=f"task-{ctx.make_id('task', i)}",
            title=item.title,
            description=item.description,
            status="todo",  # 새 태스크는 항상 todo
            priority=item.priority or "medium",
            tags=list(item.tags or []),
            due_date=item.due_date,
            created_at=ctx.now,
            updated_at=ctx.now,
        )
        created.append(task.id)
        ops.append(PatchOp(op="append", path=TASKS_PATH, value=task.to_wire(exclude_none=True)))
    ops.append(PatchOp(op="set", path="state.lastCreatedTaskIds", value=created))
    return ops


def _update_task(intent: UpdateTask, snapshot: Snapshot, ctx: ExecutionContext) -> List[PatchOp]:
    task = _require_active(snapshot, intent.task_id)
    changes = intent.changes.changed()
    _check_status(changes.get("status"))
    ops = [PatchOp(op="set", path=task_path(task.id, key), value=value) for key, value in changes.items()]
    ops.append(PatchOp(op="set", path=task_path(task.id, "updatedAt"), value=ctx.now))
    ops.append(PatchOp(op="set", path="state.lastModifiedTaskId", value=task.id))
    return ops


def _change_status(intent: ChangeStatus, snapshot: Snapshot, ctx: ExecutionContext) -> List[PatchOp]:
    _check_status(intent.to_status)
    task = _require_active(snapshot, intent.task_id)
    if intent.from_status and intent.from_status != task.status:
        logger.info("fromStatus 불일치 (현재 상태 기준으로 진행): task=%s, from=%s, actual=%s",
                    task.id, intent.from_status, task.status)
    return [
        PatchOp(op="set", path=task_path(task.id, "status"), value=intent.to_status),
        PatchOp(op="set", path=task_path(task.id, "updatedAt"), value=ctx.now),
        PatchOp(op="set", path="state.lastModifiedTaskId", value=task.id),
    ]


def _delete_task(intent: DeleteTask, snapshot: Snapshot, ctx: ExecutionContext) -> List[PatchOp]:
    ids = intent.target_ids()
    if not ids:
        raise _DomainError("empty_target", "No tasks to delete")
    tasks = [_require_task(snapshot, task_id) for task_id in ids]
    # soft delete: 레코드는 남기고 deletedAt 만 기록. 이미 삭제된 것은 건너뜀
    ops = [PatchOp(op="remove", path=task_path(t.id), value=ctx.now) for t in tasks if not t.is_deleted]
    if snapshot.state.selected_task_id in ids:
        ops.append(PatchOp(op="set", path="state.selectedTaskId", value=None))
    return ops


def _restore_task(intent: RestoreTask, snapshot: Snapshot, ctx: ExecutionContext) -> List[PatchOp]:
    ids = intent.target_ids()
    if not ids:
        raise _DomainError("empty_target", "No tasks to restore")
    tasks = [_require_task(snapshot, task_id) for task_id in ids]
    # 활성 태스크 복구는 no-op
    return [PatchOp(op="restore", path=task_path(t.id), value=None) for t in tasks if t.is_deleted]


def _select_task(intent: SelectTask, snapshot: Snapshot, ctx: ExecutionContext) -> List[PatchOp]:
    if intent.task_id is not None:
        _require_active(snapshot, intent.task_id)
    return [PatchOp(op="set", path="state.selectedTaskId", value=intent.task_id)]


def _toggle_assistant(intent: ToggleAssistant, snapshot: Snapshot, ctx: ExecutionContext) -> List[PatchOp]:
    return [PatchOp(op="set", path="state.assistantOpen", value=intent.open)]


def _read_only(intent: IntentBase, snapshot: Snapshot, ctx: ExecutionContext) -> List[PatchOp]:
    return []


def _undo(intent: Undo, snapshot: Snapshot, ctx: ExecutionContext) -> List[PatchOp]:
    return []  # snapshot.undo effect 로 따로 처리


_HANDLERS: Dict[type, Callable[[Any, Snapshot, ExecutionContext], List[PatchOp]]] = {
    ChangeView: _change_view,
    SetDateFilter: _set_date_filter,
    CreateTask: _create_task,
    UpdateTask: _update_task,
    ChangeStatus: _change_status,
    DeleteTask: _delete_task,
    RestoreTask: _restore_task,
    SelectTask: _select_task,
    QueryTasks: _read_only,
    ToggleAssistant: _toggle_assistant,
    Undo: _undo,
    RequestClarification: _read_only,
}

# 모든 Intent 종류가 핸들러를 가져야 한다
if set(_HANDLERS) != set(get_args(get_args(Intent)[0])):
    raise RuntimeError("runtime handler table is not exhaustive")


def _classify_validation_error(exc: ValidationError) -> ErrorCode:
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ())]
        if "toStatus" in loc or "to_status" in loc or ("changes" in loc and "status" in loc):
            return "invalid_status"
    return "invalid_intent"


def execute(
    intent: Union[IntentBase, Dict[str, Any]],
    snapshot: Snapshot,
    context: Optional[ExecutionContext] = None,
) -> ExecutionResult:
    """
    Intent 를 검증/실행해 Effect 목록을 만든다.
    - 순수 함수: I/O 없음, 입력 snapshot 을 바꾸지 않음
    - 도메인 오류는 예외가 아니라 ExecutionFailure 로 반환
    """
    try:
        parsed = parse_intent(intent)
    except ValidationError as e:
        code = _classify_validation_error(e)
        logger.warning("intent 검증 실패: code=%s, errors=%d", code, e.error_count())
        return ExecutionFailure(code=code, error=f"Intent validation failed: {e.errors()[0].get('msg', '')}")

    ctx = context or ExecutionContext.fresh()
    handler = _HANDLERS[type(parsed)]
    try:
        ops = handler(parsed, snapshot, ctx)
    except _DomainError as e:
        logger.info("runtime 도메인 오류: kind=%s, code=%s, message=%s", parsed.kind, e.code, e.message)
        return ExecutionFailure(code=e.code, error=e.message, intent=parsed)

    if isinstance(parsed, Undo):
        effects = [Effect(type="snapshot.undo", id=f"eff-{ctx.make_id('effect', 0)}")]
    elif ops:
        effects = [Effect(type="snapshot.patch", id=f"eff-{ctx.make_id('effect', 0)}", ops=ops)]
    else:
        effects = []

    logger.debug("runtime 실행 완료: kind=%s, effects=%d, ops=%d", parsed.kind, len(effects), len(ops))
    return ExecutionSuccess(intent=parsed, effects=effects)


def execute_intents(
    agent: str,
    intents: List[IntentBase],
    snapshot: Snapshot,
    context: ExecutionContext,
) -> List[Effect]:
    """
    에이전트가 만든 intent 들을 순서대로 실행한다.
    각 intent 는 앞선 intent 의 effect 가 반영된 스냅샷 위에서 실행되며,
    하나라도 실패하면 AgentError (에이전트 단위로 전부 버린다).
    """
    working = snapshot
    effects: List[Effect] = []
    for i, intent in enumerate(intents):
        result = execute(intent, working, context.derive(f"{agent}-{i}"))
        if isinstance(result, ExecutionFailure):
            raise AgentError(agent, f"{result.code}: {result.error}")
        if result.effects:
            working = apply_effects(working, result.effects, applied_at=context.now)
        effects.extend(result.effects)
    return effects
