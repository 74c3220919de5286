from __future__ import annotations
import copy
from typing import Any, Dict, Iterable, List, Literal, Optional

from pydantic import BaseModel, Field

from board_agent.core.logger import get_logger
from board_agent.core.models import Snapshot

logger = get_logger(__name__)

PatchOpType = Literal["set", "append", "remove", "restore"]
EffectType = Literal["snapshot.patch", "snapshot.undo"]

TASKS_PATH = "data.tasks"
TASK_KEY_PREFIX = "id:"


class PatchOp(BaseModel):
    op: PatchOpType
    path: str
    value: Any = None


class Effect(BaseModel):
    """상태 소유자(UI/스토어)에게 전달되는 유일한 변경 채널"""
    type: EffectType = "snapshot.patch"
    id: str
    ops: List[PatchOp] = Field(default_factory=list)

    def to_wire(self) -> Dict[str, Any]:
        out = self.model_dump(mode="json")
        if self.type == "snapshot.undo":
            out.pop("ops", None)
        return out


def task_path(task_id: str, field: Optional[str] = None) -> str:
    base = f"{TASKS_PATH}.{TASK_KEY_PREFIX}{task_id}"
    return f"{base}.{field}" if field else base


def count_ops(effects: Iterable[Effect]) -> int:
    return sum(len(e.ops) for e in effects)


# ───────────────────────────────
# 적용기 (스토어 측 참조 구현)
# ───────────────────────────────
class EffectApplyError(ValueError):
    pass


def _find_task(tasks: List[Dict[str, Any]], key: str) -> Dict[str, Any]:
    """'id:<taskId>' 또는 레거시 인덱스 키로 태스크 dict 를 찾는다."""
    if key.startswith(TASK_KEY_PREFIX):
        task_id = key[len(TASK_KEY_PREFIX):]
        for t in tasks:
            if t.get("id") == task_id:
                return t
        raise EffectApplyError(f"task not found: {task_id}")
    if key.isdigit():
        idx = int(key)
        if idx >= len(tasks):
            raise EffectApplyError(f"task index out of range: {idx}")
        return tasks[idx]
    raise EffectApplyError(f"invalid task key: {key}")


def _find_by_id(tasks: List[Dict[str, Any]], task_id: Any) -> Dict[str, Any]:
    for t in tasks:
        if t.get("id") == task_id:
            return t
    raise EffectApplyError(f"task not found: {task_id}")


def _apply_op(doc: Dict[str, Any], op: PatchOp) -> None:
    parts = op.path.split(".", 2)
    tasks: List[Dict[str, Any]] = doc["data"]["tasks"]

    if parts[0] == "state":
        if len(parts) < 2 or op.op != "set":
            raise EffectApplyError(f"unsupported state op: {op.op} {op.path}")
        # state.a.b 형태의 중첩 set 도 허용
        target = doc["state"]
        keys = op.path.split(".")[1:]
        for k in keys[:-1]:
            target = target.setdefault(k, {})
        target[keys[-1]] = copy.deepcopy(op.value)
        return

    if parts[:2] != ["data", "tasks"]:
        raise EffectApplyError(f"unsupported path: {op.path}")

    if len(parts) == 2:
        # data.tasks 컬렉션 단위 op
        if op.op == "append":
            tasks.append(copy.deepcopy(op.value))
        elif op.op == "remove":  # 레거시: value = taskId
            task = _find_by_id(tasks, op.value)
            task["deletedAt"] = task.get("deletedAt") or _now_marker(doc)
        elif op.op == "restore":
            _find_by_id(tasks, op.value).pop("deletedAt", None)
        else:
            raise EffectApplyError(f"unsupported op on collection: {op.op}")
        return

    key, _, field = parts[2].partition(".")
    task = _find_task(tasks, key)
    if op.op == "remove" and not field:
        task["deletedAt"] = op.value
    elif op.op == "restore" and not field:
        task.pop("deletedAt", None)
    elif op.op == "set" and field:
        task[field] = copy.deepcopy(op.value)
    else:
        raise EffectApplyError(f"unsupported op: {op.op} {op.path}")


def _now_marker(doc: Dict[str, Any]) -> str:
    # 레거시 remove 는 타임스탬프를 싣지 않으므로 적용 시점의 마커를 기록
    return doc.get("_applied_at") or "deleted"


def apply_effects(snapshot: Snapshot, effects: Iterable[Effect], *, applied_at: Optional[str] = None) -> Snapshot:
    """Effect 목록을 적용한 새 Snapshot 을 반환한다. 입력 snapshot 은 변경하지 않는다.

    snapshot.undo 는 스토어의 히스토리가 필요하므로 여기서는 무시한다.
    실패한 op 이 있으면 EffectApplyError 를 던지며, 부분 적용된 결과는 반환하지 않는다.
    """
    doc = snapshot.model_dump(by_alias=True, mode="json")
    if applied_at:
        doc["_applied_at"] = applied_at
    for effect in effects:
        if effect.type == "snapshot.undo":
            logger.debug("undo effect 는 적용기에서 건너뜀: id=%s", effect.id)
            continue
        for op in effect.ops:
            _apply_op(doc, op)
    doc.pop("_applied_at", None)
    return Snapshot.model_validate(doc)
