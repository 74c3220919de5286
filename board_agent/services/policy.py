from __future__ import annotations
from typing import Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, Field

from board_agent.core.config import config
from board_agent.core.intent import IntentBase
from board_agent.core.logger import get_logger
from board_agent.core.models import Task
from board_agent.services.resolver import ClarificationError

logger = get_logger(__name__)

RiskLevel = Literal["low", "medium", "high"]

# ───────────────────────────────
# 종류별 위험도
# ───────────────────────────────
RISK_LEVELS: Dict[str, RiskLevel] = {
    "DeleteTask": "high",
    "RestoreTask": "high",
    "ChangeStatus": "medium",
    "UpdateTask": "medium",
    "CreateTask": "medium",
    "Undo": "medium",
    "SelectTask": "low",
    "ChangeView": "low",
    "SetDateFilter": "low",
    "QueryTasks": "low",
    "ToggleAssistant": "low",
    "RequestClarification": "low",
}
DESTRUCTIVE_KINDS = frozenset({"DeleteTask", "RestoreTask"})
WRITE_KINDS = frozenset({"CreateTask", "UpdateTask", "ChangeStatus", "DeleteTask", "RestoreTask"})
_ORDER = {"low": 0, "medium": 1, "high": 2}


class RiskAssessment(BaseModel):
    level: RiskLevel = "low"
    reasons: List[str] = Field(default_factory=list)
    destructive_targets: int = 0
    write_steps: int = 0
    requires_confirm: bool = False


def target_ids(intent: IntentBase) -> List[str]:
    """intent 가 건드리는 태스크 ID (bulk 면 전부)"""
    ids = getattr(intent, "task_ids", None)
    if ids is not None:
        return list(ids)
    task_id = getattr(intent, "task_id", None)
    return [task_id] if task_id else []


def assess(intents: Sequence[IntentBase]) -> RiskAssessment:
    """
    실행 전 위험도 평가
    - 대상이 CONFIRM_BULK_THRESHOLD 개 이상인 삭제/복구는 확인 필요
    - 쓰기 intent 가 MAX_WRITE_STEPS 를 넘어도 확인 필요
    """
    risk = RiskAssessment()
    for intent in intents:
        level = RISK_LEVELS.get(intent.kind, "low")
        if _ORDER[level] > _ORDER[risk.level]:
            risk.level = level
        if intent.kind in WRITE_KINDS:
            risk.write_steps += 1
        if intent.kind in DESTRUCTIVE_KINDS:
            count = len(target_ids(intent))
            risk.destructive_targets += count
            if count >= config.CONFIRM_BULK_THRESHOLD:
                risk.requires_confirm = True
                risk.reasons.append(f"bulk {intent.kind} on {count} tasks")

    if risk.write_steps > config.MAX_WRITE_STEPS:
        risk.requires_confirm = True
        risk.reasons.append(f"{risk.write_steps} write steps (max {config.MAX_WRITE_STEPS})")
    if risk.requires_confirm:
        logger.info("정책 게이트: 확인 필요, level=%s, reasons=%s", risk.level, risk.reasons)
    return risk


def _titles(tasks: List[Task]) -> str:
    return ", ".join(f'"{t.title}"' for t in tasks)


def confirm_clarification(
    intents: Sequence[IntentBase],
    tasks: List[Task],
    risk: RiskAssessment,
    *,
    language: str = "en",
) -> ClarificationError:
    """확인 질문. 보류된 intent 는 /agent/dispatch 로 그대로 실행할 수 있게 실어 보낸다."""
    destructive = [i for i in intents if i.kind in DESTRUCTIVE_KINDS]
    verb_kind: Optional[str] = destructive[0].kind if destructive else None
    count = risk.destructive_targets if destructive else risk.write_steps

    if language == "ko":
        if verb_kind == "DeleteTask":
            question = f"태스크 {count}개를 삭제할까요? {_titles(tasks)}"
        elif verb_kind == "RestoreTask":
            question = f"태스크 {count}개를 복구할까요? {_titles(tasks)}"
        else:
            question = f"변경 {count}건을 한 번에 적용할까요?"
    else:
        if verb_kind == "DeleteTask":
            question = f"Delete {count} tasks? {_titles(tasks)}"
        elif verb_kind == "RestoreTask":
            question = f"Restore {count} tasks? {_titles(tasks)}"
        else:
            question = f"Apply {count} changes at once?"

    return ClarificationError(
        type="confirm",
        suggested_question=question.strip(),
        candidates=tasks,
        pending_intents=[i.to_wire(exclude_none=True) for i in intents],
    )
