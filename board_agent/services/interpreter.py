from __future__ import annotations
import json
from datetime import datetime
from typing import Dict, List, Literal, Optional

from langchain_core.prompts import ChatPromptTemplate
from langchain_core.runnables import Runnable
from pydantic import BaseModel

from board_agent.core.config import config
from board_agent.core.effects import Effect, count_ops
from board_agent.core.errors import ModelError
from board_agent.core.intent import IntentBase
from board_agent.core.logger import get_logger
from board_agent.core.models import Snapshot
from board_agent.core.tooling import invoke_json, with_temperature
from board_agent.prompts.interpreter_prompts import (
    INTERPRETER_SYSTEM,
    INTERPRETER_USER,
    QUERY_SYSTEM,
    QUERY_USER,
)
from board_agent.services.context import format_summary, format_task_list, summarize_tasks
from board_agent.services.differ import SnapshotDiff
from board_agent.services.language import language_name
from board_agent.utils.date import get_date_context

logger = get_logger(__name__)

MessageSource = Literal["local", "llm", "fallback"]

_VIEW_NAMES = {
    "ko": {"kanban": "칸반 보드", "table": "테이블 뷰", "todo": "투두 리스트"},
    "en": {"kanban": "Kanban board", "table": "Table view", "todo": "Todo list"},
}
_FILTER_NAMES = {
    "ko": {"today": "오늘 마감인", "week": "이번 주 마감인", "month": "이번 달 마감인", "custom": "선택한 기간의"},
    "en": {"today": "due today", "week": "due this week", "month": "due this month", "custom": "in the selected range"},
}
_DEFAULTS: Dict[str, Dict[str, str]] = {
    "ChangeView": {"ko": "뷰를 변경했어요.", "en": "Changed the view."},
    "SetDateFilter": {"ko": "필터를 적용했어요.", "en": "Applied the filter."},
    "CreateTask": {"ko": "태스크를 추가했어요.", "en": "Added the task."},
    "UpdateTask": {"ko": "태스크를 수정했어요.", "en": "Updated the task."},
    "ChangeStatus": {"ko": "태스크 상태를 변경했어요.", "en": "Changed the task status."},
    "DeleteTask": {"ko": "태스크를 삭제했어요.", "en": "Deleted the task."},
    "RestoreTask": {"ko": "태스크를 복원했어요.", "en": "Restored the task."},
    "SelectTask": {"ko": "태스크를 선택했어요.", "en": "Selected the task."},
    "QueryTasks": {"ko": "질문에 답변했어요.", "en": "Answered your question."},
    "ToggleAssistant": {"ko": "채팅창을 처리했어요.", "en": "Handled the chat."},
    "Undo": {"ko": "마지막 작업을 취소했어요.", "en": "Undid the last action."},
    "RequestClarification": {"ko": "확인이 필요해요.", "en": "Need clarification."},
}


class InterpretResult(BaseModel):
    message: str
    model: MessageSource

    @property
    def llm_called(self) -> bool:
        return self.model != "local"


def default_message(kind: str, language: str) -> str:
    lang = language if language in ("ko", "en") else "en"
    entry = _DEFAULTS.get(kind)
    if entry is None:
        return "완료되었어요." if lang == "ko" else "Done."
    return entry[lang]


def _join_titles(titles: List[str], lang: str) -> str:
    if lang == "ko" or len(titles) == 1:
        return ", ".join(titles)
    return f"{', '.join(titles[:-1])} and {titles[-1]}"


def quick_message(intent: IntentBase, lang: str) -> Optional[str]:
    """모델 없이 만들 수 있는 확인 문구 (ko/en). 없으면 None."""
    kind = intent.kind
    ko = lang == "ko"
    if kind == "ChangeView":
        name = _VIEW_NAMES[lang].get(intent.view_mode, intent.view_mode)
        return f"{name}로 전환했어요." if ko else f"Switched to {name}."
    if kind == "SetDateFilter":
        if intent.filter is None:
            return "필터를 해제했어요. 모든 태스크를 보여드려요." if ko else "Cleared filters. Showing all tasks."
        name = _FILTER_NAMES[lang].get(intent.filter.type, intent.filter.type)
        return f"{name} 태스크만 보여드려요." if ko else f"Showing tasks {name}."
    if kind == "SelectTask":
        if intent.task_id is None:
            return "태스크 선택을 해제했어요." if ko else "Deselected the task."
        return "태스크를 선택했어요." if ko else "Selected the task."
    if kind == "CreateTask":
        titles = [t.title for t in intent.tasks]
        joined = _join_titles(titles, lang)
        if ko:
            return f"{joined} 태스크를 추가했어요."
        return f"Added the {joined} task." if len(titles) == 1 else f"Added {joined} tasks."
    if kind in ("DeleteTask", "RestoreTask", "Undo"):
        return default_message(kind, lang)
    if kind == "ToggleAssistant":
        if intent.open:
            return "채팅창을 열었어요." if ko else "Opened the chat."
        return "채팅창을 닫을게요." if ko else "Closing the chat."
    if kind == "RequestClarification":
        return intent.question
    return None


def interpret(
    intent: IntentBase,
    effects: List[Effect],
    diff: SnapshotDiff,
    snapshot: Snapshot,
    language: str,
    *,
    llm: Runnable,
) -> InterpretResult:
    """
    실행 결과를 사용자 언어의 짧은 문장으로.
    모델 실패는 기본 문구로 대체하며, 이미 계산된 effect 에는 영향을 주지 않는다.
    """
    if language in ("ko", "en"):
        quick = quick_message(intent, language)
        if quick:
            return InterpretResult(message=quick, model="local")

    touched = set(diff.tasks_added) | set(diff.tasks_deleted) | set(diff.tasks_restored)
    touched |= {u.task_id for u in diff.tasks_updated}
    involved = [t for t in snapshot.data.tasks if t.id in touched]

    prompt = ChatPromptTemplate.from_messages([
        ("system", INTERPRETER_SYSTEM),
        ("user", INTERPRETER_USER),
    ])
    variables = {
        "language_name": language_name(language),
        "intent": json.dumps(intent.to_wire(exclude_none=True), ensure_ascii=False),
        "effect_count": count_ops(effects),
        "diff": json.dumps(diff.to_wire(), ensure_ascii=False),
        "tasks": format_task_list(involved),
    }
    try:
        out = invoke_json(prompt, with_temperature(llm, config.INTERPRETER_TEMPERATURE), variables, stage="interpreter")
    except ModelError as e:
        logger.warning("interpreter 모델 실패, 기본 문구 사용: kind=%s, error=%s", intent.kind, str(e))
        return InterpretResult(message=default_message(intent.kind, language), model="fallback")

    message = str(out.get("message") or "").strip()
    if not message:
        return InterpretResult(message=default_message(intent.kind, language), model="fallback")
    return InterpretResult(message=message, model="llm")


def summary_answer(snapshot: Snapshot, language: str, now: Optional[datetime] = None) -> str:
    s = summarize_tasks(snapshot.data.tasks, now)
    bs = s.by_status
    if language == "ko":
        return (f"현재 태스크는 {s.total}개예요. 할 일 {bs['todo']}개, 진행 중 {bs['in-progress']}개, "
                f"리뷰 {bs['review']}개, 완료 {bs['done']}개이고 마감 지난 태스크는 {s.overdue}개예요.")
    return (f"You have {s.total} tasks: {bs['todo']} to do, {bs['in-progress']} in progress, "
            f"{bs['review']} in review, {bs['done']} done, and {s.overdue} overdue.")


def answer_query(
    question: str,
    snapshot: Snapshot,
    language: str,
    *,
    llm: Runnable,
    now: Optional[datetime] = None,
) -> InterpretResult:
    """QueryTasks: 스냅샷만 근거로 답한다 (읽기 전용). 모델 실패 시 집계 요약으로 대체."""
    prompt = ChatPromptTemplate.from_messages([
        ("system", QUERY_SYSTEM),
        ("user", QUERY_USER),
    ])
    variables = {
        "language_name": language_name(language),
        "today": get_date_context(now)["today"],
        "summary": format_summary(summarize_tasks(snapshot.data.tasks, now)),
        "task_list": format_task_list(snapshot.active_tasks()),
        "question": question,
    }
    try:
        out = invoke_json(prompt, with_temperature(llm, config.AGENT_TEMPERATURE), variables, stage="query")
    except ModelError as e:
        logger.warning("query 모델 실패, 요약으로 대체: %s", str(e))
        return InterpretResult(message=summary_answer(snapshot, language, now), model="fallback")

    answer = str(out.get("answer") or out.get("message") or "").strip()
    if not answer:
        return InterpretResult(message=summary_answer(snapshot, language, now), model="fallback")
    return InterpretResult(message=answer, model="llm")
