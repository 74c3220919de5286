from __future__ import annotations
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from board_agent.core.models import TASK_PRIORITIES, TASK_STATUSES, Snapshot, Task
from board_agent.utils.date import local_today, parse_day


class TasksSummary(BaseModel):
    total: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    by_priority: Dict[str, int] = Field(default_factory=dict)
    overdue: int = 0
    due_today: int = 0
    due_this_week: int = 0


def summarize_tasks(tasks: List[Task], now: Optional[datetime] = None) -> TasksSummary:
    """활성 태스크 기준 집계 (삭제된 태스크 제외)"""
    today = local_today(now)
    week_end = today + timedelta(days=6 - today.weekday())
    active = [t for t in tasks if not t.is_deleted]

    summary = TasksSummary(
        total=len(active),
        by_status={s: 0 for s in TASK_STATUSES},
        by_priority={p: 0 for p in TASK_PRIORITIES},
    )
    for t in active:
        summary.by_status[t.status] += 1
        summary.by_priority[t.priority] += 1
        due = parse_day(t.due_date)
        if due is None or t.status == "done":
            continue
        if due < today:
            summary.overdue += 1
        elif due == today:
            summary.due_today += 1
        if today <= due <= week_end:
            summary.due_this_week += 1
    return summary


def _task_line(t: Task, *, with_index: Optional[int] = None) -> str:
    # 모델에게는 ID 를 보여주지 않는다
    prefix = f"[{with_index}] " if with_index is not None else "- "
    extras = [t.status, t.priority]
    if t.due_date:
        extras.append(f"due {t.due_date}")
    if t.tags:
        extras.append("tags " + ",".join(t.tags))
    return f'{prefix}"{t.title}" ({", ".join(extras)})'


def format_task_list(tasks: List[Task], *, indexed: bool = False) -> str:
    if not tasks:
        return "(no tasks)"
    return "\n".join(_task_line(t, with_index=i if indexed else None) for i, t in enumerate(tasks))


def describe_view_state(snapshot: Snapshot) -> Dict[str, Any]:
    st = snapshot.state
    selected = snapshot.get_task(st.selected_task_id)
    date_filter = f"{st.date_filter.field}={st.date_filter.type}" if st.date_filter else "none"
    return {
        "view_mode": st.view_mode,
        "date_filter": date_filter,
        "selected_task": f'"{selected.title}"' if selected else "none",
    }


def format_summary(summary: TasksSummary) -> str:
    bs = summary.by_status
    return (
        f"Total: {summary.total} | Todo={bs.get('todo', 0)}, In Progress={bs.get('in-progress', 0)}, "
        f"Review={bs.get('review', 0)}, Done={bs.get('done', 0)} | "
        f"Overdue: {summary.overdue}, Due today: {summary.due_today}, Due this week: {summary.due_this_week}"
    )
