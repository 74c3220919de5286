# board_agent/nodes/task_mutator_agent_node.py
from __future__ import annotations
import re
from typing import Any, Dict, List

from langchain_core.prompts import ChatPromptTemplate
from langchain_core.runnables import Runnable
from pydantic import ValidationError

from board_agent.core.config import config
from board_agent.core.errors import AgentError
from board_agent.core.intent import ChangeStatus, DeleteTask, IntentBase, RestoreTask, TaskChanges, UpdateTask
from board_agent.core.logger import get_logger
from board_agent.core.models import Snapshot, Task
from board_agent.core.state import AgentCall, AgentOutput, AgentType
from board_agent.core.tooling import invoke_json, with_temperature
from board_agent.prompts.orchestrator_prompts import AGENT_USER, TASK_MUTATOR_SYSTEM
from board_agent.services.context import format_task_list
from board_agent.services.language import language_name, response_language
from board_agent.services.policy import assess, confirm_clarification, target_ids
from board_agent.services.resolver import clarify_selection, select_targets
from board_agent.services.runtime import ExecutionContext, execute_intents
from board_agent.utils.date import get_date_context

logger = get_logger(__name__)

AGENT = AgentType.TASK_MUTATOR.value

_RESTORE_WORDS = re.compile(r"\b(restore|undelete|recover)\b|복구|복원|되살", re.I)


def _pick(candidates: List[Task], op: Dict[str, Any]) -> Task:
    idx = op.get("taskIndex")
    if not isinstance(idx, int) or isinstance(idx, bool) or not 0 <= idx < len(candidates):
        raise AgentError(AGENT, f"taskIndex out of range: {idx}")
    return candidates[idx]


def _to_intents(operations: List[Dict[str, Any]], candidates: List[Task]) -> List[IntentBase]:
    """모델이 고른 인덱스 → 구체 intent. ID 는 후보 목록에서만 나온다."""
    base = {"confidence": 0.9, "source": "agent"}
    intents: List[IntentBase] = []
    delete_ids: List[str] = []
    restore_ids: List[str] = []

    for op in operations:
        if not isinstance(op, dict):
            raise AgentError(AGENT, "operation must be an object")
        task = _pick(candidates, op)
        op_type = op.get("type")
        if op_type == "delete":
            delete_ids.append(task.id)
        elif op_type == "restore":
            restore_ids.append(task.id)
        elif op_type == "update":
            try:
                changes = TaskChanges.model_validate(op.get("changes") or {})
            except ValidationError as e:
                raise AgentError(AGENT, f"invalid changes: {e.errors()[0].get('msg', '')}") from e
            changed = changes.changed()
            if not changed:
                raise AgentError(AGENT, "update without changes")
            if set(changed) == {"status"}:
                intents.append(ChangeStatus(kind="ChangeStatus", task_id=task.id, to_status=changes.status,
                                            from_status=task.status, **base))
            else:
                intents.append(UpdateTask(kind="UpdateTask", task_id=task.id, changes=changes, **base))
        else:
            raise AgentError(AGENT, f"unknown operation type: {op_type}")

    # 삭제/복구는 묶어서 한 번에
    if delete_ids:
        intents.append(DeleteTask(kind="DeleteTask", task_ids=delete_ids, **base) if len(delete_ids) > 1
                       else DeleteTask(kind="DeleteTask", task_id=delete_ids[0], **base))
    if restore_ids:
        intents.append(RestoreTask(kind="RestoreTask", task_ids=restore_ids, **base) if len(restore_ids) > 1
                       else RestoreTask(kind="RestoreTask", task_id=restore_ids[0], **base))
    return intents


def task_mutator_agent(
    call: AgentCall,
    snapshot: Snapshot,
    *,
    llm: Runnable,
    context: ExecutionContext,
    language: str,
) -> AgentOutput:
    instruction = str(call.params.get("instruction") or "")
    restoring = bool(_RESTORE_WORDS.search(instruction))
    selection = select_targets(instruction, snapshot, include_deleted=restoring)

    # 대상이 없거나 모호하면 고르지 않고 되묻는다
    if not selection.tasks or selection.ambiguous:
        clarification = clarify_selection(
            selection, "RestoreTask" if restoring else "UpdateTask", language=response_language(language),
        )
        logger.info("task_mutator 되묻기: candidates=%d", len(selection.tasks))
        return AgentOutput(message=clarification.suggested_question, clarification=clarification)

    candidates = selection.tasks
    dates = get_date_context(context.clock())
    prompt = ChatPromptTemplate.from_messages([
        ("system", TASK_MUTATOR_SYSTEM),
        ("user", AGENT_USER),
    ])
    out = invoke_json(prompt, with_temperature(llm, config.AGENT_TEMPERATURE), {
        "today": dates["today"],
        "tomorrow": dates["tomorrow"],
        "language_name": language_name(language),
        "task_list": format_task_list(candidates, indexed=True),
        "instruction": instruction,
    }, stage=AGENT)

    operations = out.get("operations") or []
    if not isinstance(operations, list):
        raise AgentError(AGENT, "operations must be a list")
    intents = _to_intents(operations, candidates)

    # 대량 삭제/복구, 과도한 쓰기는 확인 후에만 실행
    risk = assess(intents)
    if risk.requires_confirm and not call.params.get("confirmed"):
        touched = {tid for i in intents for tid in target_ids(i)}
        clarification = confirm_clarification(
            intents, [t for t in candidates if t.id in touched], risk, language=response_language(language),
        )
        logger.info("task_mutator 확인 요청: intents=%d, reasons=%s", len(intents), risk.reasons)
        return AgentOutput(message=clarification.suggested_question, intents=intents, clarification=clarification)

    effects = execute_intents(AGENT, intents, snapshot, context)

    logger.info("task_mutator: candidates=%d, intents=%d", len(candidates), len(intents))
    return AgentOutput(message=str(out.get("message") or ""), intents=intents, effects=effects)
