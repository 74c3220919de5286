# board_agent/nodes/view_control_agent_node.py
from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple

from langchain_core.prompts import ChatPromptTemplate
from langchain_core.runnables import Runnable
from pydantic import ValidationError

from board_agent.core.config import config
from board_agent.core.errors import AgentError
from board_agent.core.intent import ChangeView, IntentBase, SelectTask, SelectTaskSkeleton, SetDateFilter
from board_agent.core.logger import get_logger
from board_agent.core.models import DateFilter, Snapshot
from board_agent.core.state import AgentCall, AgentOutput, AgentType
from board_agent.core.tooling import invoke_json, with_temperature
from board_agent.prompts.orchestrator_prompts import AGENT_USER, VIEW_CONTROL_SYSTEM
from board_agent.services.context import format_task_list
from board_agent.services.language import language_name, response_language
from board_agent.services.resolver import ClarificationError, ResolverFailure, resolve
from board_agent.services.runtime import ExecutionContext, execute_intents
from board_agent.utils.date import get_date_context

logger = get_logger(__name__)

AGENT = AgentType.VIEW_CONTROL.value
_CLEAR = "clear"


def _actions_to_intents(
    actions: Dict[str, Any],
    snapshot: Snapshot,
    language: str,
) -> Tuple[List[IntentBase], Optional[ClarificationError]]:
    base = {"confidence": 0.9, "source": "agent"}
    intents: List[IntentBase] = []
    clarification: Optional[ClarificationError] = None

    try:
        if actions.get("viewMode"):
            intents.append(ChangeView(kind="ChangeView", view_mode=actions["viewMode"], **base))
        date_filter = actions.get("dateFilter")
        if date_filter == _CLEAR:
            intents.append(SetDateFilter(kind="SetDateFilter", filter=None, **base))
        elif isinstance(date_filter, dict):
            intents.append(SetDateFilter(kind="SetDateFilter", filter=DateFilter.model_validate(date_filter), **base))
    except ValidationError as e:
        raise AgentError(AGENT, f"invalid view action: {e.errors()[0].get('msg', '')}") from e

    # 선택은 resolver 를 거쳐야만 ID 가 된다
    select = actions.get("selectTask", actions.get("selectedTask"))
    if select == _CLEAR:
        intents.append(SelectTask(kind="SelectTask", task_id=None, **base))
    elif isinstance(select, str) and select.strip():
        skeleton = SelectTaskSkeleton(kind="SelectTask", target_hint=select, confidence=0.9, source="agent")
        result = resolve(skeleton, snapshot, language=response_language(language))
        if isinstance(result, ResolverFailure):
            clarification = result.error
        else:
            intents.append(result.intent)
    return intents, clarification


def view_control_agent(
    call: AgentCall,
    snapshot: Snapshot,
    *,
    llm: Runnable,
    context: ExecutionContext,
    language: str,
) -> AgentOutput:
    instruction = str(call.params.get("instruction") or "")
    prompt = ChatPromptTemplate.from_messages([
        ("system", VIEW_CONTROL_SYSTEM),
        ("user", AGENT_USER),
    ])
    out = invoke_json(prompt, with_temperature(llm, config.AGENT_TEMPERATURE), {
        "language_name": language_name(language),
        "today": get_date_context(context.clock())["today"],
        "task_list": format_task_list(snapshot.active_tasks()),
        "instruction": instruction,
    }, stage=AGENT)

    actions = out.get("actions") or {}
    if not isinstance(actions, dict):
        raise AgentError(AGENT, "actions must be an object")

    intents, clarification = _actions_to_intents(actions, snapshot, language)
    effects = execute_intents(AGENT, intents, snapshot, context)

    message = str(out.get("message") or "")
    if clarification is not None:
        # 나머지 뷰 변경은 반영하고, 선택만 되묻는다
        message = clarification.suggested_question
    logger.info("view_control: intents=%d, clarification=%s", len(intents), clarification is not None)
    return AgentOutput(message=message, intents=intents, effects=effects, clarification=clarification)
