# board_agent/nodes/task_creator_agent_node.py
from __future__ import annotations
from typing import List

from langchain_core.prompts import ChatPromptTemplate
from langchain_core.runnables import Runnable
from pydantic import ValidationError

from board_agent.core.config import config
from board_agent.core.errors import AgentError
from board_agent.core.intent import CreateTask, NewTask
from board_agent.core.logger import get_logger
from board_agent.core.models import Snapshot
from board_agent.core.state import AgentCall, AgentOutput, AgentType
from board_agent.core.tooling import invoke_json, with_temperature
from board_agent.prompts.orchestrator_prompts import AGENT_USER, TASK_CREATOR_SYSTEM
from board_agent.services.context import format_task_list
from board_agent.services.language import language_name
from board_agent.services.runtime import ExecutionContext, execute_intents
from board_agent.utils.date import get_date_context

logger = get_logger(__name__)

AGENT = AgentType.TASK_CREATOR.value


def task_creator_agent(
    call: AgentCall,
    snapshot: Snapshot,
    *,
    llm: Runnable,
    context: ExecutionContext,
    language: str,
) -> AgentOutput:
    instruction = str(call.params.get("instruction") or "")
    dates = get_date_context(context.clock())

    prompt = ChatPromptTemplate.from_messages([
        ("system", TASK_CREATOR_SYSTEM),
        ("user", AGENT_USER),
    ])
    out = invoke_json(prompt, with_temperature(llm, config.AGENT_TEMPERATURE), {
        "today": dates["today"],
        "tomorrow": dates["tomorrow"],
        "language_name": language_name(language),
        "task_list": format_task_list(snapshot.active_tasks()),
        "instruction": instruction,
    }, stage=AGENT)

    try:
        tasks: List[NewTask] = [NewTask.model_validate(t) for t in out.get("tasks") or []]
    except ValidationError as e:
        raise AgentError(AGENT, f"invalid task: {e.errors()[0].get('msg', '')}") from e
    tasks = [t for t in tasks if t.title]
    if not tasks:
        raise AgentError(AGENT, "no tasks to create")

    intent = CreateTask(kind="CreateTask", tasks=tasks, confidence=0.9, source="agent")
    effects = execute_intents(AGENT, [intent], snapshot, context)

    logger.info("task_creator: created=%d", len(tasks))
    return AgentOutput(message=str(out.get("message") or ""), intents=[intent], effects=effects)
