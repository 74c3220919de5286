# board_agent/nodes/query_agent_node.py
from __future__ import annotations
from langchain_core.runnables import Runnable

from board_agent.core.logger import get_logger
from board_agent.core.models import Snapshot
from board_agent.core.state import AgentCall, AgentOutput
from board_agent.services.interpreter import answer_query
from board_agent.services.runtime import ExecutionContext

logger = get_logger(__name__)


def query_agent(
    call: AgentCall,
    snapshot: Snapshot,
    *,
    llm: Runnable,
    context: ExecutionContext,
    language: str,
) -> AgentOutput:
    """읽기 전용. effect 를 만들지 않는다."""
    question = str(call.params.get("instruction") or call.params.get("question") or "")
    result = answer_query(question, snapshot, language, llm=llm, now=context.clock())
    logger.debug("query_agent: model=%s", result.model)
    return AgentOutput(message=result.message)
