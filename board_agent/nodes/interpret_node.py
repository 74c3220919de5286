# board_agent/nodes/interpret_node.py
from __future__ import annotations
from langchain_core.runnables import RunnableConfig

from board_agent.core.intent import QueryTasks
from board_agent.core.logger import get_logger
from board_agent.core.state import PipelineState, run_deps
from board_agent.services.differ import SnapshotDiff
from board_agent.services.interpreter import answer_query, interpret

logger = get_logger(__name__)


def interpret_node(state: PipelineState, config: RunnableConfig) -> PipelineState:
    llm, emitter, ctx = run_deps(config)
    intent = state.intent
    step = emitter.start("Interpreter", icon="💬", description="Writing response message",
                         input={"kind": intent.kind, "language": state.language})

    if isinstance(intent, QueryTasks):
        # 조회는 사전 스냅샷을 근거로 답한다
        result = answer_query(intent.query or state.instruction, state.snapshot, state.language,
                              llm=llm, now=ctx.clock())
    else:
        result = interpret(intent, state.effects, state.diff or SnapshotDiff(),
                           state.after or state.snapshot, state.language, llm=llm)

    if result.llm_called:
        state.llm_calls += 1
        state.stages.append("interpreter")
    state.message = result.message
    emitter.complete(step, {"message": result.message, "model": result.model})
    logger.info("interpret_node 완료: kind=%s, model=%s", intent.kind, result.model)
    return state
