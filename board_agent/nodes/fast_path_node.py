# board_agent/nodes/fast_path_node.py
from __future__ import annotations
from langchain_core.runnables import RunnableConfig

from board_agent.core.logger import get_logger
from board_agent.core.state import PipelineState, run_deps
from board_agent.services.fast_path import match

logger = get_logger(__name__)


def fast_path_node(state: PipelineState, config: RunnableConfig) -> PipelineState:
    """패턴 매칭으로 언어 감지 + 힌트. 실패하지 않는다."""
    _, emitter, _ = run_deps(config)
    step = emitter.start("FastPath", icon="⚡", description="Pattern matching",
                         input={"instruction": state.instruction})

    result = match(state.instruction)
    state.language = result.language
    state.fast_path_hit = result.hit
    state.hint = result.hint
    state.stages.append("fast_path")

    emitter.complete(step, {
        "hit": result.hit,
        "language": result.language,
        "hint": result.hint.model_dump() if result.hint else None,
    })
    logger.debug("fast_path_node: hit=%s, language=%s", result.hit, result.language)
    return state
