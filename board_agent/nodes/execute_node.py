# board_agent/nodes/execute_node.py
from __future__ import annotations
from langchain_core.runnables import RunnableConfig

from board_agent.core.effects import EffectApplyError, apply_effects, count_ops
from board_agent.core.logger import get_logger
from board_agent.core.state import PipelineError, PipelineState, run_deps
from board_agent.services.differ import diff
from board_agent.services.runtime import ExecutionFailure, execute

logger = get_logger(__name__)


def execute_node(state: PipelineState, config: RunnableConfig) -> PipelineState:
    _, emitter, ctx = run_deps(config)
    step = emitter.start("Runtime", icon="⚙️", description="Executing intent",
                         input={"kind": state.intent.kind})

    result = execute(state.intent, state.snapshot, ctx)
    if isinstance(result, ExecutionFailure):
        state.error = PipelineError(phase="runtime", code=result.code, message=result.error)
        emitter.fail(step, result.error)
        return state

    state.effects = result.effects
    emitter.complete(step, {"effects": len(result.effects), "ops": count_ops(result.effects)})
    return state


def diff_node(state: PipelineState, config: RunnableConfig) -> PipelineState:
    """effect 를 적용한 사후 스냅샷과 비교 (인터프리터 입력)"""
    _, emitter, ctx = run_deps(config)
    step = emitter.start("Differ", icon="📊", description="Computing snapshot diff")

    try:
        after = apply_effects(state.snapshot, state.effects, applied_at=ctx.now)
    except EffectApplyError as e:
        state.error = PipelineError(phase="runtime", code="invalid_effect", message=str(e))
        emitter.fail(step, str(e))
        logger.error("diff_node: effect 적용 실패: %s", str(e))
        return state

    state.after = after
    state.diff = diff(state.snapshot, after)
    emitter.complete(step, state.diff.to_wire())
    return state
