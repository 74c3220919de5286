# board_agent/nodes/compile_node.py
from __future__ import annotations
from langchain_core.runnables import RunnableConfig

from board_agent.core.logger import get_logger
from board_agent.core.state import PipelineError, PipelineState, run_deps
from board_agent.services.compiler import CompilerFailure, compile_skeleton

logger = get_logger(__name__)


def compile_node(state: PipelineState, config: RunnableConfig) -> PipelineState:
    llm, emitter, ctx = run_deps(config)
    step = emitter.start("Compiler", icon="🧠", description="Compiling instruction to skeleton",
                         input={"instruction": state.instruction, "hint": bool(state.hint)})

    state.llm_calls += 1
    state.stages.append("compiler")
    result = compile_skeleton(state.instruction, state.snapshot, state.hint, llm=llm, now=ctx.clock())

    if isinstance(result, CompilerFailure):
        state.error = PipelineError(phase="compiler", code=result.type, message=result.message)
        emitter.fail(step, result.message)
        logger.warning("compile_node 실패: type=%s, message=%s", result.type, result.message)
        return state

    state.skeleton = result.skeleton
    emitter.complete(step, {"skeleton": result.skeleton.to_wire(exclude_none=True)})
    return state
