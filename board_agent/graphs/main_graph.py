from __future__ import annotations
from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, StateGraph

from board_agent.core.effects import EffectApplyError, apply_effects
from board_agent.core.errors import AgentError, ModelError
from board_agent.core.intent import QueryTasks
from board_agent.core.logger import get_logger
from board_agent.core.state import (
    AGENT_DISPLAY,
    AgentCall,
    OrchestrationState,
    PipelineState,
    run_deps,
)

# ───────────────────────────────
# 노드(정의)
# ───────────────────────────────
from board_agent.nodes.fast_path_node import fast_path_node
from board_agent.nodes.compile_node import compile_node
from board_agent.nodes.resolve_node import resolve_node
from board_agent.nodes.execute_node import diff_node, execute_node
from board_agent.nodes.interpret_node import interpret_node
from board_agent.nodes.orchestrator_node import AGENT_REGISTRY, orchestrator_node

logger = get_logger(__name__)


def compile_intent_graph():
    """
    단일 intent 파이프라인
    fast_path -> compiler -> resolver -> runtime -> differ -> interpreter
    compiler/runtime 오류나 되묻기는 그 자리에서 종료
    """
    def _after_compile(state: PipelineState) -> str:
        return "end" if state.error else "go"

    def _after_resolve(state: PipelineState) -> str:
        return "end" if state.clarification else "go"

    def _after_execute(state: PipelineState) -> str:
        if state.error:
            return "end"
        # 조회는 바뀐 것이 없으므로 바로 답변
        return "answer" if isinstance(state.intent, QueryTasks) else "go"

    def _after_diff(state: PipelineState) -> str:
        return "end" if state.error else "go"

    g = StateGraph(PipelineState)

    g.add_node("fast_path", fast_path_node)
    g.add_node("compiler", compile_node)
    g.add_node("resolver", resolve_node)
    g.add_node("runtime", execute_node)
    g.add_node("differ", diff_node)
    g.add_node("interpreter", interpret_node)

    g.set_entry_point("fast_path")
    g.add_edge("fast_path", "compiler")
    g.add_conditional_edges("compiler", _after_compile, {"go": "resolver", "end": END})
    g.add_conditional_edges("resolver", _after_resolve, {"go": "runtime", "end": END})
    g.add_conditional_edges("runtime", _after_execute, {"go": "differ", "answer": "interpreter", "end": END})
    g.add_conditional_edges("differ", _after_diff, {"go": "interpreter", "end": END})
    g.add_edge("interpreter", END)

    return g.compile()


def compile_orchestrator_graph():
    """
    orchestrator -> dispatch (루프)
    에이전트 하나의 실패는 해당 step 만 failed 로 표시하고 나머지는 계속 실행
    """
    def _dispatch(state: OrchestrationState, config: RunnableConfig) -> OrchestrationState:
        if not state.queue:
            return state

        llm, emitter, ctx = run_deps(config)
        call = state.queue.pop(0)
        index = state.executed
        state.executed += 1

        # confirmed 는 모델이 아니라 요청에서만 온다
        params = {"instruction": state.instruction, **call.params, "confirmed": state.confirmed}
        name, icon = AGENT_DISPLAY[call.agent]
        step = emitter.start(name, icon=icon, description=call.reason or call.agent.value,
                             input=params, kind="agent")
        working = state.working or state.snapshot

        try:
            fn = AGENT_REGISTRY[call.agent]
            output = fn(
                AgentCall(agent=call.agent, params=params, reason=call.reason),
                working,
                llm=llm,
                context=ctx.derive(f"agent-{index}"),
                language=state.language,
            )
            after = apply_effects(working, output.effects, applied_at=ctx.now)
        except AgentError as e:
            error = e
        except (ModelError, EffectApplyError) as e:
            error = AgentError(call.agent.value, str(e))
        except Exception as e:
            logger.exception("에이전트 실행 중 예외: agent=%s", call.agent.value)
            error = AgentError(call.agent.value, str(e) or e.__class__.__name__)
        else:
            error = None

        if error is not None:
            state.failed_agents.append(call.agent.value)
            emitter.fail(step, error.message, kind="agent")
            return state

        state.working = after
        state.effects.extend(output.effects)
        if output.clarification is not None and state.clarification is None:
            state.clarification = output.clarification
            state.message = output.message or output.clarification.suggested_question
        elif output.message and state.clarification is None:
            # 먼저 나온 질문을 뒤 에이전트의 메시지로 덮지 않는다
            state.message = output.message
        emitter.complete(step, {
            "message": output.message,
            "intents": [i.to_wire(exclude_none=True) for i in output.intents],
            "effects": len(output.effects),
            "clarification": output.clarification.to_payload() if output.clarification else None,
        }, kind="agent")
        return state

    def _should_continue(state: OrchestrationState) -> str:
        return "end" if (state.error is not None or not state.queue) else "go"

    g = StateGraph(OrchestrationState)

    g.add_node("orchestrator", orchestrator_node)
    g.add_node("dispatch", _dispatch)

    g.set_entry_point("orchestrator")
    g.add_conditional_edges("orchestrator", _should_continue, {"go": "dispatch", "end": END})
    g.add_conditional_edges("dispatch", _should_continue, {"go": "dispatch", "end": END})

    return g.compile()
