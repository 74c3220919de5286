from __future__ import annotations
from functools import lru_cache
from typing import Any, Dict, Optional

from langchain_core.runnables import Runnable

from board_agent.core.config import config
from board_agent.core.effects import EffectApplyError, apply_effects
from board_agent.core.io_payload import (
    ClarificationInfo,
    DispatchResponse,
    ErrorInfo,
    IntentResponse,
    OrchestrateResponse,
    PipelineTrace,
)
from board_agent.core.logger import get_logger
from board_agent.core.models import Snapshot
from board_agent.core.state import OrchestrationState, PipelineState, run_config
from board_agent.core.trace import DONE, ERROR, TraceEmitter
from board_agent.graphs.main_graph import compile_intent_graph, compile_orchestrator_graph
from board_agent.services.differ import diff
from board_agent.services.runtime import ExecutionContext, ExecutionFailure, execute

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def get_intent_graph():
    """컴파일된 그래프를 지연 생성하여 import-time 비용을 줄임."""
    return compile_intent_graph()


@lru_cache(maxsize=1)
def get_orchestrator_graph():
    return compile_orchestrator_graph()


def _finish(emitter: TraceEmitter, ok: bool, wire: Dict[str, Any], error: Optional[ErrorInfo]) -> None:
    # 스트림은 항상 done 또는 error 하나로 끝난다
    if ok:
        emitter.emit(DONE, wire)
    else:
        emitter.emit(ERROR, {"error": error.to_wire() if error else None, "response": wire})


# ───────────────────────────────
# 단일 intent 파이프라인
# ───────────────────────────────
def _intent_response(state: PipelineState, emitter: TraceEmitter) -> IntentResponse:
    trace = PipelineTrace(
        fast_path=state.fast_path_hit,
        compiler_used="compiler" in state.stages,
        resolver_used="resolver" in state.stages,
        interpreter_used="interpreter" in state.stages,
        total_llm_calls=state.llm_calls,
        language=state.language,
        steps=emitter.steps_wire(),
    )
    common = {
        "skeleton": state.skeleton.to_wire(exclude_none=True) if state.skeleton else None,
        "intent": state.intent.to_wire(exclude_none=True) if state.intent else None,
        "trace": trace,
    }
    if state.error is not None:
        return IntentResponse.err(state.error.phase, state.error.code, state.error.message, **common)
    if state.clarification is not None:
        # 되묻기는 실패가 아니다
        payload = state.clarification.to_payload()
        return IntentResponse(
            success=True,
            message=state.message,
            clarification=ClarificationInfo.model_validate(payload),
            **common,
        )
    return IntentResponse(
        success=True,
        effects=[e.to_wire() for e in state.effects],
        message=state.message,
        **common,
    )


def run_intent_pipeline(
    instruction: str,
    snapshot: Snapshot,
    *,
    llm: Runnable,
    emitter: Optional[TraceEmitter] = None,
    context: Optional[ExecutionContext] = None,
    confirmed: bool = False,
) -> IntentResponse:
    emitter = emitter or TraceEmitter()
    context = context or ExecutionContext.fresh()
    logger.info("intent 파이프라인 시작: request=%s, tasks=%d", context.request_id, len(snapshot.data.tasks))

    try:
        out = get_intent_graph().invoke(
            PipelineState(instruction=instruction, snapshot=snapshot, confirmed=confirmed),
            run_config(llm, emitter, context, recursion_limit=config.GRAPH_RECURSION_LIMIT),
        )
        response = _intent_response(PipelineState(**out), emitter)
    except Exception as e:
        logger.exception("intent 파이프라인 예외: request=%s", context.request_id)
        response = IntentResponse.err("internal", "internal_error", str(e) or e.__class__.__name__,
                                      trace=PipelineTrace(steps=emitter.steps_wire()))

    _finish(emitter, response.success, response.to_wire(), response.error)
    logger.info("intent 파이프라인 종료: success=%s, effects=%d", response.success, len(response.effects))
    return response


# ───────────────────────────────
# 오케스트레이션
# ───────────────────────────────
def _orchestrate_response(state: OrchestrationState, emitter: TraceEmitter) -> OrchestrateResponse:
    decision = state.decision.to_wire() if state.decision else None
    effects = [e.to_wire() for e in state.effects]
    steps = emitter.steps_wire()

    if state.error is not None:
        return OrchestrateResponse.err(state.error.phase, state.error.code, state.error.message,
                                       steps=steps, decision=decision)
    if state.executed and len(state.failed_agents) == state.executed:
        return OrchestrateResponse.err("agent", "all_agents_failed",
                                       f"All agents failed: {', '.join(state.failed_agents)}",
                                       steps=steps, decision=decision)

    clarification = None
    if state.clarification is not None:
        # 되묻기는 성공 응답에 실어 보낸다
        clarification = ClarificationInfo.model_validate(state.clarification.to_payload())

    message = state.message
    if not message:
        message = "완료되었어요." if state.language == "ko" else "Done."
    return OrchestrateResponse(success=True, decision=decision, effects=effects, message=message, steps=steps,
                               clarification=clarification)


def run_orchestration(
    instruction: str,
    snapshot: Snapshot,
    *,
    llm: Runnable,
    emitter: Optional[TraceEmitter] = None,
    context: Optional[ExecutionContext] = None,
    confirmed: bool = False,
) -> OrchestrateResponse:
    emitter = emitter or TraceEmitter()
    context = context or ExecutionContext.fresh()
    logger.info("오케스트레이션 시작: request=%s", context.request_id)

    try:
        out = get_orchestrator_graph().invoke(
            OrchestrationState(instruction=instruction, snapshot=snapshot, confirmed=confirmed),
            run_config(llm, emitter, context, recursion_limit=config.GRAPH_RECURSION_LIMIT),
        )
        response = _orchestrate_response(OrchestrationState(**out), emitter)
    except Exception as e:
        logger.exception("오케스트레이션 예외: request=%s", context.request_id)
        response = OrchestrateResponse.err("internal", "internal_error", str(e) or e.__class__.__name__,
                                           steps=emitter.steps_wire())

    _finish(emitter, response.success, response.to_wire(), response.error)
    logger.info("오케스트레이션 종료: success=%s, effects=%d", response.success, len(response.effects))
    return response


# ───────────────────────────────
# UI 직접 실행
# ───────────────────────────────
def run_dispatch(
    intent: Dict[str, Any],
    snapshot: Snapshot,
    context: Optional[ExecutionContext] = None,
) -> DispatchResponse:
    """UI 가 만든 intent 를 그대로 실행 (resolver/모델 없음)"""
    context = context or ExecutionContext.fresh()
    result = execute(intent, snapshot, context)
    if isinstance(result, ExecutionFailure):
        return DispatchResponse(success=False, error=ErrorInfo(phase="runtime", code=result.code, message=result.error))

    try:
        after = apply_effects(snapshot, result.effects, applied_at=context.now)
    except EffectApplyError as e:
        logger.error("dispatch: effect 적용 실패: %s", str(e))
        return DispatchResponse(success=False, error=ErrorInfo(phase="runtime", code="invalid_effect", message=str(e)))

    return DispatchResponse(
        success=True,
        effects=[e.to_wire() for e in result.effects],
        snapshot=after.to_wire(),
        diff=diff(snapshot, after).to_wire(),
    )
