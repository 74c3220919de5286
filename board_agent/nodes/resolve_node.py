# board_agent/nodes/resolve_node.py
from __future__ import annotations
from langchain_core.runnables import RunnableConfig

from board_agent.core.logger import get_logger
from board_agent.core.state import PipelineState, run_deps
from board_agent.core.trace import INTENT
from board_agent.services.language import response_language
from board_agent.services.policy import assess, confirm_clarification
from board_agent.services.resolver import ResolverFailure, resolve

logger = get_logger(__name__)


def resolve_node(state: PipelineState, config: RunnableConfig) -> PipelineState:
    """
    targetHint → 태스크 ID. 모델 호출 없음.
    모호하면 clarification 을 채우고 종료 (오류 아님).
    대량 삭제/복구는 confirmed 요청이 아니면 확인 질문으로 멈춘다.
    """
    _, emitter, _ = run_deps(config)
    step = emitter.start("Resolver", icon="🔎", description="Resolving task references",
                         input={"kind": state.skeleton.kind})
    state.stages.append("resolver")
    language = response_language(state.language)

    result = resolve(state.skeleton, state.snapshot, language=language)

    if isinstance(result, ResolverFailure):
        state.clarification = result.error
        state.message = result.error.suggested_question
        payload = result.error.to_payload()
        emitter.complete(step, {"clarification": payload})
        emitter.emit(INTENT, {"intent": None, "clarification": payload})
        return state

    state.intent = result.intent
    wire = result.intent.to_wire(exclude_none=True)

    # 정책 게이트
    risk = assess([result.intent])
    if risk.requires_confirm and not state.confirmed:
        clarification = confirm_clarification([result.intent], result.resolved_tasks, risk, language=language)
        state.clarification = clarification
        state.message = clarification.suggested_question
        payload = clarification.to_payload()
        emitter.complete(step, {"intent": wire, "risk": risk.model_dump(), "clarification": payload})
        emitter.emit(INTENT, {"intent": wire, "clarification": payload})
        return state

    emitter.complete(step, {"intent": wire, "resolvedTaskIds": [t.id for t in result.resolved_tasks]})
    emitter.emit(INTENT, {"intent": wire})
    logger.debug("resolve_node: kind=%s, risk=%s", result.intent.kind, risk.level)
    return state
