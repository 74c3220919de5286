# board_agent/nodes/orchestrator_node.py
from __future__ import annotations
from typing import Any, Callable, Dict, List

from langchain_core.prompts import ChatPromptTemplate
from langchain_core.runnables import Runnable, RunnableConfig

from board_agent.core.config import config as app_config
from board_agent.core.errors import ModelError
from board_agent.core.logger import get_logger
from board_agent.core.models import Snapshot
from board_agent.core.state import (
    DEFAULT_AGENT_FOR_INTENT,
    ORCHESTRATOR_DISPLAY,
    AgentCall,
    AgentOutput,
    AgentType,
    OrchestrationState,
    OrchestratorDecision,
    PipelineError,
    run_deps,
)
from board_agent.core.tooling import invoke_json, with_temperature
from board_agent.nodes.query_agent_node import query_agent
from board_agent.nodes.task_creator_agent_node import task_creator_agent
from board_agent.nodes.task_mutator_agent_node import task_mutator_agent
from board_agent.nodes.view_control_agent_node import view_control_agent
from board_agent.prompts.orchestrator_prompts import ORCHESTRATOR_SYSTEM, ORCHESTRATOR_USER
from board_agent.services.compiler import build_variables
from board_agent.services.context import format_summary, summarize_tasks
from board_agent.services.language import detect_language

logger = get_logger(__name__)

AgentFn = Callable[..., AgentOutput]

AGENT_REGISTRY: Dict[AgentType, AgentFn] = {
    AgentType.TASK_CREATOR: task_creator_agent,
    AgentType.TASK_MUTATOR: task_mutator_agent,
    AgentType.VIEW_CONTROL: view_control_agent,
    AgentType.QUERY: query_agent,
}

if set(AGENT_REGISTRY) != set(AgentType):
    raise RuntimeError("agent registry is not exhaustive")


def normalize_decision(raw: Dict[str, Any]) -> OrchestratorDecision:
    """
    모델 출력 정규화
    - 모르는 intent → query
    - 모르는 에이전트 이름은 경고 후 버림
    - 비어 있으면 intent 별 기본 에이전트
    """
    intent = raw.get("intent")
    if intent not in DEFAULT_AGENT_FOR_INTENT:
        intent = "query"

    calls: List[AgentCall] = []
    for item in raw.get("agents") or []:
        if isinstance(item, str):
            item = {"agent": item}
        if not isinstance(item, dict):
            continue
        name = item.get("agent") or item.get("name")
        try:
            agent = AgentType(name)
        except ValueError:
            logger.warning("알 수 없는 에이전트 무시: %s", name)
            continue
        params = item.get("params") if isinstance(item.get("params"), dict) else {}
        calls.append(AgentCall(agent=agent, params=params, reason=str(item.get("reason") or "")))

    if not calls:
        calls = [AgentCall(agent=DEFAULT_AGENT_FOR_INTENT[intent], reason="default")]

    return OrchestratorDecision(intent=intent, agents=calls, reasoning=str(raw.get("reasoning") or ""))


def orchestrate(instruction: str, snapshot: Snapshot, *, llm: Runnable, now=None) -> OrchestratorDecision:
    """어떤 에이전트를 어떤 순서로 부를지 결정 (모델 호출 1회). 실패 시 ModelError."""
    prompt = ChatPromptTemplate.from_messages([
        ("system", ORCHESTRATOR_SYSTEM),
        ("user", ORCHESTRATOR_USER),
    ])
    variables = build_variables(instruction, snapshot, None, now)
    variables["summary"] = format_summary(summarize_tasks(snapshot.data.tasks, now))
    raw = invoke_json(prompt, with_temperature(llm, app_config.AGENT_TEMPERATURE), variables, stage="orchestrator")
    return normalize_decision(raw)


def orchestrator_node(state: OrchestrationState, config: RunnableConfig) -> OrchestrationState:
    llm, emitter, ctx = run_deps(config)
    name, icon = ORCHESTRATOR_DISPLAY
    step = emitter.start(name, icon=icon, description="Analyzing request",
                         input={"instruction": state.instruction}, kind="agent")

    state.language = detect_language(state.instruction).detected
    state.working = state.snapshot

    try:
        decision = orchestrate(state.instruction, state.snapshot, llm=llm, now=ctx.clock())
    except ModelError as e:
        state.error = PipelineError(phase="orchestrator", code="parsing" if e.parsing else "api", message=str(e))
        emitter.fail(step, str(e), kind="agent")
        return state

    state.decision = decision
    state.queue = list(decision.agents)
    emitter.complete(step, decision.to_wire(), kind="agent")
    logger.info("orchestrator 판단 완료: intent=%s, agents=%s",
                decision.intent, [c.agent.value for c in decision.agents])
    return state
