# board_agent/core/state.py
from __future__ import annotations
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from langchain_core.runnables import Runnable, RunnableConfig
from pydantic import BaseModel, Field

from board_agent.core.effects import Effect
from board_agent.core.intent import Intent, IntentSkeleton
from board_agent.core.models import Snapshot
from board_agent.core.trace import TraceEmitter
from board_agent.services.differ import SnapshotDiff
from board_agent.services.fast_path import FastPathHint
from board_agent.services.resolver import ClarificationError
from board_agent.services.runtime import ExecutionContext


class PipelineError(BaseModel):
    """파이프라인을 중단시킨 오류 (compiler / runtime / orchestrator)"""
    phase: str
    code: str
    message: str


# ───────────────────────────────
# 단일 intent 파이프라인
# ───────────────────────────────
class PipelineState(BaseModel):
    instruction: str
    snapshot: Snapshot
    confirmed: bool = False
    language: str = "en"
    hint: Optional[FastPathHint] = None
    fast_path_hit: bool = False
    skeleton: Optional[IntentSkeleton] = None
    intent: Optional[Intent] = None
    clarification: Optional[ClarificationError] = None
    effects: List[Effect] = Field(default_factory=list)
    after: Optional[Snapshot] = None
    diff: Optional[SnapshotDiff] = None
    message: str = ""
    error: Optional[PipelineError] = None
    llm_calls: int = 0
    stages: List[str] = Field(default_factory=list)


# ───────────────────────────────
# 오케스트레이션
# ───────────────────────────────
class AgentType(str, Enum):
    TASK_CREATOR = "task-creator"
    TASK_MUTATOR = "task-mutator"
    VIEW_CONTROL = "view-control"
    QUERY = "query"


AGENT_DISPLAY: Dict[AgentType, Tuple[str, str]] = {
    AgentType.TASK_CREATOR: ("TaskCreator", "📝"),
    AgentType.TASK_MUTATOR: ("TaskMutator", "✏️"),
    AgentType.VIEW_CONTROL: ("ViewControl", "🎨"),
    AgentType.QUERY: ("QueryAgent", "💬"),
}
ORCHESTRATOR_DISPLAY = ("Orchestrator", "🎯")

DEFAULT_AGENT_FOR_INTENT: Dict[str, AgentType] = {
    "create": AgentType.TASK_CREATOR,
    "mutate": AgentType.TASK_MUTATOR,
    "view": AgentType.VIEW_CONTROL,
    "query": AgentType.QUERY,
    "multi": AgentType.QUERY,
}


class AgentCall(BaseModel):
    agent: AgentType
    params: Dict[str, Any] = Field(default_factory=dict)
    reason: str = ""


class OrchestratorDecision(BaseModel):
    intent: str = "query"
    agents: List[AgentCall] = Field(default_factory=list)
    reasoning: str = ""

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class AgentOutput(BaseModel):
    """에이전트 1회 실행 결과. effects 는 runtime 을 거친 것만 담는다."""
    message: str = ""
    intents: List[Intent] = Field(default_factory=list)
    effects: List[Effect] = Field(default_factory=list)
    clarification: Optional[ClarificationError] = None


class OrchestrationState(BaseModel):
    instruction: str
    snapshot: Snapshot
    working: Optional[Snapshot] = None  # 앞선 에이전트의 effect 가 반영된 스냅샷
    language: str = "en"
    decision: Optional[OrchestratorDecision] = None
    queue: List[AgentCall] = Field(default_factory=list)
    executed: int = 0
    effects: List[Effect] = Field(default_factory=list)
    message: str = ""
    failed_agents: List[str] = Field(default_factory=list)
    clarification: Optional[ClarificationError] = None  # 첫 번째로 되물은 에이전트의 질문
    confirmed: bool = False
    error: Optional[PipelineError] = None


# ───────────────────────────────
# 실행 의존성 (LangGraph configurable 로 전달)
# ───────────────────────────────
def run_config(
    llm: Runnable,
    emitter: TraceEmitter,
    context: ExecutionContext,
    *,
    recursion_limit: Optional[int] = None,
) -> RunnableConfig:
    cfg: RunnableConfig = {"configurable": {"llm": llm, "emitter": emitter, "context": context}}
    if recursion_limit:
        cfg["recursion_limit"] = recursion_limit
    return cfg


def run_deps(config: RunnableConfig) -> Tuple[Runnable, TraceEmitter, ExecutionContext]:
    conf = (config or {}).get("configurable", {})
    emitter = conf.get("emitter") or TraceEmitter()
    context = conf.get("context") or ExecutionContext.fresh()
    return conf.get("llm"), emitter, context
