from __future__ import annotations
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Literal, Optional

from pydantic import Field

from board_agent.core.logger import get_logger
from board_agent.core.models import CamelModel

logger = get_logger(__name__)

# ====== 이벤트 타입 ======
STEP_START = "step:start"
STEP_COMPLETE = "step:complete"
AGENT_START = "agent:start"
AGENT_COMPLETE = "agent:complete"
AGENT_ERROR = "agent:error"
INTENT = "intent"
DONE = "done"
ERROR = "error"

EVENT_TYPES = (STEP_START, STEP_COMPLETE, AGENT_START, AGENT_COMPLETE, AGENT_ERROR, INTENT, DONE, ERROR)
TERMINAL_EVENTS = frozenset({DONE, ERROR})

StepStatus = Literal["running", "completed", "failed"]
StepKind = Literal["step", "agent"]

EventSink = Callable[[str, Dict[str, Any]], None]


class AgentStep(CamelModel):
    """파이프라인 단계 또는 에이전트 호출 1회의 관측 기록"""
    id: str
    agent_name: str
    agent_icon: str = ""
    status: StepStatus = "running"
    description: str = ""
    input: Optional[Any] = None
    output: Optional[Any] = None
    error: Optional[str] = None
    start_time: str
    end_time: Optional[str] = None
    duration: Optional[int] = Field(default=None, description="ms")


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class TraceEmitter:
    """
    단계 전이를 AgentStep 으로 기록하고, 동시에 (type, data) 이벤트로 sink 에 흘려보낸다.
    - sink 가 없으면 기록만 한다 (비스트리밍 응답은 steps 를 사후에 반환)
    - 요청 단위 객체. 요청 간 공유하지 않는다.
    """

    def __init__(self, sink: Optional[EventSink] = None):
        self._sink = sink
        self._seq = 0
        self._started: Dict[str, float] = {}
        self.steps: List[AgentStep] = []

    def emit(self, event_type: str, data: Dict[str, Any]) -> None:
        if event_type not in EVENT_TYPES:
            raise ValueError(f"unknown event type: {event_type}")
        if self._sink is not None:
            self._sink(event_type, data)

    # ------------------------------------------------------------------
    # step 수명주기
    # ------------------------------------------------------------------
    def start(
        self,
        name: str,
        *,
        icon: str = "",
        description: str = "",
        input: Any = None,
        kind: StepKind = "step",
    ) -> AgentStep:
        self._seq += 1
        step = AgentStep(
            id=f"{kind}-{self._seq}",
            agent_name=name,
            agent_icon=icon,
            description=description,
            input=input,
            start_time=_iso_now(),
        )
        self._started[step.id] = time.monotonic()
        self.steps.append(step)
        self.emit(AGENT_START if kind == "agent" else STEP_START, {"step": step.to_wire()})
        return step

    def _finish(self, step: AgentStep, status: StepStatus) -> None:
        step.status = status
        step.end_time = _iso_now()
        began = self._started.pop(step.id, None)
        if began is not None:
            step.duration = int((time.monotonic() - began) * 1000)

    def complete(self, step: AgentStep, output: Any = None, *, kind: StepKind = "step") -> AgentStep:
        step.output = output
        self._finish(step, "completed")
        self.emit(AGENT_COMPLETE if kind == "agent" else STEP_COMPLETE, {"step": step.to_wire()})
        return step

    def fail(self, step: AgentStep, error: str, *, kind: StepKind = "step") -> AgentStep:
        step.error = error
        self._finish(step, "failed")
        logger.warning("step 실패: name=%s, error=%s", step.agent_name, error)
        self.emit(AGENT_ERROR if kind == "agent" else STEP_COMPLETE, {"step": step.to_wire(), "error": error})
        return step

    def steps_wire(self) -> List[Dict[str, Any]]:
        return [s.to_wire() for s in self.steps]
