from __future__ import annotations
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from board_agent.core.models import CamelModel, Snapshot


# ====== 입력 ======
class AgentRequest(CamelModel):
    """intent / orchestrate 엔드포인트 공통 입력"""
    instruction: str = Field(..., description="사용자 자연어 지시문")
    snapshot: Snapshot = Field(default_factory=Snapshot, description="요청 시점의 태스크/뷰 상태")
    confirmed: bool = Field(default=False, description="확인 질문에 동의한 재요청이면 true (정책 게이트 통과)")

    @field_validator("instruction")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("instruction must not be empty")
        return v


class DispatchRequest(CamelModel):
    """UI 가 직접 만든 intent 실행 (모델 호출 없음)"""
    intent: Dict[str, Any]
    snapshot: Snapshot = Field(default_factory=Snapshot)


# ====== 출력 ======
class ErrorInfo(CamelModel):
    phase: str = Field(..., description="compiler | runtime | orchestrator | internal")
    code: str
    message: str


class ClarificationCandidate(CamelModel):
    id: str
    title: str


class ClarificationInfo(CamelModel):
    reason: str
    question: str
    candidates: List[ClarificationCandidate] = Field(default_factory=list)
    pending_intents: List[Dict[str, Any]] = Field(default_factory=list)


class PipelineTrace(CamelModel):
    fast_path: bool = False
    compiler_used: bool = False
    resolver_used: bool = False
    interpreter_used: bool = False
    total_llm_calls: int = Field(default=0, alias="totalLLMCalls")
    language: str = "en"
    steps: List[Dict[str, Any]] = Field(default_factory=list)


class IntentResponse(CamelModel):
    """단일 intent 파이프라인 결과"""
    success: bool
    skeleton: Optional[Dict[str, Any]] = None
    intent: Optional[Dict[str, Any]] = None
    effects: List[Dict[str, Any]] = Field(default_factory=list)
    message: str = ""
    trace: PipelineTrace = Field(default_factory=PipelineTrace)
    error: Optional[ErrorInfo] = None
    clarification: Optional[ClarificationInfo] = None

    @classmethod
    def err(cls, phase: str, code: str, message: str, *, trace: Optional[PipelineTrace] = None,
            **extra: Any) -> "IntentResponse":
        return cls(
            success=False,
            message=message,
            error=ErrorInfo(phase=phase, code=code, message=message),
            trace=trace or PipelineTrace(),
            **extra,
        )


class OrchestrateResponse(CamelModel):
    success: bool
    decision: Optional[Dict[str, Any]] = None
    effects: List[Dict[str, Any]] = Field(default_factory=list)
    message: str = ""
    steps: List[Dict[str, Any]] = Field(default_factory=list)
    error: Optional[ErrorInfo] = None
    clarification: Optional[ClarificationInfo] = None

    @classmethod
    def err(cls, phase: str, code: str, message: str, *, steps: Optional[List[Dict[str, Any]]] = None,
            **extra: Any) -> "OrchestrateResponse":
        return cls(
            success=False,
            message=message,
            error=ErrorInfo(phase=phase, code=code, message=message),
            steps=steps or [],
            **extra,
        )


class DispatchResponse(CamelModel):
    success: bool
    effects: List[Dict[str, Any]] = Field(default_factory=list)
    snapshot: Optional[Dict[str, Any]] = None
    diff: Optional[Dict[str, Any]] = None
    error: Optional[ErrorInfo] = None
