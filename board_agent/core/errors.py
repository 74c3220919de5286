from __future__ import annotations
from typing import Optional


class BoardAgentError(Exception):
    """board_agent 예외의 공통 부모"""


class ModelError(BoardAgentError, RuntimeError):
    """외부 모델 호출 실패 (키 없음, 타임아웃, 전송 오류, JSON 형식 오류)"""

    def __init__(self, message: str, *, raw: Optional[str] = None, parsing: bool = False):
        super().__init__(message)
        self.raw = raw
        self.parsing = parsing


class AgentError(BoardAgentError):
    """오케스트레이션 중 한 에이전트 호출의 실패. 해당 step만 failed 처리한다."""

    def __init__(self, agent: str, message: str):
        super().__init__(f"{agent}: {message}")
        self.agent = agent
        self.message = message
