from __future__ import annotations
from typing import Dict, Optional, Tuple
from threading import Lock
import os

from langchain_openai import ChatOpenAI
from board_agent.core.config import config
from board_agent.core.errors import ModelError
from board_agent.core.logger import get_logger

logger = get_logger(__name__)


class OpenAIAdapter:
    """
    OpenAI 채팅 모델 인스턴스를 공유(singleton) 방식으로 관리
    - 같은 (모델, 온도) 로 여러 번 호출해도 동일 인스턴스를 반환
    - 인스턴스는 생성 후 읽기 전용이므로 요청 간 공유해도 안전
    """

    _llm_instances: Dict[Tuple[str, float], ChatOpenAI] = {}
    _lock = Lock()

    def __init__(self):
        # Do not raise on import; store key if present and raise only on actual usage.
        self.api_key = os.getenv("OPENAI_API_KEY") or config.OPENAI_API_KEY
        logger.info("OpenAIAdapter 초기화 (API 키 존재 여부=%s)", bool(self.api_key))

    def _ensure_api_key(self):
        if not (self.api_key or os.getenv("OPENAI_API_KEY")):
            logger.error("OpenAI API 키가 설정되어 있지 않습니다. 환경변수 OPENAI_API_KEY 확인 필요")
            raise ModelError("OPENAI_API_KEY not found in environment variables. Set OPENAI_API_KEY before calling OpenAIAdapter methods.")

    # ------------------------------------------------------------------
    # LLM 인스턴스 (Chat)
    # ------------------------------------------------------------------
    def get_llm(
        self,
        model: str = config.DEFAULT_LLM_MODEL,
        temperature: float = 0.0,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        **kwargs,
    ) -> ChatOpenAI:
        """
        (모델, 온도) 로 LLM 인스턴스 재사용.
        JSON 출력만 받으므로 response_format 을 json_object 로 고정한다.
        """
        self._ensure_api_key()
        key = (model, float(temperature))
        with self._lock:
            if key not in self._llm_instances:
                logger.info("새 LLM 인스턴스 생성: model=%s, temperature=%s", model, temperature)
                self._llm_instances[key] = ChatOpenAI(
                    model=model,
                    temperature=temperature,
                    timeout=timeout if timeout is not None else config.LLM_TIMEOUT,
                    max_retries=max_retries if max_retries is not None else config.LLM_MAX_RETRIES,
                    model_kwargs={"response_format": {"type": "json_object"}},
                    **kwargs,
                )
            logger.debug("LLM 인스턴스 반환: model=%s", model)
            return self._llm_instances[key]
