from __future__ import annotations
from functools import lru_cache

from langchain_core.language_models import BaseChatModel

from board_agent.adapters.llm.openai_adapter import OpenAIAdapter
from board_agent.core.config import config
from board_agent.core.logger import get_logger

logger = get_logger(__name__)

# 주의: import 시점에 무거운 어댑터/서비스 인스턴스를 생성하지 마세요.
# 아래의 지연 생성(getter)을 사용해 import-time 부작용을 피하고 테스트를 용이하게 합니다.

# -----------------------------------------
# 의존성 주입
# -----------------------------------------

@lru_cache(maxsize=1)
def get_openai() -> OpenAIAdapter:
    """전역 OpenAIAdapter 인스턴스 (싱글톤)"""
    return OpenAIAdapter()


def get_chat_model() -> BaseChatModel:
    """
    FastAPI 의존성: 요청 처리에 쓸 채팅 모델.
    테스트에서는 app.dependency_overrides 로 가짜 모델을 주입한다.
    """
    logger.debug("요청용 LLM 의존성 해석: 모델=%s", config.DEFAULT_LLM_MODEL)
    return get_openai().get_llm(model=config.DEFAULT_LLM_MODEL, temperature=0.0)
