# board_agent/core/tooling.py
from __future__ import annotations
from typing import Any, Dict

from langchain_core.exceptions import OutputParserException
from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import JsonOutputParser
from langchain_core.prompts import ChatPromptTemplate
from langchain_core.runnables import Runnable

from board_agent.core.errors import ModelError
from board_agent.core.logger import get_logger

logger = get_logger(__name__)

def with_temperature(llm: BaseChatModel, temperature: float) -> Runnable:
    """단계별 온도를 호출 인자로 덮어쓴다 (인스턴스는 공유)."""
    return llm.bind(temperature=temperature)

def invoke_json(
    prompt: ChatPromptTemplate,
    llm: Runnable,
    variables: Dict[str, Any],
    *,
    stage: str,
) -> Dict[str, Any]:
    """
    `prompt | llm | JsonOutputParser` 체인을 한 번 호출해 dict 를 돌려준다.
    타임아웃/전송 오류/JSON 형식 오류는 모두 ModelError 로 감싼다 (재시도 없음).
    """
    chain = prompt | llm | JsonOutputParser()
    try:
        out = chain.invoke(variables)
    except OutputParserException as e:
        logger.warning("%s: JSON 파싱 실패: %s", stage, str(e))
        raise ModelError(f"{stage}: malformed JSON from model", raw=getattr(e, "llm_output", None), parsing=True) from e
    except ModelError:
        raise
    except Exception as e:
        logger.exception("%s: LLM 호출 중 예외 발생", stage)
        raise ModelError(f"{stage}: model call failed: {e}") from e

    if not isinstance(out, dict):
        logger.warning("%s: JSON 객체가 아닌 응답: type=%s", stage, type(out).__name__)
        raise ModelError(f"{stage}: expected a JSON object", raw=str(out), parsing=True)
    logger.debug("%s: LLM 응답 키=%s", stage, sorted(out.keys()))
    return out
