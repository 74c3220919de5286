import os
from dotenv import load_dotenv
from pathlib import Path

load_dotenv()  # .env 로드

class AppConfig:
    # Base paths
    ROOT_DIR = Path(__file__).resolve().parents[2]
    LOG_DIR = Path(os.getenv("LOG_DIR", str(ROOT_DIR / "logs")))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # OpenAI
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")

    # Default Models
    DEFAULT_LLM_MODEL = os.getenv("DEFAULT_LLM_MODEL", "gpt-4o-mini")
    COMPILER_TEMPERATURE = float(os.getenv("COMPILER_TEMPERATURE", "0.0"))
    INTERPRETER_TEMPERATURE = float(os.getenv("INTERPRETER_TEMPERATURE", "0.3"))
    AGENT_TEMPERATURE = float(os.getenv("AGENT_TEMPERATURE", "0.3"))
    LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "30"))
    LLM_MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", "1"))

    # 날짜 컨텍스트 (today/tomorrow 계산 기준)
    DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "Asia/Seoul")

    # HTTP
    CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    # SSE 이벤트 간 최대 대기 (초)
    STREAM_TIMEOUT = float(os.getenv("STREAM_TIMEOUT", "120"))

    # 정책 게이트: 대상이 이 수 이상인 삭제/복구, 또는 쓰기가 이 수를 넘으면 확인을 받는다
    CONFIRM_BULK_THRESHOLD = int(os.getenv("CONFIRM_BULK_THRESHOLD", "2"))
    MAX_WRITE_STEPS = int(os.getenv("MAX_WRITE_STEPS", "4"))

    # 오케스트레이터 dispatch 루프 상한 (LangGraph recursion_limit)
    GRAPH_RECURSION_LIMIT = int(os.getenv("GRAPH_RECURSION_LIMIT", "50"))

    # Environment
    ENV = os.getenv("ENV", "dev")

config = AppConfig()
