from __future__ import annotations
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from board_agent.api.http import router as api_router
from board_agent.core.config import config
from board_agent.core.errors import ModelError
from board_agent.core.logger import get_logger


def create_app() -> FastAPI:
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # startup(시작 시 작업)
        logger.info("서버 시작: env=%s, model=%s", config.ENV, config.DEFAULT_LLM_MODEL)
        if not config.OPENAI_API_KEY:
            logger.warning("OPENAI_API_KEY 가 없습니다. 모델이 필요한 엔드포인트는 503 을 반환합니다.")
        yield
        # shutdown(종료 시 작업)
        logger.info("애플리케이션 종료 중")

    app = FastAPI(title="Board Agent API", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ModelError)
    async def _model_error_handler(request: Request, exc: ModelError):
        logger.error("모델 사용 불가: path=%s, error=%s", request.url.path, str(exc))
        return JSONResponse(
            status_code=503,
            content={"success": False, "error": {"phase": "model", "code": "model_unavailable", "message": str(exc)}},
        )

    app.include_router(api_router, prefix="/api")

    return app


app = create_app()
