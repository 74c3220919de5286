# board_agent/api/http.py
from __future__ import annotations
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse
from langchain_core.language_models import BaseChatModel

from board_agent.api.sse import EventChannel, stream_events
from board_agent.core.config import config
from board_agent.core.dependencies import get_chat_model
from board_agent.core.io_payload import AgentRequest, DispatchRequest, IntentResponse, OrchestrateResponse
from board_agent.core.logger import get_logger
from board_agent.core.trace import TraceEmitter
from board_agent.graphs.runner import run_dispatch, run_intent_pipeline, run_orchestration

router = APIRouter()
logger = get_logger(__name__)

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"}


def _status_for(response) -> int:
    if response.success:
        return 200
    # 분류 단계의 모델 실패는 upstream 오류
    if response.error and response.error.phase == "orchestrator":
        return 502
    if response.error and response.error.phase == "internal":
        return 500
    return 400


@router.get("/health")
def health():
    return {"ok": True}


@router.post("/agent/intent", response_model=IntentResponse)
def agent_intent(req: AgentRequest, llm: BaseChatModel = Depends(get_chat_model)):
    logger.info("POST /agent/intent: instruction_len=%d", len(req.instruction))
    response = run_intent_pipeline(req.instruction, req.snapshot, llm=llm, confirmed=req.confirmed)
    return JSONResponse(response.to_wire(), status_code=_status_for(response))


@router.post("/agent/intent/stream")
def agent_intent_stream(req: AgentRequest, llm: BaseChatModel = Depends(get_chat_model)):
    logger.info("POST /agent/intent/stream: instruction_len=%d", len(req.instruction))

    def worker(channel: EventChannel) -> None:
        run_intent_pipeline(req.instruction, req.snapshot, llm=llm, emitter=TraceEmitter(sink=channel.put),
                            confirmed=req.confirmed)

    return StreamingResponse(
        stream_events(worker, timeout=config.STREAM_TIMEOUT),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/agent/orchestrate", response_model=OrchestrateResponse)
def agent_orchestrate(req: AgentRequest, llm: BaseChatModel = Depends(get_chat_model)):
    logger.info("POST /agent/orchestrate: instruction_len=%d", len(req.instruction))
    response = run_orchestration(req.instruction, req.snapshot, llm=llm, confirmed=req.confirmed)
    return JSONResponse(response.to_wire(), status_code=_status_for(response))


@router.post("/agent/orchestrate/stream")
def agent_orchestrate_stream(req: AgentRequest, llm: BaseChatModel = Depends(get_chat_model)):
    logger.info("POST /agent/orchestrate/stream: instruction_len=%d", len(req.instruction))

    def worker(channel: EventChannel) -> None:
        run_orchestration(req.instruction, req.snapshot, llm=llm, emitter=TraceEmitter(sink=channel.put),
                          confirmed=req.confirmed)

    return StreamingResponse(
        stream_events(worker, timeout=config.STREAM_TIMEOUT),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/agent/dispatch")
def agent_dispatch(req: DispatchRequest):
    response = run_dispatch(req.intent, req.snapshot)
    return JSONResponse(response.to_wire(), status_code=200 if response.success else 400)
