# board_agent/api/sse.py
from __future__ import annotations
import json
import queue
import threading
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

from board_agent.core.logger import get_logger
from board_agent.core.trace import ERROR, TERMINAL_EVENTS

logger = get_logger(__name__)

Event = Tuple[str, Dict[str, Any]]


def format_sse(event_type: str, data: Dict[str, Any]) -> str:
    payload = json.dumps(data, ensure_ascii=False, default=str)
    return f"event: {event_type}\ndata: {payload}\n\n"


class EventChannel:
    """
    워커 스레드(그래프 실행) → 응답 제너레이터로 이벤트를 넘기는 큐.
    - 종료 이벤트(done/error)는 정확히 한 번만 들어간다
    - 클라이언트가 끊으면 close(): 이후 put 은 무시되지만 실행 자체는 끝까지 진행
    """

    def __init__(self):
        self._queue: "queue.Queue[Event]" = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False
        self._terminated = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def terminated(self) -> bool:
        return self._terminated

    def put(self, event_type: str, data: Dict[str, Any]) -> None:
        with self._lock:
            if self._closed or self._terminated:
                return
            if event_type in TERMINAL_EVENTS:
                self._terminated = True
            self._queue.put((event_type, data))

    def close(self) -> None:
        with self._lock:
            self._closed = True

    def events(self, timeout: Optional[float] = None) -> Iterator[Event]:
        while True:
            try:
                event_type, data = self._queue.get(timeout=timeout)
            except queue.Empty:
                logger.warning("SSE 이벤트 대기 시간 초과")
                yield ERROR, {"error": {"phase": "internal", "code": "timeout", "message": "event stream timed out"}}
                return
            yield event_type, data
            if event_type in TERMINAL_EVENTS:
                return


def stream_events(worker: Callable[[EventChannel], None], *, timeout: Optional[float] = None) -> Iterator[str]:
    """worker 를 백그라운드 스레드로 돌리고 SSE 문자열을 내보낸다."""
    channel = EventChannel()

    def _run() -> None:
        try:
            worker(channel)
        except Exception as e:
            logger.exception("SSE 워커 예외")
            channel.put(ERROR, {"error": {"phase": "internal", "code": "internal_error", "message": str(e)}})
        finally:
            if not channel.terminated:
                channel.put(ERROR, {"error": {"phase": "internal", "code": "no_result",
                                              "message": "stream ended without a result"}})

    thread = threading.Thread(target=_run, name="sse-worker", daemon=True)
    thread.start()
    try:
        for event_type, data in channel.events(timeout=timeout):
            yield format_sse(event_type, data)
    finally:
        # 연결 종료 (정상 종료 또는 클라이언트 이탈)
        channel.close()
