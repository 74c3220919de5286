from __future__ import annotations
import json
from datetime import datetime
from typing import Any, Dict, Literal, Optional, Union

from langchain_core.prompts import ChatPromptTemplate
from langchain_core.runnables import Runnable
from pydantic import BaseModel, ValidationError

from board_agent.core.config import config
from board_agent.core.errors import ModelError
from board_agent.core.intent import REFERENCE_KINDS, IntentSkeleton, looks_like_task_id, parse_skeleton
from board_agent.core.logger import get_logger
from board_agent.core.models import Snapshot
from board_agent.core.tooling import invoke_json, with_temperature
from board_agent.prompts.compiler_prompts import COMPILER_SYSTEM, COMPILER_USER, HINT_SECTION
from board_agent.services.context import describe_view_state, format_task_list
from board_agent.services.fast_path import FastPathHint
from board_agent.utils.date import get_date_context

logger = get_logger(__name__)

CompilerErrorType = Literal["api", "parsing", "validation"]


class CompilerSuccess(BaseModel):
    ok: Literal[True] = True
    skeleton: IntentSkeleton


class CompilerFailure(BaseModel):
    ok: Literal[False] = False
    type: CompilerErrorType
    message: str
    raw: Optional[Any] = None


CompilerResult = Union[CompilerSuccess, CompilerFailure]


def build_variables(
    instruction: str,
    snapshot: Snapshot,
    hint: Optional[FastPathHint] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """프롬프트 변수. 태스크 ID 는 절대 넣지 않는다."""
    dates = get_date_context(now)
    view = describe_view_state(snapshot)
    hint_section = ""
    if hint is not None:
        hint_section = HINT_SECTION.format(
            likely_kind=hint.likely_kind,
            confidence=hint.confidence,
            slots=json.dumps(hint.slots, ensure_ascii=False),
        )
    return {
        **dates,
        **view,
        "task_list": format_task_list(snapshot.active_tasks()),
        "deleted_list": format_task_list(snapshot.deleted_tasks()),
        "hint_section": hint_section,
        "instruction": instruction,
    }


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors()[:3]:
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg', '')}" if loc else err.get("msg", ""))
    return "; ".join(parts)


def compile_skeleton(
    instruction: str,
    snapshot: Snapshot,
    hint: Optional[FastPathHint] = None,
    *,
    llm: Runnable,
    now: Optional[datetime] = None,
) -> CompilerResult:
    """
    지시문 + 스냅샷 → IntentSkeleton (모델 호출 정확히 1회, 재시도 없음)
    실패는 모두 CompilerFailure 로 돌려준다.
    """
    prompt = ChatPromptTemplate.from_messages([
        ("system", COMPILER_SYSTEM),
        ("user", COMPILER_USER),
    ])
    variables = build_variables(instruction, snapshot, hint, now)

    try:
        raw = invoke_json(prompt, with_temperature(llm, config.COMPILER_TEMPERATURE), variables, stage="compiler")
    except ModelError as e:
        return CompilerFailure(type="parsing" if e.parsing else "api", message=str(e), raw=e.raw)

    # {"skeleton": {...}} 로 감싸서 주는 경우도 허용
    payload = raw["skeleton"] if isinstance(raw.get("skeleton"), dict) else raw

    try:
        skeleton = parse_skeleton(payload)
    except ValidationError as e:
        message = _validation_message(e)
        logger.warning("compiler: 스켈레톤 검증 실패: %s", message)
        return CompilerFailure(type="validation", message=f"Invalid skeleton: {message}", raw=payload)

    if skeleton.kind in REFERENCE_KINDS:
        target = getattr(skeleton, "target_hint", "")
        # 모델이 보지 못한 ID 를 만들어낸 경우
        if looks_like_task_id(target) and snapshot.get_task(target.strip()) is None:
            logger.warning("compiler: 스냅샷에 없는 ID 형태의 targetHint 거부: %s", target)
            return CompilerFailure(
                type="validation",
                message=f"Skeleton contains a task identifier that is not in the snapshot: {target}",
                raw=payload,
            )

    logger.info("compiler 완료: kind=%s, confidence=%.2f", skeleton.kind, skeleton.confidence)
    return CompilerSuccess(skeleton=skeleton)
