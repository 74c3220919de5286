from __future__ import annotations
import re
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field

from board_agent.core.logger import get_logger
from board_agent.services.language import detect_language

logger = get_logger(__name__)

HINT_THRESHOLD = 0.8

# (regex, value, name) 순서대로 첫 매치를 사용
Pattern = Tuple[re.Pattern, Any, str]


def _p(expr: str) -> re.Pattern:
    return re.compile(expr, re.IGNORECASE)


# ───────────────────────────────
# 뷰 모드
# ───────────────────────────────
VIEW_MODE_PATTERNS: List[Pattern] = [
    (_p(r"\bkanban\b|\bboard\b|\bcolumns?\b|칸반|보드"), "kanban", "kanban"),
    # "tomorrow" 안의 row 에 걸리지 않도록 단어 경계 사용
    (_p(r"\btable\b|\blist\s*view\b|\brows?\s*view\b|테이블|표로|표\s*보기"), "table", "table"),
    (_p(r"\bto-?do\s*list\b|\bchecklist\b|\bsimple\s*list\b|할\s*일\s*목록|투두|체크리스트"), "todo", "todo"),
]

# ───────────────────────────────
# 날짜 필터
# ───────────────────────────────
DATE_FILTER_PATTERNS: List[Pattern] = [
    (_p(r"\btoday\b|\bdue\s*today\b|오늘"), {"field": "dueDate", "type": "today"}, "today"),
    (_p(r"\bthis\s*week\b|\bweekly\b|이번\s*주"), {"field": "dueDate", "type": "week"}, "week"),
    (_p(r"\bthis\s*month\b|\bmonthly\b|이번\s*달"), {"field": "dueDate", "type": "month"}, "month"),
    (_p(r"\bclear\s*filter\b|\bshow\s*all\b|\bremove\s*filter\b|필터\s*(해제|지워|제거|없애)|전체\s*보기"), "clear", "clear-filter"),
]

# ───────────────────────────────
# 상태
# ───────────────────────────────
STATUS_PATTERNS: List[Pattern] = [
    (_p(r"\bdone\b|\bcomplete(d)?\b|\bfinish(ed)?\b|완료|끝냈|끝났"), "done", "done"),
    (_p(r"\bin\s*progress\b|\bworking\b|\bstart(ed)?\b|진행\s*중|작업\s*중|시작"), "in-progress", "in-progress"),
    (_p(r"\breview(ing)?\b|리뷰|검토"), "review", "review"),
    (_p(r"\btodo\b|\breopen(ed)?\b|\bpending\b|다시\s*열|할\s*일로"), "todo", "todo"),
]

VIEW_ACTION_PATTERNS = [
    _p(r"\bshow\b|\bswitch\b|\bchange\s*to\b|\bview\b|\bfilter\b|\bdisplay\b"),
    _p(r"보여|바꿔|전환|보기|필터"),
]

MUTATE_ACTION_PATTERNS = [
    _p(r"\bmark\b|\bchange\s*status\b|\bmove\s*to\b|\bset\s*to\b|\bdone\b|\bcomplete\b|\bfinish\b"),
    _p(r"완료|처리|옮겨|표시|바꿔|변경"),
]

# 질문은 QueryTasks 판단을 위해 모델에 맡긴다
QUESTION_PATTERNS = [
    _p(r"\?\s*$"),
    _p(r"^(what|which|when|where|who)\s"),
    _p(r"^how\s*(many|much|do|can|should)"),
    _p(r"^tell\s*me\b|^summari[sz]e\b"),
    _p(r"뭐|무엇|몇\s*개|어떤|언제|알려|요약"),
]

# 생성 요청에 "today" 가 섞여 있어도 필터 힌트를 주지 않는다
CREATE_ACTION_PATTERNS = [
    _p(r"\b(add|create|make|write|new)\b.*\b(by|until|due|before)\b"),
    _p(r"\b(task|todo)\b.*\b(due|by|until)\b"),
    _p(r"\bby\s*(the\s*)?end\s*of\b"),
    _p(r"^(add|create)\s+|^new\s+task"),
    _p(r"추가|만들어|생성|등록|새\s*(태스크|할\s*일)"),
]

LikelyKind = Literal["view", "filter", "status"]


class MatchedIntent(BaseModel):
    type: Literal["view", "mutate", "none"] = "none"
    confidence: float = 0.0
    slots: Dict[str, Any] = Field(default_factory=dict)
    matched_patterns: List[str] = Field(default_factory=list)


class FastPathHint(BaseModel):
    """컴파일러 프롬프트에 넣는 참고용 힌트 (결정권 없음)"""
    likely_kind: LikelyKind
    confidence: float
    matched_patterns: List[str] = Field(default_factory=list)
    slots: Dict[str, Any] = Field(default_factory=dict)


class FastPathResult(BaseModel):
    hit: bool = False
    hint: Optional[FastPathHint] = None
    language: str = "en"


def _first(text: str, patterns: List[Pattern]) -> Optional[Tuple[Any, str]]:
    for regex, value, name in patterns:
        if regex.search(text):
            return value, name
    return None


def _any(text: str, patterns: List[re.Pattern]) -> bool:
    return any(p.search(text) for p in patterns)


def match_intent(instruction: str) -> MatchedIntent:
    result = MatchedIntent()
    normalized = (instruction or "").strip().lower()
    if not normalized or _any(normalized, QUESTION_PATTERNS):
        return result

    is_view_action = _any(normalized, VIEW_ACTION_PATTERNS)
    is_mutate_action = _any(normalized, MUTATE_ACTION_PATTERNS)

    view = _first(normalized, VIEW_MODE_PATTERNS)
    if view:
        result.slots["viewMode"] = view[0]
        result.matched_patterns.append(f"viewMode:{view[1]}")

    date_filter = _first(normalized, DATE_FILTER_PATTERNS)
    if date_filter:
        result.slots["dateFilter"] = date_filter[0]
        result.matched_patterns.append(f"dateFilter:{date_filter[1]}")

    status = _first(normalized, STATUS_PATTERNS)
    if status:
        result.slots["status"] = status[0]
        result.matched_patterns.append(f"status:{status[1]}")

    if view or date_filter:
        result.type = "view"
        result.confidence = 0.9 if is_view_action else 0.7
    elif status and is_mutate_action:
        result.type = "mutate"
        result.confidence = 0.6  # 대상 태스크 해석이 필요하므로 낮게
    return result


def match(instruction: str) -> FastPathResult:
    """
    순수/동기 휴리스틱. 외부 호출 없음, 실패 없음.
    - 언어 감지 결과는 항상 채운다 (인터프리터 응답 언어)
    - confidence >= 0.8 일 때만 hint 를 준다
    """
    language = detect_language(instruction).detected
    normalized = (instruction or "").strip().lower()

    if _any(normalized, CREATE_ACTION_PATTERNS):
        logger.debug("fast_path: 생성 패턴 감지, 힌트 없음")
        return FastPathResult(hit=False, language=language)

    matched = match_intent(instruction)
    if matched.type == "none" or matched.confidence < HINT_THRESHOLD:
        return FastPathResult(hit=False, language=language)

    if "viewMode" in matched.slots:
        kind: LikelyKind = "view"
    elif "dateFilter" in matched.slots:
        kind = "filter"
    else:
        kind = "status"

    hint = FastPathHint(
        likely_kind=kind,
        confidence=matched.confidence,
        matched_patterns=matched.matched_patterns,
        slots=matched.slots,
    )
    logger.info("fast_path hit: kind=%s, patterns=%s", kind, matched.matched_patterns)
    return FastPathResult(hit=True, hint=hint, language=language)
