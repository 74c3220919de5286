from __future__ import annotations
import difflib
import re
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field

from board_agent.core.intent import (
    ChangeStatus,
    ChangeStatusSkeleton,
    CreateTask,
    CreateTaskSkeleton,
    DeleteTask,
    Intent,
    INTENT_ADAPTER,
    REFERENCE_KINDS,
    RestoreTask,
    SelectTask,
    SkeletonBase,
    UpdateTask,
    UpdateTaskSkeleton,
)
from board_agent.core.logger import get_logger
from board_agent.core.models import CamelModel, Snapshot, Task

logger = get_logger(__name__)

ClarificationType = Literal["which_task", "missing_title", "ambiguous_action", "multiple_matches", "confirm"]

MIN_TOKEN_LEN = 3
NEAR_MISS_RATIO = 0.5
NEAR_MISS_LIMIT = 3

# ───────────────────────────────
# 참조 표현 사전 (ko/en)
# ───────────────────────────────
_DEICTIC = {
    "this", "it", "that", "this one", "that one", "this task", "that task",
    "selected", "the selected", "selected task", "the selected task",
    "current", "current task", "the current task",
    "이거", "이것", "이 태스크", "이 할 일", "그거", "그것", "선택된", "선택된 태스크", "선택한 것", "현재 태스크",
}
_DEICTIC_IN_TEXT = re.compile(r"\b(this|it|selected|current)\b|이거|이것|선택된|선택한", re.I)

_JUST_CREATED = re.compile(r"\bjust\s+(added|created|made)\b|\blast\s+created\b|방금\s*(추가|만든|생성|등록)", re.I)
_JUST_MODIFIED = re.compile(r"\bjust\s+(changed|modified|updated|edited)\b|\blast\s+(changed|modified)\b|방금\s*(수정|바꾼|변경)", re.I)

# 수량어는 독립된 단어일 때만 ("all-hands" 의 all 은 아님)
_BULK = re.compile(
    r"(?<![\w-])(all|every|everything)(?![\w-])"
    r"|(?<![\w-])(모든|전부|전체)(을|를|이|가|은|는|도|의)?(?![\w-])"
    r"|(^|\s)다($|\s)",
    re.I,
)
_BULK_WORD = re.compile(r"^(all|every|everything|모든|전부|전체|다)$", re.I)
# 수량 참조 안에서 의미 없는 낱말 ("all of my tasks", "완료된 거 전부")
_BULK_FILLER = frozenset({
    "in", "of", "my", "are", "is", "that", "which", "ones",
    "상태", "된", "인", "중", "할", "일", "거", "것", "들",
})
_BULK_STATUS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"\b(done|completed|finished)\b|완료", re.I), "done"),
    (re.compile(r"\bin[\s-]*progress\b|진행\s*중", re.I), "in-progress"),
    (re.compile(r"\breview\b|리뷰|검토", re.I), "review"),
    (re.compile(r"\bto-?do\b|할\s*일", re.I), "todo"),
]

_ORDINALS: List[Tuple[re.Pattern, int]] = [
    (re.compile(r"^(the\s+)?(first|1st)(\s+(one|task))?$|^첫\s*번째(\s*(것|거|태스크|할\s*일))?$", re.I), 0),
    (re.compile(r"^(the\s+)?(second|2nd)(\s+(one|task))?$|^두\s*번째(\s*(것|거|태스크|할\s*일))?$", re.I), 1),
    (re.compile(r"^(the\s+)?(third|3rd)(\s+(one|task))?$|^세\s*번째(\s*(것|거|태스크|할\s*일))?$", re.I), 2),
    (re.compile(r"^(the\s+)?last(\s+(one|task))?$|^마지막(\s*(것|거|태스크|할\s*일))?$", re.I), -1),
]

STOPWORDS = frozenset({
    "the", "and", "for", "with", "task", "tasks", "one", "ones", "item", "about", "that", "this",
    "mark", "set", "change", "move", "delete", "remove", "restore", "update", "edit", "rename",
    "complete", "finish", "done", "status", "priority", "high", "low", "medium", "select", "open",
    "please", "into", "from", "todo", "progress", "all", "every", "everything",
    "모든", "전부", "전체", "태스크", "할일", "작업", "완료", "삭제", "복구", "변경", "수정",
})
_KO_PARTICLE = re.compile(r"(을|를|이|가|은|는|도|에|의|로|으로|에서)$")

_QUESTIONS: Dict[str, Dict[str, str]] = {
    "en": {
        "SelectTask": "Which task would you like to view?",
        "UpdateTask": "Which task would you like to modify?",
        "DeleteTask": "Which task would you like to delete?",
        "RestoreTask": "Which task would you like to restore?",
        "ChangeStatus": "Which task would you like to change?",
        "_default": "Which task do you mean?",
        "missing_title": "What should the new task be called?",
        "ambiguous_action": "What would you like to change about that task?",
        "no_selection": "No task is selected. Which task do you mean?",
    },
    "ko": {
        "SelectTask": "어떤 태스크를 볼까요?",
        "UpdateTask": "어떤 태스크를 수정할까요?",
        "DeleteTask": "어떤 태스크를 삭제할까요?",
        "RestoreTask": "어떤 태스크를 복구할까요?",
        "ChangeStatus": "어떤 태스크의 상태를 바꿀까요?",
        "_default": "어떤 태스크를 말씀하시는 건가요?",
        "missing_title": "새 태스크의 제목을 알려주세요.",
        "ambiguous_action": "그 태스크의 무엇을 바꿀까요?",
        "no_selection": "선택된 태스크가 없어요. 어떤 태스크인가요?",
    },
}


# ====== 결과 타입 ======
class ClarificationError(CamelModel):
    """해결 불가한 참조. 실패가 아니라 사용자에게 되묻는 정상 종료."""
    type: ClarificationType
    suggested_question: str
    candidates: List[Task] = Field(default_factory=list)
    hint: str = ""
    # confirm: 확인 후 실행할 intent (wire 형식)
    pending_intents: List[Dict[str, Any]] = Field(default_factory=list)

    def to_payload(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "reason": self.type,
            "question": self.suggested_question,
            "candidates": [{"id": t.id, "title": t.title} for t in self.candidates],
        }
        if self.pending_intents:
            payload["pendingIntents"] = self.pending_intents
        return payload


class ResolverSuccess(BaseModel):
    ok: Literal[True] = True
    intent: Intent
    resolved_tasks: List[Task] = Field(default_factory=list)


class ResolverFailure(BaseModel):
    ok: Literal[False] = False
    error: ClarificationError


ResolverResult = Union[ResolverSuccess, ResolverFailure]


# ───────────────────────────────
# 매칭 헬퍼
# ───────────────────────────────
def _norm(text: Optional[str]) -> str:
    return re.sub(r"\s+", " ", (text or "").strip().lower())


def tokenize(text: str) -> List[str]:
    """공백 기준 토큰 중 길이 3 이상, 불용어 제외 (한국어 조사는 떼어낸다)"""
    out: List[str] = []
    for raw in _norm(text).split(" "):
        tok = raw.strip(".,!?\"'()[]")
        if len(tok) > MIN_TOKEN_LEN:
            tok = _KO_PARTICLE.sub("", tok)
        if len(tok) >= MIN_TOKEN_LEN and tok not in STOPWORDS and tok not in out:
            out.append(tok)
    return out


def exact_matches(hint: str, pool: List[Task]) -> List[Task]:
    h = _norm(hint)
    return [t for t in pool if _norm(t.title) == h]


def substring_matches(hint: str, pool: List[Task]) -> List[Task]:
    h = _norm(hint)
    if not h:
        return []
    return [t for t in pool if h in _norm(t.title) or _norm(t.title) in h]


def token_matches(hint: str, pool: List[Task]) -> List[Task]:
    tokens = tokenize(hint)
    if not tokens:
        return []
    return [t for t in pool if any(tok in _norm(t.title) for tok in tokens)]


def near_misses(hint: str, pool: List[Task]) -> List[Task]:
    h = _norm(hint)
    scored = []
    for idx, t in enumerate(pool):
        ratio = difflib.SequenceMatcher(None, h, _norm(t.title)).ratio()
        if ratio >= NEAR_MISS_RATIO:
            scored.append((-ratio, idx, t))
    scored.sort(key=lambda x: (x[0], x[1]))
    return [t for _, _, t in scored[:NEAR_MISS_LIMIT]]


def bulk_status(text: str) -> Optional[str]:
    for pattern, status in _BULK_STATUS:
        if pattern.search(text):
            return status
    return None


def bulk_filter(text: str, pool: List[Task]) -> Optional[List[Task]]:
    """'all'/'모든' 류 수량 표현이면 (상태 키워드로 거른) 전체 집합, 아니면 None"""
    if not _BULK.search(text or ""):
        return None
    status = bulk_status(text)
    return [t for t in pool if status is None or t.status == status]


def is_bulk_reference(hint: str) -> bool:
    """참조 전체가 수량어 + 상태/불용어로만 이루어졌는지 ('all', 'all done tasks', '완료된 거 전부')"""
    quantified = False
    for raw in _norm(hint).split(" "):
        word = raw.strip(".,!?\"'()[]")
        if not word:
            continue
        core = _KO_PARTICLE.sub("", word) if len(word) > 2 else word
        if _BULK_WORD.match(word) or _BULK_WORD.match(core):
            quantified = True
        elif core in STOPWORDS or core in _BULK_FILLER or bulk_status(word):
            continue
        else:
            return False
    return quantified


def ordinal_index(hint: str) -> Optional[int]:
    h = _norm(hint)
    for pattern, idx in _ORDINALS:
        if pattern.match(h):
            return idx
    return None


def _question(key: str, language: str) -> str:
    table = _QUESTIONS.get(language, _QUESTIONS["en"])
    return table.get(key, table["_default"])


def _which_task(kind: str, hint: str, language: str, candidates: Optional[List[Task]] = None) -> ResolverFailure:
    return ResolverFailure(error=ClarificationError(
        type="which_task",
        suggested_question=_question(kind, language),
        candidates=candidates or [],
        hint=hint,
    ))


def _multiple(hint: str, matches: List[Task], language: str) -> ResolverFailure:
    titles = [f'"{t.title}"' for t in matches]
    if language == "ko":
        question = f"어느 것인가요: {' 또는 '.join(titles)}?"
    else:
        question = f"Which one: {' or '.join(titles)}?"
    return ResolverFailure(error=ClarificationError(
        type="multiple_matches",
        suggested_question=question,
        candidates=matches,
        hint=hint,
    ))


# ───────────────────────────────
# 참조 해결
# ───────────────────────────────
def _bind_reference(skeleton: SkeletonBase, snapshot: Snapshot, language: str) -> Union[List[Task], ResolverFailure]:
    """targetHint → 구체 태스크 목록. 반환 리스트 길이가 2 이상이면 bulk 바인딩."""
    kind = skeleton.kind
    hint = (getattr(skeleton, "target_hint", "") or "").strip()
    is_restore = kind == "RestoreTask"
    pool = snapshot.deleted_tasks() if is_restore else snapshot.active_tasks()
    pool_ids = {t.id for t in pool}

    if not hint:
        return _which_task(kind, hint, language)

    # 1) 스냅샷에 실제로 있는 ID 만 그대로 수용
    if hint in pool_ids:
        return [t for t in pool if t.id == hint]

    # 2) 정확한 전체 제목 일치가 최우선
    exact = exact_matches(hint, pool)
    if len(exact) == 1:
        return exact
    if len(exact) > 1:
        return _multiple(hint, exact, language)

    norm = _norm(hint)

    # 3) 지시어 → 현재 선택
    if norm in _DEICTIC:
        selected_id = snapshot.state.selected_task_id
        if selected_id and selected_id in pool_ids:
            return [t for t in pool if t.id == selected_id]
        return ResolverFailure(error=ClarificationError(
            type="which_task", suggested_question=_question("no_selection", language), hint=hint,
        ))

    # 4) 최근 생성/수정
    recent_ids: List[str] = []
    if _JUST_CREATED.search(hint):
        recent_ids = list(snapshot.state.last_created_task_ids)
    elif _JUST_MODIFIED.search(hint) and snapshot.state.last_modified_task_id:
        recent_ids = [snapshot.state.last_modified_task_id]
    if recent_ids:
        recent = [t for t in pool if t.id in recent_ids]
        if len(recent) == 1 or (recent and kind in ("DeleteTask", "RestoreTask")):
            return recent
        if len(recent) > 1:
            return _multiple(hint, recent, language)

    # 5) 수량 표현만으로 된 참조 (all / 모든 + 상태)
    bulk = bulk_filter(hint, pool) if is_bulk_reference(hint) else None
    if bulk is not None:
        if kind in ("DeleteTask", "RestoreTask"):
            return bulk  # 빈 집합도 그대로 넘기고 런타임이 empty_target 으로 거절
        if len(bulk) == 1:
            return bulk
        if not bulk:
            return _which_task(kind, hint, language)
        return _multiple(hint, bulk, language)

    # 6) 서수
    idx = ordinal_index(hint)
    if idx is not None:
        if pool and -len(pool) <= idx < len(pool):
            return [pool[idx]]
        return _which_task(kind, hint, language)

    # 7) 양방향 부분 문자열
    subs = substring_matches(hint, pool)
    if len(subs) == 1:
        return subs
    if len(subs) > 1:
        return _multiple(hint, subs, language)

    # 8) 토큰
    toks = token_matches(hint, pool)
    if len(toks) == 1:
        return toks
    if len(toks) > 1:
        return _multiple(hint, toks, language)

    # 제목 단어가 섞인 수량 표현은 어떤 제목에도 안 맞으면 전체로 넓히지 않고 되묻는다
    if _BULK.search(hint):
        logger.info("resolver: 제목과 섞인 수량 표현, bulk 로 넓히지 않음: hint=%s", hint)
    return _which_task(kind, hint, language, near_misses(hint, pool))


def _to_intent(skeleton: SkeletonBase, targets: List[Task], bulk: bool) -> Intent:
    base = {"confidence": skeleton.confidence, "source": skeleton.source}
    kind = skeleton.kind
    first = targets[0] if targets else None

    if isinstance(skeleton, ChangeStatusSkeleton):
        return ChangeStatus(kind="ChangeStatus", task_id=first.id, to_status=skeleton.to_status,
                            from_status=first.status, **base)
    if isinstance(skeleton, UpdateTaskSkeleton):
        return UpdateTask(kind="UpdateTask", task_id=first.id, changes=skeleton.changes, **base)
    if kind == "DeleteTask":
        if bulk:
            return DeleteTask(kind="DeleteTask", task_ids=[t.id for t in targets], **base)
        return DeleteTask(kind="DeleteTask", task_id=first.id, **base)
    if kind == "RestoreTask":
        if bulk:
            return RestoreTask(kind="RestoreTask", task_ids=[t.id for t in targets], **base)
        return RestoreTask(kind="RestoreTask", task_id=first.id, **base)
    if kind == "SelectTask":
        return SelectTask(kind="SelectTask", task_id=first.id if first else None, **base)
    raise ValueError(f"not a reference kind: {kind}")


def resolve(skeleton: SkeletonBase, snapshot: Snapshot, *, language: str = "en") -> ResolverResult:
    """
    스켈레톤의 기호 참조를 구체 태스크 ID 로 묶는다. 외부 호출 없음, 결정론적.
    - ID 바인딩은 오직 여기서만 일어난다
    - 모호하면 고르지 않고 ClarificationError 로 되묻는다
    """
    kind = skeleton.kind
    base = {"confidence": skeleton.confidence, "source": skeleton.source}

    if kind not in REFERENCE_KINDS:
        if isinstance(skeleton, CreateTaskSkeleton):
            if any(not t.title for t in skeleton.tasks):
                return ResolverFailure(error=ClarificationError(
                    type="missing_title", suggested_question=_question("missing_title", language),
                ))
            return ResolverSuccess(intent=CreateTask(kind="CreateTask", tasks=skeleton.tasks, **base))
        # 참조가 없는 종류는 필드 그대로 Intent 로 승격
        payload = skeleton.model_dump(by_alias=True, exclude_unset=False)
        return ResolverSuccess(intent=INTENT_ADAPTER.validate_python(payload))

    hint = (getattr(skeleton, "target_hint", "") or "").strip()
    if kind == "SelectTask" and not hint:
        return ResolverSuccess(intent=SelectTask(kind="SelectTask", task_id=None, **base))

    if isinstance(skeleton, UpdateTaskSkeleton) and skeleton.changes.is_empty():
        return ResolverFailure(error=ClarificationError(
            type="ambiguous_action", suggested_question=_question("ambiguous_action", language), hint=hint,
        ))

    bound = _bind_reference(skeleton, snapshot, language)
    if isinstance(bound, ResolverFailure):
        logger.info("resolver 되묻기: kind=%s, type=%s, candidates=%d",
                    kind, bound.error.type, len(bound.error.candidates))
        return bound

    is_bulk = len(bound) != 1
    intent = _to_intent(skeleton, bound, is_bulk)
    logger.info("resolver 완료: kind=%s, targets=%d", kind, len(bound))
    return ResolverSuccess(intent=intent, resolved_tasks=bound)


# ───────────────────────────────
# 오케스트레이터용 대상 선택
# ───────────────────────────────
class TargetSelection(BaseModel):
    tasks: List[Task] = Field(default_factory=list)
    bulk: bool = False
    explicit: bool = False  # 제목 전체가 지시문에 그대로 등장
    uncertain: bool = False  # 수량어가 제목에도 있어 bulk 인지 단정할 수 없음

    @property
    def ambiguous(self) -> bool:
        if self.uncertain:
            return True
        return not self.bulk and not self.explicit and len(self.tasks) > 1


def select_targets(instruction: str, snapshot: Snapshot, *, include_deleted: bool = False) -> TargetSelection:
    """자유 문장에서 대상 태스크를 고른다 (resolver 와 같은 휴리스틱, 활성 태스크 범위)."""
    pool = snapshot.active_tasks() + (snapshot.deleted_tasks() if include_deleted else [])
    text = _norm(instruction)

    # 제목이 문장에 통째로 등장하면 명시적 지목
    mentioned = [t for t in pool if _norm(t.title) and _norm(t.title) in text]
    if mentioned:
        # 다른 제목의 일부로만 등장한 짧은 제목은 제외 ("API" ⊂ "API review")
        longest = [t for t in mentioned
                   if not any(o is not t and _norm(t.title) in _norm(o.title) for o in mentioned)]
        return TargetSelection(tasks=longest, explicit=True)

    bulk = bulk_filter(text, pool)
    if bulk is not None:
        titled = [t for t in pool if _BULK.search(_norm(t.title))]
        if titled:
            # "전체 회의" 처럼 수량어가 제목의 일부일 수 있으면 되묻는다
            return TargetSelection(tasks=titled, uncertain=True)
        return TargetSelection(tasks=bulk, bulk=True)

    if _DEICTIC_IN_TEXT.search(text):
        selected = snapshot.get_task(snapshot.state.selected_task_id)
        if selected and selected in pool:
            return TargetSelection(tasks=[selected], explicit=True)

    if _JUST_CREATED.search(text):
        recent = [t for t in pool if t.id in snapshot.state.last_created_task_ids]
        if recent:
            return TargetSelection(tasks=recent, explicit=True)

    return TargetSelection(tasks=token_matches(text, pool))


def clarify_selection(selection: TargetSelection, kind: str, *, language: str = "en") -> ClarificationError:
    """대상이 없거나 여럿일 때 되물을 질문"""
    if not selection.tasks:
        return _which_task(kind, "", language).error
    return _multiple("", selection.tasks, language).error
