from __future__ import annotations
import re
from typing import Dict

from pydantic import BaseModel

# 문자 체계 판별 (유니코드 범위)
_KOREAN = re.compile(r"[\uAC00-\uD7AF\u1100-\u11FF\u3130-\u318F]")
_KANA = re.compile(r"[\u3040-\u309F\u30A0-\u30FF]")
_CJK = re.compile(r"[\u4E00-\u9FFF\u3400-\u4DBF]")
_CYRILLIC = re.compile(r"[\u0400-\u04FF]")
_ARABIC = re.compile(r"[\u0600-\u06FF\u0750-\u077F]")
_THAI = re.compile(r"[\u0E00-\u0E7F]")
_VIETNAMESE = re.compile(r"[\u1EA0-\u1EF9\u0110\u0111\u01A0\u01A1\u01AF\u01B0]")
_LATIN = re.compile(r"[a-zA-Z]")

_GERMAN_CHARS = re.compile(r"[äöüßÄÖÜ]")
_FRENCH_CHARS = re.compile(r"[àâèêëïîôûœæÀÂÈÊËÏÎÔÛŒÆ]")
_SPANISH_CHARS = re.compile(r"[ñÑ¿¡]")
_PORTUGUESE_CHARS = re.compile(r"[ãõÃÕ]")
_IBERIAN_CHARS = re.compile(r"[áéíóúçÁÉÍÓÚÇ]")

_KEYWORDS: Dict[str, re.Pattern] = {
    "de": re.compile(r"\b(ich|wir|ist|sind|heute|morgen|bitte|danke|und|oder|nicht|eine|der|das|aufgabe)\b", re.I),
    "fr": re.compile(r"\b(je|nous|vous|est|sont|aujourd'hui|demain|merci|bonjour|les|une|et|pas|tâche)\b", re.I),
    "es": re.compile(r"\b(yo|qué|cómo|hoy|mañana|gracias|hola|los|las|una|por favor|tarea)\b", re.I),
}

LANGUAGE_NAMES: Dict[str, str] = {
    "ko": "Korean",
    "en": "English",
    "ja": "Japanese",
    "zh": "Chinese",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "pt": "Portuguese",
    "ru": "Russian",
    "ar": "Arabic",
    "th": "Thai",
    "vi": "Vietnamese",
    "other": "English",
}


class LanguageDetection(BaseModel):
    detected: str
    confidence: float
    script: str

    @property
    def is_direct_supported(self) -> bool:
        return self.detected in ("ko", "en")


def _latin(text: str) -> LanguageDetection:
    if len(_VIETNAMESE.findall(text)) > 2:
        return LanguageDetection(detected="vi", confidence=0.8, script="latin")
    if _GERMAN_CHARS.search(text):
        return LanguageDetection(detected="de", confidence=0.75, script="latin")
    if _PORTUGUESE_CHARS.search(text):
        return LanguageDetection(detected="pt", confidence=0.75, script="latin")
    if _SPANISH_CHARS.search(text):
        return LanguageDetection(detected="es", confidence=0.75, script="latin")
    if _FRENCH_CHARS.search(text):
        return LanguageDetection(detected="fr", confidence=0.7, script="latin")
    if _IBERIAN_CHARS.search(text):
        return LanguageDetection(detected="es", confidence=0.65, script="latin")
    # 영어와 겹치는 짧은 단어가 있어 키워드는 2개 이상 맞아야 인정
    for code, pattern in _KEYWORDS.items():
        if len(pattern.findall(text)) >= 2:
            return LanguageDetection(detected=code, confidence=0.65, script="latin")
    return LanguageDetection(detected="en", confidence=0.85, script="latin")


def detect_language(text: str) -> LanguageDetection:
    """문자 체계 우선으로 입력 언어를 추정한다. 한글이 한 글자라도 있으면 ko."""
    trimmed = (text or "").strip()
    if not trimmed:
        return LanguageDetection(detected="en", confidence=0.5, script="latin")

    total = max(len(re.sub(r"\s", "", trimmed)), 1)
    for code, pattern, script, base in (
        ("ko", _KOREAN, "hangul", 0.9),
        ("ja", _KANA, "cjk", 0.85),
        ("zh", _CJK, "cjk", 0.8),
        ("ru", _CYRILLIC, "cyrillic", 0.85),
        ("ar", _ARABIC, "arabic", 0.85),
        ("th", _THAI, "thai", 0.85),
    ):
        hits = len(pattern.findall(trimmed))
        if hits:
            return LanguageDetection(detected=code, confidence=min(base + (1 - base) * hits / total, 1.0), script=script)

    if _LATIN.search(trimmed):
        return _latin(trimmed)
    return LanguageDetection(detected="other", confidence=0.5, script="other")


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code, "English")


def response_language(code: str) -> str:
    """로컬 메시지 테이블이 있는 언어(ko/en)로 좁힌다."""
    return code if code in ("ko", "en") else "en"
