"""
Coarse language detection.

CJK scripts are recognized by character ratio first, since ``langdetect``
is unreliable on short CJK snippets. Everything else goes through
``langdetect`` with a fixed seed so results are deterministic, with a
stop-word pattern vote for texts langdetect cannot classify.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List

from langdetect import DetectorFactory, LangDetectException, detect

logger = logging.getLogger(__name__)

# langdetect is randomized unless seeded
DetectorFactory.seed = 0

UNKNOWN_LANGUAGE = "unknown"

_HANGUL_RE = re.compile(r"[가-힯ᄀ-ᇿ㄰-㆏]")
_KANA_RE = re.compile(r"[぀-ゟ゠-ヿ]")
_HAN_RE = re.compile(r"[一-鿿㐀-䶿]")

LANGUAGE_PATTERNS: Dict[str, List[str]] = {
    "en": [
        r"\b(the|and|or|but|in|on|at|to|for|of|with|by)\b",
        r"\b(this|that|these|those|what|where|when|why|how)\b",
    ],
    "es": [
        r"\b(el|la|los|las|y|o|pero|en|de|con|por|para)\b",
        r"\b(que|como|cuando|donde|quien|cual)\b",
    ],
    "fr": [
        r"\b(le|la|les|et|ou|mais|dans|de|avec|par|pour)\b",
        r"\b(que|comme|quand|où|qui|quel)\b",
    ],
    "de": [
        r"\b(der|die|das|und|oder|aber|in|auf|mit|von|für)\b",
        r"\b(was|wie|wann|wo|wer|welch)\b",
    ],
}
_COMPILED_PATTERNS = {
    lang: [re.compile(p, re.IGNORECASE) for p in patterns] for lang, patterns in LANGUAGE_PATTERNS.items()
}


def cjk_counts(text: str) -> tuple[int, int, int]:
    """Return (hangul, kana, han) character counts."""
    return len(_HANGUL_RE.findall(text)), len(_KANA_RE.findall(text)), len(_HAN_RE.findall(text))


def detect_language(text: str, cjk_ratio_threshold: float = 0.1) -> str:
    """Return an ISO 639-1 code, or ``"unknown"`` for blank input."""
    if not text or not text.strip():
        return UNKNOWN_LANGUAGE

    sample = text[:5000]
    letters = sum(1 for ch in sample if not ch.isspace())
    hangul, kana, han = cjk_counts(sample)
    if letters and (hangul + kana + han) / letters > cjk_ratio_threshold:
        if hangul >= max(kana, han):
            return "ko"
        if kana > 0:
            return "ja"
        return "zh"

    try:
        return detect(sample)
    except LangDetectException:
        logger.debug("langdetect could not classify text, using pattern vote")

    scores = {lang: sum(len(p.findall(sample)) for p in patterns) for lang, patterns in _COMPILED_PATTERNS.items()}
    best = max(scores, key=lambda lang: scores[lang])
    return best if scores[best] > 0 else UNKNOWN_LANGUAGE
