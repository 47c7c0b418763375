"""
Content quality evaluation.

Scores an :class:`ExtractedContent` (optionally alongside its raw HTML) for
paywalls, ad saturation, content-to-markup ratio, readability and language.
The result feeds the auto-selector and can be queried on its own.
"""

from __future__ import annotations

import asyncio
import re

import structlog
from selectolax.parser import HTMLParser

from pagechunk.config.config import QualityConfig
from pagechunk.exceptions import ContractViolationError
from pagechunk.observability.metrics import observe
from pagechunk.protocols import ContentGrade, ExtractedContent, QualityInfo, SectionKind, count_words
from pagechunk.quality.language import UNKNOWN_LANGUAGE, cjk_counts, detect_language

logger = structlog.get_logger(__name__)

_AD_TAG_RE = re.compile(r"<(?:ins|iframe)[^>]*(?:adsense|doubleclick|googlesyndication)[^>]*>", re.IGNORECASE)
_PASSWORD_INPUT_RE = re.compile(r"<input[^>]+type=[\"']?password", re.IGNORECASE)
_SENTENCE_END_RE = re.compile(r"[.!?]+(?:\s|$)")
_VOWEL_GROUP_RE = re.compile(r"[aeiouy]+")
_WORD_RE = re.compile(r"[A-Za-z]+")

_CONTENT_TYPE_HINTS = {
    "documentation": ("/docs", "docs.", "/api", "/reference", "documentation", "/manual", "/guide"),
    "forum": ("/forum", "/thread", "/questions/", "/t/", "/discussion"),
    "product": ("/product", "/shop", "/item/", "/p/"),
    "blog": ("/blog", "blog.", "/posts/", "medium.com", "dev.to"),
}
_PRODUCT_TERMS = ("add to cart", "buy now", "in stock", "free shipping")
_FORUM_TERMS = ("replied", "reply", "upvote", "posted by", "answered")


def _count_syllables(word: str) -> int:
    word = word.lower()
    groups = _VOWEL_GROUP_RE.findall(word)
    count = len(groups)
    if word.endswith("e") and count > 1:
        count -= 1
    return max(1, count)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class ContentQualityEvaluator:
    """Heuristic quality scoring. Stateless; safe to share across tasks."""

    name = "content_quality"

    def __init__(self, config: QualityConfig | None = None, metrics_enabled: bool = True):
        self.config = config or QualityConfig()
        self.metrics_enabled = metrics_enabled
        self.logger = logger.bind(component=self.name)

    def evaluate(self, content: ExtractedContent, raw_html: str | None = None) -> QualityInfo:
        if content is None:
            raise ContractViolationError("content must not be None")

        text = content.main_text
        if not text.strip():
            return QualityInfo(
                overall_score=0.0,
                word_count=0,
                has_main_content=False,
                has_paywall=False,
                ad_density=0.0,
                content_ratio=0.0,
                detected_language=UNKNOWN_LANGUAGE,
            )

        html = raw_html or ""
        lower_text = text.lower()
        lower_html = html.lower()
        word_count = count_words(text)

        has_paywall = self._detect_paywall(lower_text, lower_html, len(text))
        requires_login = self._detect_login(lower_text, lower_html, html, word_count)
        ad_density = self._ad_density(lower_html, html)
        content_ratio = self._content_ratio(text, html, content.raw_length)
        language = detect_language(text)
        readability = self._readability(text, language)
        structured = self._has_structured_data(html)
        content_type = self._content_type(content, lower_text)

        score = 0.5
        if has_paywall:
            score -= 0.3
        if requires_login:
            score -= 0.2
        score -= ad_density * 0.2
        score += content_ratio * 0.2
        if self.config.ideal_min_words <= word_count <= self.config.ideal_max_words:
            score += 0.1
        elif word_count > self.config.ideal_max_words:
            score += 0.05
        if len(content.headings) >= 2:
            score += 0.05
        if content.title or structured:
            score += 0.05
        overall = round(_clamp(score), 4)

        has_main = word_count > self.config.main_content_min_words
        llm_suitability = _clamp(
            overall * 0.5
            + min(1.0, len(content.headings) / 5) * 0.2
            + (0.2 if has_main else 0.0)
            + readability * 0.1
            - (0.3 if has_paywall else 0.0)
        )

        if self.metrics_enabled:
            observe("quality_score", overall)
        self.logger.debug(
            "content evaluated",
            url=content.url,
            score=overall,
            words=word_count,
            paywall=has_paywall,
            language=language,
        )

        return QualityInfo(
            overall_score=overall,
            word_count=word_count,
            has_main_content=has_main,
            has_paywall=has_paywall,
            ad_density=round(ad_density, 4),
            content_ratio=round(content_ratio, 4),
            detected_language=language,
            readability_score=round(readability, 4),
            requires_login=requires_login,
            content_type=content_type,
            estimated_tokens=self.estimate_tokens(text),
            reading_time_minutes=round(word_count / 200.0, 1),
            heading_count=len(content.headings),
            has_structured_data=structured,
            llm_suitability=round(llm_suitability, 4),
            grade=ContentGrade.from_score(overall),
        )

    async def evaluate_async(self, content: ExtractedContent, raw_html: str | None = None) -> QualityInfo:
        return await asyncio.to_thread(self.evaluate, content, raw_html)

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    def _detect_paywall(self, lower_text: str, lower_html: str, text_length: int) -> bool:
        for keyword in self.config.paywall_keywords:
            if keyword in lower_text or keyword in lower_html:
                return True
        return text_length < 500 and "subscribe" in lower_text

    def _detect_login(self, lower_text: str, lower_html: str, html: str, word_count: int) -> bool:
        for keyword in self.config.login_keywords:
            if keyword in lower_text or keyword in lower_html:
                return True
        return bool(html) and word_count < 200 and _PASSWORD_INPUT_RE.search(html) is not None

    def _ad_density(self, lower_html: str, html: str) -> float:
        if not html:
            return 0.0
        count = sum(lower_html.count(indicator) for indicator in self.config.ad_indicators)
        count += len(_AD_TAG_RE.findall(html))
        return min(1.0, count / self.config.ad_saturation_count)

    @staticmethod
    def _content_ratio(text: str, html: str, raw_length: int) -> float:
        markup_length = len(html) or raw_length
        if markup_length <= 0:
            return 1.0
        return _clamp(len(text) / markup_length * 3)

    @staticmethod
    def _readability(text: str, language: str) -> float:
        """Flesch reading ease mapped onto 0-1; neutral for non-Latin scripts."""
        if language in ("ko", "ja", "zh"):
            return 0.5
        words = _WORD_RE.findall(text)
        if not words:
            return 0.5
        sentences = max(1, len(_SENTENCE_END_RE.findall(text)))
        syllables = sum(_count_syllables(w) for w in words)
        flesch = 206.835 - 1.015 * (len(words) / sentences) - 84.6 * (syllables / len(words))
        return _clamp(flesch / 100.0)

    @staticmethod
    def _has_structured_data(html: str) -> bool:
        if not html:
            return False
        tree = HTMLParser(html)
        if tree.css_first('script[type="application/ld+json"]') is not None:
            return True
        return tree.css_first("[itemscope]") is not None or tree.css_first('meta[property^="og:"]') is not None

    @staticmethod
    def _content_type(content: ExtractedContent, lower_text: str) -> str:
        url = (content.url or "").lower()
        for content_type, hints in _CONTENT_TYPE_HINTS.items():
            if any(h in url for h in hints):
                return content_type
        code_sections = sum(1 for s in content.sections if s.kind is SectionKind.CODE)
        if code_sections >= 3:
            return "documentation"
        if sum(lower_text.count(term) for term in _PRODUCT_TERMS) >= 2:
            return "product"
        if sum(lower_text.count(term) for term in _FORUM_TERMS) >= 3:
            return "forum"
        if count_words(lower_text) >= 300:
            return "article"
        return "unknown"

    @staticmethod
    def estimate_tokens(text: str) -> int:
        """Rough token count: CJK characters at 1.5 chars/token, the rest at 4."""
        cjk = sum(cjk_counts(text))
        other = len(text) - cjk
        return int(round(cjk / 1.5 + other / 4.0))
