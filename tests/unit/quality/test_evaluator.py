"""
Unit tests for the content quality evaluator.
"""

from __future__ import annotations

import pytest
from pagechunk.config.config import QualityConfig
from pagechunk.exceptions import ContractViolationError
from pagechunk.protocols import ContentGrade, ExtractedContent, Heading, QualityInfo
from pagechunk.quality.evaluator import ContentQualityEvaluator

SENTENCE = "The quick brown fox jumps over the lazy dog near the river bank. "


def make_content(text: str, url: str | None = "https://example.com/article", title: str | None = "A Title", **kw):
    return ExtractedContent(url=url, title=title, main_text=text, **kw)


@pytest.fixture
def evaluator():
    return ContentQualityEvaluator(QualityConfig())


class TestEvaluate:
    def test_none_content_is_contract_violation(self, evaluator):
        with pytest.raises(ContractViolationError):
            evaluator.evaluate(None)

    @pytest.mark.parametrize("text", ["", "   \n  "])
    def test_blank_content_scores_zero(self, evaluator, text):
        info = evaluator.evaluate(make_content(text))
        assert isinstance(info, QualityInfo)
        assert info.overall_score == 0.0
        assert info.word_count == 0
        assert not info.has_main_content
        assert info.detected_language == "unknown"

    def test_clean_article_scores_high(self, evaluator):
        content = make_content(SENTENCE * 30, headings=(Heading("Intro", 2), Heading("Details", 2)))
        info = evaluator.evaluate(content)

        assert info.word_count == 13 * 30
        assert info.has_main_content
        assert not info.has_paywall
        assert not info.requires_login
        assert info.ad_density == 0.0
        assert info.content_ratio == 1.0
        assert info.detected_language == "en"
        # 0.5 base + 0.2 content ratio + 0.1 word band + 0.05 headings + 0.05 title
        assert info.overall_score == pytest.approx(0.9)
        assert info.grade is ContentGrade.EXCELLENT
        assert info.heading_count == 2
        assert 0.0 <= info.readability_score <= 1.0
        assert 0.0 <= info.llm_suitability <= 1.0

    def test_paywall_lowers_score(self, evaluator):
        text = SENTENCE * 30
        open_info = evaluator.evaluate(make_content(text))
        walled_info = evaluator.evaluate(make_content(text + " Subscribe to continue reading this story."))
        assert walled_info.has_paywall
        assert walled_info.overall_score == pytest.approx(open_info.overall_score - 0.3)

    def test_paywall_marker_in_html(self, evaluator):
        html = '<div class="paywall-content">' + SENTENCE * 30 + "</div>"
        info = evaluator.evaluate(make_content(SENTENCE * 30), raw_html=html)
        assert info.has_paywall

    def test_login_wall_detected(self, evaluator):
        info = evaluator.evaluate(make_content(SENTENCE * 5 + "Log in to continue."))
        assert info.requires_login

    def test_password_form_on_short_page(self, evaluator):
        html = '<form><input type="password" name="pw"></form><p>' + SENTENCE + "</p>"
        info = evaluator.evaluate(make_content(SENTENCE), raw_html=html)
        assert info.requires_login

    def test_ad_density_from_markup(self, evaluator):
        ads = '<div class="advertisement"></div>' * 10
        info = evaluator.evaluate(make_content(SENTENCE * 30), raw_html=ads + "<p>" + SENTENCE * 30 + "</p>")
        assert info.ad_density == pytest.approx(0.5)

    def test_content_ratio_uses_markup_length(self, evaluator):
        text = SENTENCE * 3
        html = "<div>" + " " * (len(text) * 30) + text + "</div>"
        info = evaluator.evaluate(make_content(text), raw_html=html)
        assert 0.0 < info.content_ratio < 0.2

    def test_structured_data_detected(self, evaluator):
        html = '<script type="application/ld+json">{"@type": "Article"}</script><p>' + SENTENCE + "</p>"
        info = evaluator.evaluate(make_content(SENTENCE, title=None), raw_html=html)
        assert info.has_structured_data

    def test_content_type_from_url(self, evaluator):
        info = evaluator.evaluate(make_content(SENTENCE, url="https://docs.example.com/setup"))
        assert info.content_type == "documentation"

    def test_reading_time_and_tokens(self, evaluator):
        info = evaluator.evaluate(make_content(SENTENCE * 30))
        assert info.reading_time_minutes == pytest.approx(round(390 / 200.0, 1))
        assert info.estimated_tokens == round(len(SENTENCE * 30) / 4)

    def test_scores_are_bounded(self, evaluator):
        text = "Subscribe to continue. Log in to continue. " * 2
        html = '<div class="advertisement"></div>' * 50
        info = evaluator.evaluate(make_content(text, title=None), raw_html=html)
        assert info.overall_score == 0.0
        assert info.grade is ContentGrade.VERY_POOR

    @pytest.mark.asyncio
    async def test_evaluate_async(self, evaluator):
        content = make_content(SENTENCE * 30)
        assert await evaluator.evaluate_async(content) == evaluator.evaluate(content)


class TestTokenEstimate:
    def test_latin_text(self):
        assert ContentQualityEvaluator.estimate_tokens("abcd" * 10) == 10

    def test_cjk_text(self):
        assert ContentQualityEvaluator.estimate_tokens("中文" * 3) == 4
