"""
Unit tests for the density filter.
"""

from __future__ import annotations

import pytest
from pagechunk.config.config import CleaningConfig
from pagechunk.extractor.density_filter import DensityFilter
from pagechunk.protocols import CleaningOptions

SOURCE_URL = "https://example.com/posts/rivers"


@pytest.fixture
def density_filter():
    return DensityFilter(CleaningConfig())


class TestBoilerplateRemoval:
    def test_article_survives_and_boilerplate_goes(self, density_filter, article_html):
        cleaned = density_filter.clean(article_html, SOURCE_URL, CleaningOptions())

        for marker in (
            "Home",
            "Site header banner text",
            "Buy the best boots",
            "We use cookies",
            "Copyright 2024",
            "Link three",
            "tracking",
            "comment that must disappear",
        ):
            assert marker not in cleaned

        assert "The river valley sentence number 0 describes how water and stone shape the land." in cleaned
        assert "The river valley sentence number 11 describes" in cleaned
        assert "<h1>Rivers of the North</h1>" in cleaned

    def test_output_is_body_inner_html(self, density_filter, article_html):
        cleaned = density_filter.clean(article_html, SOURCE_URL)
        assert "<body" not in cleaned
        assert "<head" not in cleaned
        assert cleaned.startswith("<article>")

    @pytest.mark.parametrize("html", ["", "   ", "\n\t\n"])
    def test_blank_input_returns_empty(self, density_filter, html):
        assert density_filter.clean(html, SOURCE_URL) == ""

    def test_none_input_returns_empty(self, density_filter):
        assert density_filter.clean(None) == ""

    def test_malformed_markup_is_best_effort(self, density_filter):
        html = "<div><p>Unclosed <b>bold text that is long enough to be kept around</div></p><<>>"
        cleaned = density_filter.clean(html)
        assert "bold text that is long enough to be kept around" in cleaned

    def test_short_block_below_floor_removed(self, density_filter):
        html = (
            "<html><body><div>Hi</div>"
            "<div>This block easily clears the minimum text floor for top-level content.</div>"
            "</body></html>"
        )
        cleaned = density_filter.clean(html)
        assert "Hi" not in cleaned
        assert "minimum text floor" in cleaned

    def test_negative_class_bias_removes_block(self, density_filter):
        html = (
            "<html><body>"
            "<div class='related-stories'>Other stories that you might enjoy reading next week.</div>"
            "<div class='post-body'>The body of the post is long enough to stay on the page.</div>"
            "</body></html>"
        )
        cleaned = density_filter.clean(html)
        assert "Other stories" not in cleaned
        assert "The body of the post" in cleaned

    def test_text_rich_block_outweighs_one_negative_keyword(self, density_filter):
        article = " ".join(f"River word{i} flows." for i in range(40))
        html = (
            "<html><body>"
            f"<div id='content' class='layout has-sidebar'><article><p>{article}</p></article></div>"
            "</body></html>"
        )
        cleaned = density_filter.clean(html, SOURCE_URL)
        assert article in cleaned

    def test_short_block_with_negative_bias_removed(self, density_filter):
        html = (
            "<html><body>"
            "<div class='layout sidebar-box'>Popular this week on the site.</div>"
            "<article><p>The article text is long enough to be kept by the filter.</p></article>"
            "</body></html>"
        )
        cleaned = density_filter.clean(html, SOURCE_URL)
        assert "Popular this week" not in cleaned
        assert "The article text" in cleaned

    def test_structural_elements_survive_density_pass(self, density_filter):
        html = "<html><body><div><table><tr><td>a</td><td>b</td></tr></table></div><pre>x = 1</pre></body></html>"
        cleaned = density_filter.clean(html)
        assert "<table>" in cleaned
        assert "x = 1" in cleaned

    def test_image_only_block_kept(self, density_filter):
        html = "<html><body><div><img src='https://cdn.example.com/a.png'></div></body></html>"
        cleaned = density_filter.clean(html)
        assert "https://cdn.example.com/a.png" in cleaned


class TestCleaningOptions:
    def test_layout_kept_when_not_only_main_content(self, density_filter):
        html = (
            "<html><body>"
            "<nav><p>Section index of this particular handbook for readers</p></nav>"
            "<article><p>The article text is long enough to be kept by the filter.</p></article>"
            "</body></html>"
        )
        kept = density_filter.clean(html, options=CleaningOptions(only_main_content=False))
        dropped = density_filter.clean(html, options=CleaningOptions(only_main_content=True))
        assert "Section index" in kept
        assert "Section index" not in dropped
        assert "The article text" in dropped

    def test_keep_selector_protects_boilerplate_match(self, density_filter):
        html = (
            "<html><body>"
            "<div class='sidebar'><p>Important editorial note kept on purpose</p></div>"
            "<article><p>The article text is long enough to be kept by the filter.</p></article>"
            "</body></html>"
        )
        cleaned = density_filter.clean(html, options=CleaningOptions(keep_selectors=[".sidebar"]))
        assert "Important editorial note" in cleaned

    def test_additional_remove_selectors(self, density_filter):
        html = (
            "<html><body>"
            "<div class='extra-box'>An extra block with plenty of words inside it.</div>"
            "<article><p>The article text is long enough to be kept by the filter.</p></article>"
            "</body></html>"
        )
        cleaned = density_filter.clean(html, options=CleaningOptions(additional_remove_selectors=[".extra-box"]))
        assert "An extra block" not in cleaned
        assert "The article text" in cleaned

    def test_invalid_selector_is_ignored(self, density_filter):
        html = "<html><body><article><p>The article text is long enough to be kept.</p></article></body></html>"
        cleaned = density_filter.clean(html, options=CleaningOptions(additional_remove_selectors=["div[["]))
        assert "The article text" in cleaned

    def test_options_store_tuples(self):
        options = CleaningOptions(keep_selectors=["a", "b"])
        assert options.keep_selectors == ("a", "b")
        assert options.additional_remove_selectors == ()


class TestUrlRewriting:
    def test_relative_links_made_absolute(self, density_filter, article_html):
        cleaned = density_filter.clean(article_html, SOURCE_URL)
        assert 'href="https://example.com/maps/north"' in cleaned

    def test_relative_links_untouched_when_disabled(self, density_filter, article_html):
        cleaned = density_filter.clean(article_html, SOURCE_URL, CleaningOptions(convert_relative_urls=False))
        assert 'href="/maps/north"' in cleaned

    def test_srcset_collapsed_to_widest_candidate(self, density_filter, article_html):
        cleaned = density_filter.clean(article_html, SOURCE_URL)
        assert 'src="https://example.com/img/river-1200.jpg"' in cleaned
        assert "srcset" not in cleaned

    def test_srcset_left_alone_when_disabled(self, density_filter, article_html):
        cleaned = density_filter.clean(article_html, SOURCE_URL, CleaningOptions(optimize_srcset=False))
        assert "srcset" in cleaned

    def test_no_source_url_keeps_relative(self, density_filter, article_html):
        cleaned = density_filter.clean(article_html, None)
        assert 'href="/maps/north"' in cleaned


class TestScoring:
    def test_text_floor_decays_with_depth(self, density_filter):
        assert density_filter.text_floor(0) == 25
        assert density_filter.text_floor(1) == pytest.approx(22.5)
        assert density_filter.text_floor(50) == 8

    def test_class_id_bias(self, density_filter):
        from bs4 import BeautifulSoup

        soup = BeautifulSoup(
            "<div class='article-content'></div><div id='sidebar-nav'></div><div class='navigation'></div>",
            "html.parser",
        )
        positive, negative, neutral = soup.find_all("div")
        assert density_filter.class_id_bias(positive) == pytest.approx(0.4)
        assert density_filter.class_id_bias(negative) == pytest.approx(-0.6)
        # "navigation" is not the keyword "nav"
        assert density_filter.class_id_bias(neutral) == 0.0

    def test_text_richness_saturates_and_ignores_links(self, density_filter):
        from pagechunk.extractor.density_filter import _NodeStats

        assert density_filter.text_richness(_NodeStats(text=100)) == pytest.approx(0.5)
        assert density_filter.text_richness(_NodeStats(text=100, links=50)) == pytest.approx(0.25)
        assert density_filter.text_richness(_NodeStats(text=5000)) == 1.0


@pytest.mark.asyncio
async def test_clean_async_matches_sync(density_filter, article_html):
    assert await density_filter.clean_async(article_html, SOURCE_URL) == density_filter.clean(article_html, SOURCE_URL)
