"""
Unit tests for URL helpers.
"""

import pytest
from pagechunk.extractor.urls import absolutize, best_srcset_candidate, is_absolute_base, parse_srcset


class TestAbsolutize:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("/img/a.png", "https://example.com/img/a.png"),
            ("b.html", "https://example.com/docs/b.html"),
            ("../up.html", "https://example.com/up.html"),
            ("https://cdn.example.org/x.js", "https://cdn.example.org/x.js"),
            ("#section", "#section"),
            ("mailto:team@example.com", "mailto:team@example.com"),
            ("javascript:void(0)", "javascript:void(0)"),
            ("data:image/png;base64,AAAA", "data:image/png;base64,AAAA"),
        ],
    )
    def test_resolution(self, value, expected):
        assert absolutize(value, "https://example.com/docs/page.html") == expected

    def test_relative_base_is_ignored(self):
        assert absolutize("/a", "/relative/base") == "/a"
        assert not is_absolute_base("/relative/base")
        assert not is_absolute_base(None)


class TestSrcset:
    def test_parse_width_and_density_descriptors(self):
        assert parse_srcset("a.jpg 480w, b.jpg 2x, c.jpg") == [("a.jpg", 480.0), ("b.jpg", 2000.0), ("c.jpg", 1000.0)]

    def test_widest_width_wins(self):
        assert best_srcset_candidate("small.jpg 320w, large.jpg 1280w, medium.jpg 640w") == "large.jpg"

    def test_highest_density_wins(self):
        assert best_srcset_candidate("a.jpg 1x, b.jpg 3x, c.jpg 2x") == "b.jpg"

    def test_empty_srcset(self):
        assert best_srcset_candidate(" , ") is None
