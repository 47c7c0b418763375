"""
Unit tests for the structure extractor and the Markdown-like text builder.
"""

from __future__ import annotations

import pytest
from pagechunk.extractor.structure import StructureExtractor, build_from_text, extract_title
from pagechunk.protocols import ExtractedContent, Heading, SectionKind

CLEANED_HTML = (
    "<h1>Title</h1>"
    "<p>Intro   text.</p>"
    "<h2>Install</h2>"
    "<pre>pip install x</pre>"
    "<table><tr><th>A</th><th>B</th></tr><tr><td>1</td><td>2</td></tr></table>"
    "<ul><li>one</li><li>two</li></ul>"
    '<img src="/a.png"><img src="/a.png">'
)


class TestStructureExtractor:
    @pytest.fixture
    def extracted(self) -> ExtractedContent:
        return StructureExtractor().extract(CLEANED_HTML, "https://example.com/doc")

    def test_main_text_rendering(self, extracted):
        assert extracted.main_text == (
            "# Title\n\nIntro text.\n\n## Install\n\n```\npip install x\n```\n\nA | B\n1 | 2\n\n- one\n- two"
        )

    def test_headings_and_title(self, extracted):
        assert extracted.headings == (Heading("Title", 1), Heading("Install", 2))
        assert extracted.title == "Title"
        assert extracted.url == "https://example.com/doc"

    def test_sections_carry_paths_kinds_and_offsets(self, extracted):
        kinds = [s.kind for s in extracted.sections]
        assert kinds == [SectionKind.TEXT, SectionKind.CODE, SectionKind.TABLE, SectionKind.LIST]
        assert extracted.sections[0].heading_path == ("Title",)
        assert extracted.sections[1].heading_path == ("Title", "Install")
        assert extracted.sections[1].level == 2
        for section in extracted.sections:
            assert extracted.main_text[section.start : section.end] == section.text
        # heading lines belong to the first section beneath them
        assert extracted.sections[0].text.startswith("# Title")
        assert extracted.sections[1].text.startswith("## Install\n\n```")

    def test_images_absolute_and_deduplicated(self, extracted):
        assert extracted.image_refs == ("https://example.com/a.png",)

    def test_raw_length_is_input_length(self, extracted):
        assert extracted.raw_length == len(CLEANED_HTML)

    def test_explicit_title_wins(self):
        content = StructureExtractor().extract("<h1>Heading</h1><p>Body text</p>", title="Page Title")
        assert content.title == "Page Title"

    @pytest.mark.parametrize("html", ["", "   ", None])
    def test_blank_input_gives_empty_record(self, html):
        content = StructureExtractor().extract(html, "https://example.com")
        assert content.main_text == ""
        assert content.is_empty
        assert content.sections == ()

    def test_ordered_list_rendering(self):
        content = StructureExtractor().extract("<ol><li>first</li><li>second</li></ol>")
        assert content.main_text == "1. first\n2. second"
        assert content.sections[0].kind is SectionKind.LIST

    @pytest.mark.asyncio
    async def test_extract_async(self, extracted):
        result = await StructureExtractor().extract_async(CLEANED_HTML, "https://example.com/doc")
        assert result == extracted


class TestBuildFromText:
    def test_markdown_structure(self, markdown_content):
        assert [h.text for h in markdown_content.headings] == ["Getting Started", "Installation", "Usage", "Advanced"]
        assert [h.level for h in markdown_content.headings] == [1, 2, 2, 3]
        kinds = {s.kind for s in markdown_content.sections}
        assert kinds == {SectionKind.TEXT, SectionKind.CODE, SectionKind.TABLE, SectionKind.LIST}
        assert markdown_content.sections[-1].heading_path == ("Getting Started", "Usage", "Advanced")

    def test_fenced_code_kept_verbatim(self, markdown_content):
        code = next(s for s in markdown_content.sections if s.kind is SectionKind.CODE)
        assert "pip install example\nexample --version" in code.text

    def test_plain_paragraphs_collapse_inline_whitespace(self):
        content = build_from_text("First   line\ncontinues here.\n\nSecond paragraph.")
        assert content.main_text == "First line continues here.\n\nSecond paragraph."
        assert content.headings == ()
        assert all(s.heading_path == () for s in content.sections)

    def test_from_text_classmethod(self):
        content = ExtractedContent.from_text("# Hello\n\nWorld", url="https://example.com")
        assert content.title == "Hello"
        assert content.main_text == "# Hello\n\nWorld"

    def test_trailing_heading_forms_section(self):
        content = build_from_text("Body text\n\n## Tail")
        assert content.sections[-1].heading_path == ("Tail",)
        assert content.sections[-1].text == "## Tail"


class TestExtractTitle:
    def test_title_tag(self):
        assert extract_title("<html><head><title>  My   Page </title></head></html>") == "My Page"

    def test_og_title_fallback(self):
        html = '<html><head><meta property="og:title" content="Open Graph Title"></head><body></body></html>'
        assert extract_title(html) == "Open Graph Title"

    def test_h1_fallback(self):
        assert extract_title("<html><body><h1>Big Heading</h1></body></html>") == "Big Heading"

    @pytest.mark.parametrize("html", ["", "<html><body><p>No title here</p></body></html>"])
    def test_missing_title(self, html):
        assert extract_title(html) is None
