"""
Structure extractor: walks cleaned HTML (or Markdown-like text) into an
:class:`ExtractedContent` record.

Main text is rendered in a normalized Markdown-like form: ``#`` headings,
fenced code, pipe-joined table rows, ``-``/``1.`` list items, and blocks
separated by one blank line. Sections carry offsets into that text.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass

from bs4 import BeautifulSoup, NavigableString, Tag
from selectolax.parser import HTMLParser

from pagechunk.extractor.urls import absolutize
from pagechunk.protocols import ExtractedContent, Heading, Section, SectionKind

logger = logging.getLogger(__name__)

BLOCK_SEPARATOR = "\n\n"

_HEADING_TAGS = {"h1": 1, "h2": 2, "h3": 3, "h4": 4, "h5": 5, "h6": 6}
_CONTAINER_TAGS = frozenset(
    {
        "html",
        "body",
        "div",
        "section",
        "article",
        "main",
        "p",
        "blockquote",
        "figure",
        "figcaption",
        "header",
        "footer",
        "aside",
        "nav",
        "form",
        "details",
        "summary",
        "dl",
        "dt",
        "dd",
        "address",
        "fieldset",
        "center",
        "li",
        "hr",
    }
)

_MD_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
_MD_LIST_RE = re.compile(r"^\s*(?:[-*+•]|\d+[.)])\s+")
_MD_FENCE_RE = re.compile(r"^\s*(```|~~~)")


def normalize_inline(text: str) -> str:
    return " ".join(text.split())


@dataclass(slots=True)
class _Block:
    kind: str  # "heading" or a SectionKind value
    text: str
    level: int = 0


class StructureBuilder:
    """Accumulates blocks in document order and renders the final record."""

    def __init__(self) -> None:
        self._blocks: list[_Block] = []

    def add_heading(self, text: str, level: int) -> None:
        text = normalize_inline(text)
        if text:
            self._blocks.append(_Block("heading", text, max(1, min(level, 6))))

    def add_block(self, kind: SectionKind, text: str) -> None:
        if kind is SectionKind.CODE:
            text = text.strip("\n").rstrip()
        else:
            text = text.strip()
        if text:
            self._blocks.append(_Block(kind.value, text))

    @staticmethod
    def _render(block: _Block) -> str:
        if block.kind == "heading":
            return f"{'#' * block.level} {block.text}"
        if block.kind == SectionKind.CODE.value:
            return f"```\n{block.text}\n```"
        return block.text

    def build(
        self,
        url: str | None = None,
        title: str | None = None,
        image_refs: list[str] | None = None,
        raw_length: int = 0,
    ) -> ExtractedContent:
        parts: list[str] = []
        headings: list[Heading] = []
        spans: list[tuple[tuple[str, ...], int, SectionKind, int, int]] = []
        stack: list[tuple[int, str]] = []
        pending_start: int | None = None
        pos = 0

        for block in self._blocks:
            if parts:
                pos += len(BLOCK_SEPARATOR)
            start = pos
            rendered = self._render(block)
            parts.append(rendered)
            pos += len(rendered)

            if block.kind == "heading":
                while stack and stack[-1][0] >= block.level:
                    stack.pop()
                stack.append((block.level, block.text))
                headings.append(Heading(block.text, block.level))
                if pending_start is None:
                    pending_start = start
                continue

            section_start = pending_start if pending_start is not None else start
            pending_start = None
            path = tuple(text for _, text in stack)
            level = stack[-1][0] if stack else 0
            spans.append((path, level, SectionKind(block.kind), section_start, pos))

        if pending_start is not None:
            path = tuple(text for _, text in stack)
            spans.append((path, stack[-1][0] if stack else 0, SectionKind.TEXT, pending_start, pos))

        main_text = BLOCK_SEPARATOR.join(parts)
        sections = [
            Section(heading_path=path, level=level, text=main_text[start:end], kind=kind, start=start, end=end)
            for path, level, kind, start, end in spans
        ]

        if title is None and headings:
            first_h1 = next((h for h in headings if h.level == 1), None)
            title = first_h1.text if first_h1 else None

        return ExtractedContent(
            url=url,
            title=title,
            main_text=main_text,
            headings=tuple(headings),
            sections=tuple(sections),
            image_refs=tuple(image_refs or ()),
            raw_length=raw_length,
        )


class StructureExtractor:
    """Turns cleaned HTML into an :class:`ExtractedContent` record."""

    name = "structure"

    def __init__(self, parser: str = "html.parser") -> None:
        self.parser = parser

    def extract(self, cleaned_html: str, source_url: str | None = None, title: str | None = None) -> ExtractedContent:
        if cleaned_html is None or not cleaned_html.strip():
            return ExtractedContent(url=source_url, title=title, main_text="", raw_length=0)

        soup = BeautifulSoup(cleaned_html, self.parser)
        builder = StructureBuilder()
        images: list[str] = []
        walker = _DomWalker(builder, images, source_url)
        try:
            walker.walk(soup)
            walker.flush()
        except RecursionError:
            logger.warning("Markup nested too deeply for %s, falling back to flat text", source_url)
            return build_from_text(soup.get_text("\n"), url=source_url, title=title, raw_length=len(cleaned_html))

        return builder.build(
            url=source_url,
            title=title,
            image_refs=list(dict.fromkeys(images)),
            raw_length=len(cleaned_html),
        )

    async def extract_async(
        self, cleaned_html: str, source_url: str | None = None, title: str | None = None
    ) -> ExtractedContent:
        return await asyncio.to_thread(self.extract, cleaned_html, source_url, title)


class _DomWalker:
    def __init__(self, builder: StructureBuilder, images: list[str], source_url: str | None) -> None:
        self.builder = builder
        self.images = images
        self.source_url = source_url
        self._inline: list[str] = []

    def flush(self) -> None:
        if self._inline:
            self.builder.add_block(SectionKind.TEXT, normalize_inline("".join(self._inline)))
            self._inline = []

    def _image(self, tag: Tag) -> None:
        src = (tag.get("src") or "").strip()
        if src and not src.lower().startswith("data:"):
            self.images.append(absolutize(src, self.source_url))

    def _images_within(self, tag: Tag) -> None:
        for img in tag.find_all("img"):
            self._image(img)

    def walk(self, node: Tag) -> None:
        for child in node.children:
            if isinstance(child, Tag):
                self._visit(child)
            elif type(child) is NavigableString:
                self._inline.append(str(child))

    def _visit(self, tag: Tag) -> None:
        name = tag.name
        if name in _HEADING_TAGS:
            self.flush()
            self.builder.add_heading(tag.get_text(" "), _HEADING_TAGS[name])
            self._images_within(tag)
        elif name == "pre":
            self.flush()
            self.builder.add_block(SectionKind.CODE, tag.get_text())
        elif name == "table":
            self.flush()
            self.builder.add_block(SectionKind.TABLE, render_table(tag))
            self._images_within(tag)
        elif name in ("ul", "ol"):
            self.flush()
            self.builder.add_block(SectionKind.LIST, render_list(tag))
            self._images_within(tag)
        elif name == "img":
            self._image(tag)
        elif name == "br":
            self._inline.append(" ")
        elif name in _CONTAINER_TAGS:
            self.flush()
            self.walk(tag)
            self.flush()
        else:
            self.walk(tag)


def render_table(table: Tag) -> str:
    rows = []
    for tr in table.find_all("tr"):
        cells = [normalize_inline(cell.get_text(" ")) for cell in tr.find_all(["td", "th"])]
        if any(cells):
            rows.append(" | ".join(cells))
    return "\n".join(rows) if rows else normalize_inline(table.get_text(" "))


def render_list(list_tag: Tag) -> str:
    ordered = list_tag.name == "ol"
    items = [normalize_inline(li.get_text(" ")) for li in list_tag.find_all("li", recursive=False)]
    items = [item for item in items if item]
    if not items:
        return normalize_inline(list_tag.get_text(" "))
    if ordered:
        return "\n".join(f"{i}. {item}" for i, item in enumerate(items, 1))
    return "\n".join(f"- {item}" for item in items)


def build_from_text(
    text: str, url: str | None = None, title: str | None = None, raw_length: int | None = None
) -> ExtractedContent:
    """Build an :class:`ExtractedContent` from plain or Markdown-like text."""
    if text is None:
        text = ""
    builder = StructureBuilder()
    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")

    paragraph: list[str] = []
    kind: SectionKind | None = None

    def flush() -> None:
        nonlocal paragraph, kind
        if paragraph:
            if kind is SectionKind.TEXT:
                builder.add_block(kind, normalize_inline(" ".join(paragraph)))
            else:
                builder.add_block(kind or SectionKind.TEXT, "\n".join(line.strip() for line in paragraph))
        paragraph = []
        kind = None

    i = 0
    while i < len(lines):
        line = lines[i]
        stripped = line.strip()
        fence = _MD_FENCE_RE.match(line)
        if fence:
            flush()
            marker = fence.group(1)
            code: list[str] = []
            i += 1
            while i < len(lines) and not lines[i].strip().startswith(marker):
                code.append(lines[i])
                i += 1
            builder.add_block(SectionKind.CODE, "\n".join(code))
            i += 1
            continue

        heading = _MD_HEADING_RE.match(stripped)
        if heading:
            flush()
            builder.add_heading(heading.group(2), len(heading.group(1)))
        elif not stripped:
            flush()
        else:
            if stripped.startswith("|"):
                line_kind = SectionKind.TABLE
            elif _MD_LIST_RE.match(line):
                line_kind = SectionKind.LIST
            else:
                line_kind = SectionKind.TEXT
            if kind is not None and kind is not line_kind:
                flush()
            kind = line_kind
            paragraph.append(stripped)
        i += 1
    flush()

    return builder.build(url=url, title=title, raw_length=len(text) if raw_length is None else raw_length)


def extract_title(raw_html: str) -> str | None:
    """Read the document title: ``<title>``, then ``og:title``, then the first ``<h1>``."""
    if not raw_html or not raw_html.strip():
        return None
    tree = HTMLParser(raw_html)
    node = tree.css_first("title")
    if node is not None:
        text = normalize_inline(node.text())
        if text:
            return text
    meta = tree.css_first('meta[property="og:title"]')
    if meta is not None:
        content = normalize_inline(meta.attributes.get("content") or "")
        if content:
            return content
    h1 = tree.css_first("h1")
    if h1 is not None:
        return normalize_inline(h1.text()) or None
    return None
