"""
Structure-aware chunking along extracted sections.
"""

from __future__ import annotations

from dataclasses import dataclass

from pagechunk.cancellation import CancellationToken, check
from pagechunk.chunking.base import BaseChunkingStrategy
from pagechunk.chunking.spans import Span, paragraph_ranges, split_region, trim
from pagechunk.protocols import ChunkingOptions, ExtractedContent, Section, SectionKind, StrategyName


def content_sections(content: ExtractedContent) -> tuple[Section, ...]:
    """Sections of ``content``, or one text section per paragraph when it has none."""
    if content.sections:
        return content.sections
    text = content.main_text
    return tuple(
        Section(heading_path=(), level=0, text=text[s:e], kind=SectionKind.TEXT, start=s, end=e)
        for s, e in paragraph_ranges(text)
    )


@dataclass(slots=True)
class _Group:
    start: int
    end: int
    heading_path: tuple[str, ...]
    kind: SectionKind

    def span(self) -> Span:
        return Span(self.start, self.end, self.heading_path, self.kind)


class SmartChunkingStrategy(BaseChunkingStrategy):
    """
    Emits chunks along section boundaries.

    Code and table sections are atomic: they are never cut, even past
    ``max_chunk_size``. Small neighbouring sections under the same heading
    are joined until the group reaches ``min_chunk_size``.
    """

    strategy = StrategyName.SMART
    description = "Section-aware; keeps code and tables whole and tags chunks with heading paths."

    def _spans(
        self,
        content: ExtractedContent,
        options: ChunkingOptions,
        cancel: CancellationToken | None,
        notes: list[str],
    ) -> list[Span]:
        text = content.main_text
        floor = self._floor(options)
        spans: list[Span] = []
        group: _Group | None = None
        oversized_atomic = 0

        for section in content_sections(content):
            check(cancel)
            start, end = trim(text, section.start, section.end)
            if end <= start:
                continue

            if section.is_atomic:
                if group is not None:
                    spans.append(group.span())
                    group = None
                if end - start > options.max_chunk_size:
                    oversized_atomic += 1
                spans.append(Span(start, end, section.heading_path, section.kind, atomic=True))
                continue

            if end - start > options.max_chunk_size:
                if group is not None:
                    spans.append(group.span())
                    group = None
                spans.extend(
                    Span(s, e, section.heading_path, section.kind)
                    for s, e in split_region(text, start, end, options.max_chunk_size, floor, cancel)
                )
                continue

            if (
                group is not None
                and group.heading_path == section.heading_path
                and group.end - group.start < options.min_chunk_size
                and end - group.start <= options.max_chunk_size
            ):
                group.end = end
                if group.kind is not section.kind:
                    group.kind = SectionKind.TEXT
                continue

            if group is not None:
                spans.append(group.span())
            group = _Group(start, end, section.heading_path, section.kind)

        if group is not None:
            spans.append(group.span())
        if oversized_atomic:
            notes.append(f"{oversized_atomic} atomic section(s) kept whole above max_chunk_size")
        return spans
