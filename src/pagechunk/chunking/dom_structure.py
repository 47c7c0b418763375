"""
Heading-hierarchy chunking for HTML-sourced documents.
"""

from __future__ import annotations

from itertools import groupby

from pagechunk.cancellation import CancellationToken, check
from pagechunk.chunking.base import BaseChunkingStrategy
from pagechunk.chunking.paragraph import paragraph_spans
from pagechunk.chunking.smart import content_sections
from pagechunk.chunking.spans import Span, split_region, trim
from pagechunk.protocols import ChunkingOptions, ExtractedContent, Section, SectionKind, StrategyName


class DomStructureChunkingStrategy(BaseChunkingStrategy):
    """
    One chunk per heading-delimited section group.

    Consecutive sections sharing a heading path form a group. Groups that
    fit ``max_chunk_size`` become one chunk; larger groups are packed
    section by section, with code and tables kept whole and long prose or
    lists cut at line and sentence boundaries. Undersized groups are folded
    into the previous chunk when they fit.
    """

    strategy = StrategyName.DOM_STRUCTURE
    description = "Chunks at heading boundaries, preserving the heading hierarchy."

    def _spans(
        self,
        content: ExtractedContent,
        options: ChunkingOptions,
        cancel: CancellationToken | None,
        notes: list[str],
    ) -> list[Span]:
        text = content.main_text
        floor = self._floor(options)
        if not content.headings:
            notes.append("no heading structure, split by paragraphs")
            return paragraph_spans(text, options, floor, cancel)

        spans: list[Span] = []
        for heading_path, members in groupby(content_sections(content), key=lambda s: s.heading_path):
            check(cancel)
            sections = list(members)
            start, end = trim(text, sections[0].start, sections[-1].end)
            if end <= start:
                continue
            if end - start <= options.max_chunk_size:
                spans.append(Span(start, end, heading_path, _dominant_kind(sections)))
            else:
                spans.extend(self._pack(text, sections, heading_path, options, floor, cancel))

        return self._fold_small(spans, options)

    @staticmethod
    def _pack(
        text: str,
        sections: list[Section],
        heading_path: tuple[str, ...],
        options: ChunkingOptions,
        floor: int,
        cancel: CancellationToken | None,
    ) -> list[Span]:
        spans: list[Span] = []
        current: Span | None = None
        for section in sections:
            check(cancel)
            start, end = trim(text, section.start, section.end)
            if end <= start:
                continue
            if current is not None and end - current.start <= options.max_chunk_size:
                kind = current.kind if current.kind is section.kind else SectionKind.TEXT
                current = Span(current.start, end, heading_path, kind)
                continue
            if current is not None:
                spans.append(current)
                current = None
            if end - start <= options.max_chunk_size:
                current = Span(start, end, heading_path, section.kind)
            elif section.is_atomic:
                spans.append(Span(start, end, heading_path, section.kind, atomic=True))
            else:
                spans.extend(
                    Span(s, e, heading_path, section.kind)
                    for s, e in split_region(text, start, end, options.max_chunk_size, floor, cancel)
                )
        if current is not None:
            spans.append(current)
        return spans

    @staticmethod
    def _fold_small(spans: list[Span], options: ChunkingOptions) -> list[Span]:
        folded: list[Span] = []
        for span in spans:
            if (
                folded
                and span.length < options.min_chunk_size
                and not span.atomic
                and not folded[-1].atomic
                and span.end - folded[-1].start <= options.max_chunk_size
            ):
                prev = folded[-1]
                kind = prev.kind if prev.kind is span.kind else SectionKind.TEXT
                folded[-1] = Span(prev.start, span.end, prev.heading_path, kind)
            else:
                folded.append(span)
        return folded


def _dominant_kind(sections: list[Section]) -> SectionKind:
    weights: dict[SectionKind, int] = {}
    for section in sections:
        weights[section.kind] = weights.get(section.kind, 0) + (section.end - section.start)
    return max(weights, key=lambda k: weights[k])
