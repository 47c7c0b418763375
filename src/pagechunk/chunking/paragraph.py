"""
Blank-line paragraph chunking. Also the fallback strategy for the factory.
"""

from __future__ import annotations

from pagechunk.cancellation import CancellationToken, check
from pagechunk.chunking.base import BaseChunkingStrategy
from pagechunk.chunking.spans import Span, paragraph_ranges, split_region
from pagechunk.protocols import ChunkingOptions, ExtractedContent, StrategyName


def paragraph_spans(
    text: str,
    options: ChunkingOptions,
    floor: int,
    cancel: CancellationToken | None = None,
) -> list[Span]:
    """Group paragraphs until ``min_chunk_size`` is reached.

    Paragraphs longer than ``max_chunk_size`` are cut at sentence
    boundaries. Consecutive short paragraphs are joined while the group is
    below the minimum and still fits the maximum.
    """
    spans: list[Span] = []
    group: tuple[int, int] | None = None

    for start, end in paragraph_ranges(text):
        check(cancel)
        if end - start > options.max_chunk_size:
            if group is not None:
                spans.append(Span(*group))
                group = None
            spans.extend(Span(s, e) for s, e in split_region(text, start, end, options.max_chunk_size, floor, cancel))
            continue

        if group is None:
            group = (start, end)
        elif end - group[0] <= options.max_chunk_size:
            group = (group[0], end)
        else:
            spans.append(Span(*group))
            group = (start, end)

        if group[1] - group[0] >= options.min_chunk_size:
            spans.append(Span(*group))
            group = None

    if group is not None:
        spans.append(Span(*group))
    return spans


class ParagraphChunkingStrategy(BaseChunkingStrategy):
    strategy = StrategyName.PARAGRAPH
    description = "Splits on blank lines, joining short paragraphs and cutting long ones at sentences."

    def _spans(
        self,
        content: ExtractedContent,
        options: ChunkingOptions,
        cancel: CancellationToken | None,
        notes: list[str],
    ) -> list[Span]:
        return paragraph_spans(content.main_text, options, self._floor(options), cancel)
