"""
Fixed-size windows with a constant overlap back-step.
"""

from __future__ import annotations

import math

from pagechunk.cancellation import CancellationToken, check
from pagechunk.chunking.base import BaseChunkingStrategy
from pagechunk.chunking.spans import Span, trim
from pagechunk.protocols import ChunkingOptions, ExtractedContent, StrategyName


class FixedSizeChunkingStrategy(BaseChunkingStrategy):
    """
    Slides a window of ``max_chunk_size`` over the raw text.

    The number of windows is the minimum needed to cover the text; window
    length is then spread evenly across them, so every chunk has (nearly)
    the same size instead of a short remainder at the end.
    """

    strategy = StrategyName.FIXED_SIZE
    description = "Equal-sized windows with overlap; ignores structure."

    def _spans(
        self,
        content: ExtractedContent,
        options: ChunkingOptions,
        cancel: CancellationToken | None,
        notes: list[str],
    ) -> list[Span]:
        text = content.main_text
        start, end = trim(text, 0, len(text))
        length = end - start
        size, overlap = options.max_chunk_size, options.overlap_size
        if length <= size:
            return [Span(start, end)]

        windows = math.ceil((length - overlap) / (size - overlap))
        stride = (length - overlap) / windows

        spans: list[Span] = []
        prev_end = start
        for i in range(windows):
            check(cancel)
            boundary = end if i == windows - 1 else start + round(overlap + (i + 1) * stride)
            s, e = trim(text, prev_end, boundary)
            if e > s:
                spans.append(Span(s, e))
            prev_end = boundary
        notes.append(f"{windows} windows of ~{round(overlap + stride)} chars")
        return spans
