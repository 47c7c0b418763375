"""
Span arithmetic shared by every chunking strategy.

Strategies decide *where* to cut; this module turns their decisions into
:class:`Chunk` records with one set of rules:

- a span is a trimmed ``[start, end)`` range of the source text; spans are
  ordered and together cover every non-whitespace character;
- a final span shorter than ``min_chunk_size`` is merged into the previous
  one, or the two are rebalanced when the merge would not fit;
- overlap is copied from the *end* of the previous chunk, clamped so that
  no chunk grows past ``max_chunk_size + overlap_size``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Iterator

from pagechunk.cancellation import CancellationToken, check
from pagechunk.protocols import Chunk, ChunkingOptions, SectionKind

_SENTENCE_END_RE = re.compile(r"(?:[.!?]+[\"'”’)\]]*(?=\s)|[。！？]+)")
_PARAGRAPH_BREAK_RE = re.compile(r"\n[ \t]*\n\s*")


@dataclass(slots=True, frozen=True)
class Span:
    start: int
    end: int
    heading_path: tuple[str, ...] = ()
    kind: SectionKind = SectionKind.TEXT
    atomic: bool = False

    @property
    def length(self) -> int:
        return self.end - self.start


def trim(text: str, start: int, end: int) -> tuple[int, int]:
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    return start, end


def skip_whitespace(text: str, pos: int, end: int) -> int:
    while pos < end and text[pos].isspace():
        pos += 1
    return pos


def find_cut(text: str, start: int, end: int, max_size: int, natural_floor: int = 1, hard_floor: int = 1) -> int:
    """Pick a cut position in ``(start, start + max_size]``.

    Preference order: blank line, line break, sentence end, any whitespace,
    then a hard cut at the limit. Natural boundaries closer than
    ``natural_floor`` to ``start`` are ignored so pieces do not collapse to a
    few words.
    """
    limit = min(end, start + max_size)
    if end - start <= max_size:
        return end
    natural_lo = start + max(1, natural_floor)
    hard_lo = start + max(1, hard_floor)

    idx = text.rfind("\n\n", natural_lo, min(len(text), limit + 2))
    if idx != -1 and idx <= limit:
        return idx
    idx = text.rfind("\n", natural_lo, limit + 1)
    if idx != -1:
        return idx

    last_sentence = -1
    for match in _SENTENCE_END_RE.finditer(text, natural_lo, min(len(text), limit + 1)):
        if match.end() <= limit:
            last_sentence = match.end()
    if last_sentence >= natural_lo:
        return last_sentence

    best = -1
    for ws in (" ", "\t", "\n"):
        best = max(best, text.rfind(ws, hard_lo, limit + 1))
    if best != -1:
        return best
    return limit


def split_region(
    text: str,
    start: int,
    end: int,
    max_size: int,
    natural_floor: int,
    cancel: CancellationToken | None = None,
) -> list[tuple[int, int]]:
    """Cut ``text[start:end]`` into trimmed pieces of at most ``max_size`` chars."""
    pieces: list[tuple[int, int]] = []
    s, e = trim(text, start, end)
    while s < e:
        check(cancel)
        if e - s <= max_size:
            pieces.append((s, e))
            break
        cut = find_cut(text, s, e, max_size, natural_floor)
        ps, pe = trim(text, s, cut)
        if pe > ps:
            pieces.append((ps, pe))
        s = skip_whitespace(text, cut, e)
    return pieces


def paragraph_ranges(text: str, start: int = 0, end: int | None = None) -> Iterator[tuple[int, int]]:
    """Yield trimmed ranges separated by blank lines."""
    end = len(text) if end is None else end
    pos = start
    for match in _PARAGRAPH_BREAK_RE.finditer(text, start, end):
        s, e = trim(text, pos, match.start())
        if e > s:
            yield s, e
        pos = match.end()
    s, e = trim(text, pos, end)
    if e > s:
        yield s, e


def sentence_ranges(text: str, start: int, end: int) -> Iterator[tuple[int, int]]:
    """Yield trimmed sentence ranges within ``text[start:end]``."""
    pos = start
    for match in _SENTENCE_END_RE.finditer(text, start, end):
        s, e = trim(text, pos, match.end())
        if e > s:
            yield s, e
        pos = match.end()
    s, e = trim(text, pos, end)
    if e > s:
        yield s, e


def natural_floor(options: ChunkingOptions, ratio: float) -> int:
    return max(1, int(options.max_chunk_size * ratio))


# ---------------------------------------------------------------------------
# Tail policy
# ---------------------------------------------------------------------------


def merge_tail(text: str, spans: list[Span], options: ChunkingOptions) -> list[Span]:
    """Fold an undersized final span into its predecessor."""
    if len(spans) < 2 or spans[-1].length >= options.min_chunk_size:
        return spans
    prev, last = spans[-2], spans[-1]
    combined = last.end - prev.start
    if combined <= options.max_chunk_size:
        merged = replace(prev, end=last.end, atomic=prev.atomic or last.atomic)
        return spans[:-2] + [merged]
    if prev.atomic or last.atomic:
        # An atomic block cannot be cut to make room; keep both as emitted.
        return spans

    floor = combined - options.max_chunk_size
    window = max(floor, min(options.max_chunk_size, combined - options.min_chunk_size))
    cut = find_cut(text, prev.start, last.end, window, natural_floor=floor, hard_floor=floor)
    left = trim(text, prev.start, cut)
    right = trim(text, cut, last.end)
    if left[1] <= left[0] or right[1] <= right[0]:
        return spans
    return spans[:-2] + [replace(prev, start=left[0], end=left[1]), replace(last, start=right[0], end=right[1])]


def rebalance_tail(left_own: str, right_own: str, options: ChunkingOptions) -> tuple[str, ...]:
    """String form of :func:`merge_tail` used by the streaming path.

    ``left_own``/``right_own`` are the texts each chunk contributes beyond its
    overlap prefix (``right_own`` starts with the whitespace gap). Returns one
    merged text or a rebalanced ``(left, right)`` pair.
    """
    merged = left_own + right_own
    if len(merged.strip()) <= options.max_chunk_size:
        return (merged,)
    start = len(merged) - len(merged.lstrip())
    total = len(merged) - start
    floor = max(1, total - options.max_chunk_size)
    window = max(floor, min(options.max_chunk_size, total - options.min_chunk_size))
    cut = find_cut(merged, start, len(merged), window, natural_floor=floor, hard_floor=floor)
    left = merged[:cut].rstrip()
    right = merged[len(left) :]
    if not left.strip() or not right.strip():
        return (left_own, right_own)
    return (left, right)


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def make_chunk(
    index: int,
    prev_content: str | None,
    own: str,
    own_start: int,
    options: ChunkingOptions,
    heading_path: tuple[str, ...] = (),
    kind: SectionKind = SectionKind.TEXT,
) -> Chunk:
    """Build one chunk from the text it owns plus an overlap prefix.

    ``own`` is the source slice from the previous chunk's end to this chunk's
    end (leading whitespace gap included); ``own_start`` is its offset.
    """
    end = own_start + len(own.rstrip())
    own = own.rstrip()
    overlap = 0
    if prev_content and options.overlap_size > 0:
        room = options.max_chunk_size + options.overlap_size - len(own)
        overlap = max(0, min(options.overlap_size, len(prev_content), room))
    if overlap == 0:
        lead = len(own) - len(own.lstrip())
        return Chunk(
            index=index,
            content=own[lead:],
            start_position=own_start + lead,
            end_position=end,
            heading_path=heading_path,
            kind=kind,
        )
    return Chunk(
        index=index,
        content=prev_content[-overlap:] + own,
        start_position=own_start - overlap,
        end_position=end,
        heading_path=heading_path,
        kind=kind,
        overlap_length=overlap,
    )


def assemble(text: str, spans: list[Span], options: ChunkingOptions) -> list[Chunk]:
    chunks: list[Chunk] = []
    prev: Chunk | None = None
    for index, span in enumerate(spans):
        own_start = prev.end_position if prev is not None else span.start
        chunk = make_chunk(
            index,
            prev.content if prev is not None else None,
            text[own_start : span.end],
            own_start,
            options,
            heading_path=span.heading_path,
            kind=span.kind,
        )
        chunks.append(chunk)
        prev = chunk
    return chunks
