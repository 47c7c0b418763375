"""
Bounded-memory chunking for very large documents.

Below ``streaming_threshold`` characters the strategy behaves exactly like
Paragraph ("standard mode"). Above it the text is consumed in fixed windows
through a sliding buffer that never holds much more than one chunk plus one
window ("streaming mode"). Chunks are built directly from the buffer; the
only state carried between chunks is the overlap seed taken from the tail
of the previous chunk.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, replace
from typing import AsyncIterator, Iterator, TextIO

from pagechunk.cancellation import CancellationToken, check
from pagechunk.chunking.base import BaseChunkingStrategy
from pagechunk.chunking.paragraph import paragraph_spans
from pagechunk.chunking.spans import Span, find_cut, make_chunk, rebalance_tail
from pagechunk.exceptions import ContractViolationError
from pagechunk.observability.metrics import gauge
from pagechunk.protocols import Chunk, ChunkingOptions, ChunkResult, ExtractedContent, StrategyName

STANDARD_MODE = "standard mode"
STREAMING_MODE = "streaming mode engaged"


class WindowReader:
    """Reads fixed-size windows from a string or a text stream."""

    def __init__(self, source: str | TextIO, window: int) -> None:
        self._source = source
        self._window = window
        self._pos = 0

    def read(self) -> str:
        if isinstance(self._source, str):
            piece = self._source[self._pos : self._pos + self._window]
            self._pos += len(piece)
            return piece
        return self._source.read(self._window)


@dataclass(slots=True)
class StreamStats:
    peak_buffer: int = 0
    windows_read: int = 0


class MemoryOptimizedChunkingStrategy(BaseChunkingStrategy):
    strategy = StrategyName.MEMORY_OPTIMIZED
    description = "Paragraph chunking for normal inputs, bounded sliding-window streaming for huge ones."

    async def chunk(
        self,
        content: ExtractedContent,
        options: ChunkingOptions,
        cancel: CancellationToken | None = None,
    ) -> ChunkResult:
        self._validate(content, options)
        check(cancel)
        text = content.main_text
        if len(text) <= self.config.streaming_threshold:
            result = await super().chunk(content, options, cancel)
            return replace(result, processing_notes=(STANDARD_MODE,) + result.processing_notes)

        started = time.perf_counter()
        stats = StreamStats()
        reader = WindowReader(text, self._window(options))
        chunks = await asyncio.to_thread(lambda: list(self._stream(reader, options, cancel, stats)))
        check(cancel)
        gauge("streaming_peak_buffer", stats.peak_buffer)
        notes = [STREAMING_MODE, f"peak buffer {stats.peak_buffer} chars over {stats.windows_read} windows"]
        return self._result(chunks, started, notes, content)

    async def stream(
        self,
        source: str | TextIO,
        options: ChunkingOptions,
        cancel: CancellationToken | None = None,
        stats: StreamStats | None = None,
    ) -> AsyncIterator[Chunk]:
        """Yield chunks from a text stream without reading it whole."""
        if source is None or options is None:
            raise ContractViolationError("source and options must not be None")
        reader = WindowReader(source, self._window(options))
        for chunk in self._stream(reader, options, cancel, stats or StreamStats()):
            yield chunk
            await asyncio.sleep(0)

    def _spans(
        self,
        content: ExtractedContent,
        options: ChunkingOptions,
        cancel: CancellationToken | None,
        notes: list[str],
    ) -> list[Span]:
        return paragraph_spans(content.main_text, options, self._floor(options), cancel)

    def _window(self, options: ChunkingOptions) -> int:
        return max(1, min(self.config.streaming_window, options.max_chunk_size))

    # ------------------------------------------------------------------
    # Streaming core
    # ------------------------------------------------------------------

    def _stream(
        self,
        reader: WindowReader,
        options: ChunkingOptions,
        cancel: CancellationToken | None,
        stats: StreamStats,
    ) -> Iterator[Chunk]:
        max_size = options.max_chunk_size
        floor = self._floor(options)
        # buffer always starts where the previous chunk ended
        buffer = ""
        buffer_start = 0
        seed: str | None = None
        held: list[tuple[Chunk, str]] = []
        index = 0
        eof = False

        while True:
            while not eof and len(buffer.lstrip()) <= max_size:
                check(cancel)
                window = reader.read()
                if not window:
                    eof = True
                    break
                stats.windows_read += 1
                buffer += window
                stats.peak_buffer = max(stats.peak_buffer, len(buffer))
                if buffer.isspace():
                    # A whitespace run wider than a window: drop it and restart overlap.
                    buffer_start += len(buffer)
                    buffer = ""
                    seed = None

            lead = len(buffer) - len(buffer.lstrip())
            if lead == len(buffer):
                break

            if eof and len(buffer) - lead <= max_size:
                cut = len(buffer)
            else:
                cut = find_cut(buffer, lead, len(buffer), max_size, floor)
            piece_end = len(buffer[:cut].rstrip())
            own = buffer[:piece_end]

            chunk = make_chunk(index, seed, own, buffer_start, options)
            index += 1
            held.append((chunk, own))
            if len(held) > 2:
                yield held.pop(0)[0]

            seed = chunk.content[-options.overlap_size :] if options.overlap_size else None
            buffer = buffer[piece_end:]
            buffer_start += piece_end
            if eof and not buffer.strip():
                break

        yield from self._settle_tail(held, options)

    @staticmethod
    def _settle_tail(held: list[tuple[Chunk, str]], options: ChunkingOptions) -> list[Chunk]:
        if len(held) < 2:
            return [chunk for chunk, _ in held]
        (first, first_own), (last, last_own) = held
        contiguous = first.end_position + len(last_own) == last.end_position
        if len(last_own.strip()) >= options.min_chunk_size or not contiguous:
            return [first, last]

        prefix = first.content[: first.overlap_length] or None
        position = first.end_position - len(first_own)
        rebuilt: list[Chunk] = []
        for offset, own in enumerate(rebalance_tail(first_own, last_own, options)):
            chunk = make_chunk(first.index + offset, prefix, own, position, options)
            rebuilt.append(chunk)
            prefix = chunk.content
            position += len(own)
        return rebuilt
