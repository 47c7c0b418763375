"""
Base class for the six chunking strategies.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC
from typing import Any

import structlog

from pagechunk.cancellation import CancellationToken, check
from pagechunk.config.config import ChunkingConfig
from pagechunk.exceptions import ContractViolationError
from pagechunk.protocols import Chunk, ChunkingOptions, ChunkResult, ExtractedContent, StrategyName
from pagechunk.chunking.spans import Span, assemble, merge_tail, natural_floor

logger = structlog.get_logger(__name__)


class BaseChunkingStrategy(ABC):
    """
    Shared template for all strategies.

    Subclasses decide where to cut by implementing :meth:`_spans` (run on a
    worker thread) or, when they need to await a collaborator, by overriding
    :meth:`_split`. The base class applies the common edge policy: tail
    merging, overlap prefixing and index assignment.

    Instances hold configuration only, never per-call state, so one instance
    can serve concurrent calls.
    """

    strategy: StrategyName
    description: str = ""

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()
        self.logger = logger.bind(component="chunking", strategy=self.name)

    @property
    def name(self) -> str:
        return self.strategy.value

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    async def chunk(
        self,
        content: ExtractedContent,
        options: ChunkingOptions,
        cancel: CancellationToken | None = None,
    ) -> ChunkResult:
        self._validate(content, options)
        check(cancel)
        started = time.perf_counter()
        notes: list[str] = []

        if content.is_empty:
            return self._result((), started, ["empty content"], content)

        spans = await self._split(content, options, cancel, notes)
        check(cancel)
        chunks = self._finalize(content.main_text, spans, options)
        check(cancel)
        return self._result(chunks, started, notes, content)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    async def _split(
        self,
        content: ExtractedContent,
        options: ChunkingOptions,
        cancel: CancellationToken | None,
        notes: list[str],
    ) -> list[Span]:
        return await asyncio.to_thread(self._spans, content, options, cancel, notes)

    def _spans(
        self,
        content: ExtractedContent,
        options: ChunkingOptions,
        cancel: CancellationToken | None,
        notes: list[str],
    ) -> list[Span]:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(content: Any, options: Any) -> None:
        if content is None:
            raise ContractViolationError("content must not be None")
        if not isinstance(content, ExtractedContent):
            raise ContractViolationError(f"content must be ExtractedContent, got {type(content).__name__}")
        if options is None:
            raise ContractViolationError("options must not be None")

    def _floor(self, options: ChunkingOptions) -> int:
        return natural_floor(options, self.config.min_cut_ratio)

    @staticmethod
    def _finalize(text: str, spans: list[Span], options: ChunkingOptions) -> list[Chunk]:
        return assemble(text, merge_tail(text, spans, options), options)

    def _result(
        self,
        chunks: list[Chunk] | tuple[Chunk, ...],
        started: float,
        notes: list[str],
        content: ExtractedContent,
    ) -> ChunkResult:
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        self.logger.debug("chunked document", url=content.url, chunks=len(chunks), elapsed_ms=round(elapsed_ms, 2))
        return ChunkResult(
            chunks=tuple(chunks),
            strategy_used=self.name,
            processing_time_ms=elapsed_ms,
            processing_notes=tuple(notes),
            total_characters=len(content.main_text),
        )
