"""
The content pipeline: clean, extract, evaluate and chunk one page.

:class:`ContentPipeline` wires the density filter, the structure extractor,
the quality evaluator and the strategy factory together. Every step is
also usable on its own.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace

import structlog
from structlog.contextvars import bound_contextvars

from pagechunk.cancellation import CancellationToken, check
from pagechunk.chunking.factory import ChunkingStrategyFactory
from pagechunk.config.config import Config
from pagechunk.exceptions import ContractViolationError, StrategyUnavailableError
from pagechunk.extractor.density_filter import DensityFilter
from pagechunk.extractor.structure import StructureExtractor, extract_title
from pagechunk.observability.metrics import increment, observe
from pagechunk.protocols import (
    ChunkingOptions,
    ChunkResult,
    CleaningOptions,
    EmbeddingProvider,
    ExtractedContent,
    QualityInfo,
    SiteHint,
    SiteHintProvider,
    StrategyName,
)
from pagechunk.quality.evaluator import ContentQualityEvaluator

logger = structlog.get_logger(__name__)


@dataclass(slots=True, frozen=True)
class ProcessedDocument:
    """Everything :meth:`ContentPipeline.process` learns about one page."""

    content: ExtractedContent
    quality: QualityInfo
    result: ChunkResult
    cleaned_html: str


class ContentPipeline:
    """
    Turns raw HTML into retrieval-ready chunks.

    The pipeline holds configuration and collaborators only; it keeps no
    per-document state and can be shared across concurrent tasks.
    """

    def __init__(
        self,
        config: Config | None = None,
        embedding_provider: EmbeddingProvider | None = None,
        hint_provider: SiteHintProvider | None = None,
    ) -> None:
        self.config = config if config is not None else Config()
        metrics_enabled = self.config.monitoring.metrics_enabled
        self.density_filter = DensityFilter(self.config.cleaning, metrics_enabled=metrics_enabled)
        self.extractor = StructureExtractor(self.config.cleaning.parser)
        self.evaluator = ContentQualityEvaluator(self.config.quality, metrics_enabled=metrics_enabled)
        self.factory = ChunkingStrategyFactory(
            self.config.chunking,
            self.config.selection,
            embedding_provider=embedding_provider,
            hint_provider=hint_provider,
            evaluator=self.evaluator,
        )
        self.logger = logger.bind(component="pipeline")

    def default_options(self, strategy_name: str | StrategyName = StrategyName.AUTO) -> ChunkingOptions:
        """Chunking options seeded from the configured defaults."""
        chunking = self.config.chunking
        return ChunkingOptions(
            strategy_name=strategy_name,
            max_chunk_size=chunking.max_chunk_size,
            min_chunk_size=chunking.min_chunk_size,
            overlap_size=chunking.overlap_size,
            semantic_threshold=chunking.semantic_threshold,
            semantic_window=chunking.semantic_window,
            embedding_batch_size=chunking.embedding_batch_size,
        )

    # ------------------------------------------------------------------
    # Individual steps
    # ------------------------------------------------------------------

    def clean(self, html: str, source_url: str | None = None, options: CleaningOptions | None = None) -> str:
        return self.density_filter.clean(html, source_url, options)

    def extract(
        self, cleaned_html: str, source_url: str | None = None, title: str | None = None
    ) -> ExtractedContent:
        return self.extractor.extract(cleaned_html, source_url, title)

    def evaluate(self, content: ExtractedContent, raw_html: str | None = None) -> QualityInfo:
        return self.evaluator.evaluate(content, raw_html)

    async def recommend_strategy(self, content: ExtractedContent, options: ChunkingOptions | None = None) -> str:
        return await self.factory.recommend_strategy(content, options)

    async def chunk(
        self,
        content: ExtractedContent,
        options: ChunkingOptions | None = None,
        cancel: CancellationToken | None = None,
    ) -> ChunkResult:
        """
        Chunk ``content`` with the requested strategy, or the recommended one
        when ``options.strategy_name`` is ``Auto``.

        A strategy that cannot run (unknown name, Semantic without a working
        embedding provider) is replaced by Paragraph and the substitution is
        recorded in ``processing_notes``. Cancellation and invalid input are
        never masked.
        """
        if content is None:
            raise ContractViolationError("content must not be None")
        options = options if options is not None else self.default_options()
        check(cancel)

        started = time.perf_counter()
        with bound_contextvars(document_url=content.url):
            selection = await self.factory.create_optimal_strategy(content, options)
            notes = list(selection.notes)
            if options.is_auto and selection.hint is not None:
                options = self._apply_hint(options, selection.hint, notes)

            strategy = selection.strategy
            try:
                result = await strategy.chunk(content, options, cancel)
            except StrategyUnavailableError as e:
                self.logger.warning("strategy failed, retrying with Paragraph", strategy=strategy.name, reason=e.reason)
                self._record("strategy_fallbacks", {"requested": strategy.name})
                notes.append(f"{strategy.name} unavailable ({e.reason}); fell back to Paragraph")
                strategy = self.factory.create_strategy(StrategyName.PARAGRAPH)
                result = await strategy.chunk(content, options, cancel)

            if selection.fell_back:
                self._record("strategy_fallbacks", {"requested": selection.requested})
            elapsed = time.perf_counter() - started
            self._record("strategy_selections", {"strategy": result.strategy_used})
            self._record("chunks_produced", {"strategy": result.strategy_used}, result.chunk_count)
            if self.config.monitoring.metrics_enabled:
                observe("chunking_duration_seconds", elapsed, {"strategy": result.strategy_used})

            self.logger.info(
                "document chunked",
                strategy=result.strategy_used,
                requested=selection.requested,
                chunks=result.chunk_count,
                elapsed_ms=round(elapsed * 1000.0, 2),
            )
            return replace(
                result,
                processing_time_ms=elapsed * 1000.0,
                processing_notes=tuple(notes) + result.processing_notes,
                requested_strategy=selection.requested,
                selection_reason=selection.reason,
            )

    async def process(
        self,
        html: str,
        source_url: str | None = None,
        cleaning_options: CleaningOptions | None = None,
        chunking_options: ChunkingOptions | None = None,
        cancel: CancellationToken | None = None,
    ) -> ProcessedDocument:
        """Run every step on one raw page."""
        with bound_contextvars(document_url=source_url):
            check(cancel)
            title = extract_title(html or "")
            cleaned = await self.density_filter.clean_async(html, source_url, cleaning_options)
            check(cancel)
            content = await self.extractor.extract_async(cleaned, source_url, title)
            content = replace(content, raw_length=len(html or ""))
            quality = await self.evaluator.evaluate_async(content, html)
            result = await self.chunk(content, chunking_options, cancel)
        return ProcessedDocument(content=content, quality=quality, result=result, cleaned_html=cleaned)

    # ------------------------------------------------------------------

    def _apply_hint(self, options: ChunkingOptions, hint: SiteHint, notes: list[str]) -> ChunkingOptions:
        changes = {}
        if hint.max_chunk_size:
            changes["max_chunk_size"] = hint.max_chunk_size
        if hint.min_chunk_size:
            changes["min_chunk_size"] = hint.min_chunk_size
        if not changes:
            return options
        try:
            hinted = replace(options, **changes)
        except ContractViolationError as e:
            self.logger.warning("ignoring site hint sizes", error=str(e))
            notes.append("site hint sizes ignored: invalid for current options")
            return options
        notes.append(f"site hint sizes applied (max={hinted.max_chunk_size}, min={hinted.min_chunk_size})")
        return hinted

    def _record(self, name: str, labels: dict[str, str], value: float = 1.0) -> None:
        if self.config.monitoring.metrics_enabled:
            increment(name, value, labels)
