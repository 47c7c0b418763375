"""
Embedding-boundary chunking.

Sentences are grouped into small candidate windows, every window is embedded
through the injected provider, and the text is cut where the cosine
similarity of neighbouring windows drops to a local minimum below the
threshold.
"""

from __future__ import annotations

import asyncio
import re
from typing import Sequence

import numpy as np

from pagechunk.cancellation import CancellationToken, check
from pagechunk.chunking.base import BaseChunkingStrategy
from pagechunk.chunking.spans import Span, paragraph_ranges, sentence_ranges, split_region
from pagechunk.config.config import ChunkingConfig
from pagechunk.exceptions import ChunkingCancelledError, EmbeddingProviderError, StrategyUnavailableError
from pagechunk.protocols import ChunkingOptions, EmbeddingProvider, ExtractedContent, StrategyName

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def jaccard_similarity(a: str, b: str) -> float:
    words_a = set(_TOKEN_RE.findall(a.lower()))
    words_b = set(_TOKEN_RE.findall(b.lower()))
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / len(words_a | words_b)


def adjacent_similarities(vectors: np.ndarray, texts: Sequence[str]) -> np.ndarray:
    """Cosine similarity of each window with the next one.

    Pairs involving a zero vector fall back to word-set Jaccard similarity.
    """
    if len(vectors) < 2:
        return np.zeros(0, dtype=np.float32)
    norms = np.linalg.norm(vectors, axis=1)
    left, right = vectors[:-1], vectors[1:]
    denom = norms[:-1] * norms[1:]
    dots = np.einsum("ij,ij->i", left, right)
    sims = np.divide(dots, denom, out=np.zeros_like(dots), where=denom > 0)
    for i in np.flatnonzero(denom == 0):
        sims[i] = jaccard_similarity(texts[i], texts[i + 1])
    return sims.astype(np.float32)


def local_minima_cuts(similarities: np.ndarray, threshold: float) -> list[int]:
    """Indices ``i`` where the boundary after window ``i`` should be cut."""
    cuts = []
    last = len(similarities) - 1
    for i, value in enumerate(similarities):
        if value >= threshold:
            continue
        if i > 0 and value > similarities[i - 1]:
            continue
        if i < last and value > similarities[i + 1]:
            continue
        cuts.append(i)
    return cuts


class SemanticChunkingStrategy(BaseChunkingStrategy):
    """Cuts at topic shifts detected by an external embedding provider."""

    strategy = StrategyName.SEMANTIC
    description = "Cuts at embedding-similarity minima; needs an embedding provider."

    def __init__(self, embedding_provider: EmbeddingProvider | None, config: ChunkingConfig | None = None) -> None:
        if embedding_provider is None:
            raise StrategyUnavailableError(StrategyName.SEMANTIC.value, "no embedding provider configured")
        super().__init__(config)
        self.embedding_provider = embedding_provider

    async def _split(
        self,
        content: ExtractedContent,
        options: ChunkingOptions,
        cancel: CancellationToken | None,
        notes: list[str],
    ) -> list[Span]:
        text = content.main_text
        floor = self._floor(options)
        units = await asyncio.to_thread(self._sentence_units, text, options, floor, cancel)
        windows = [units[i : i + options.semantic_window] for i in range(0, len(units), options.semantic_window)]
        if len(windows) < 2:
            return self._pack(units, options)

        window_texts = [text[w[0].start : w[-1].end] for w in windows]
        vectors = await self._embed(window_texts, options, cancel)
        similarities = adjacent_similarities(vectors, window_texts)
        cuts = set(local_minima_cuts(similarities, options.semantic_threshold))
        notes.append(f"{len(cuts)} semantic boundaries across {len(windows)} windows")

        segments: list[list[Span]] = [[]]
        for i, window in enumerate(windows):
            segments[-1].extend(window)
            if i in cuts:
                segments.append([])
        spans: list[Span] = []
        for segment in segments:
            if segment:
                spans.extend(self._pack(segment, options))
        return self._join_small(spans, options)

    # ------------------------------------------------------------------

    @staticmethod
    def _sentence_units(
        text: str, options: ChunkingOptions, floor: int, cancel: CancellationToken | None
    ) -> list[Span]:
        units: list[Span] = []
        for p_start, p_end in paragraph_ranges(text):
            check(cancel)
            for s, e in sentence_ranges(text, p_start, p_end):
                if e - s <= options.max_chunk_size:
                    units.append(Span(s, e))
                else:
                    units.extend(Span(ps, pe) for ps, pe in split_region(text, s, e, options.max_chunk_size, floor))
        return units

    async def _embed(self, texts: list[str], options: ChunkingOptions, cancel: CancellationToken | None) -> np.ndarray:
        vectors: list[Sequence[float]] = []
        batch_size = options.embedding_batch_size
        for i in range(0, len(texts), batch_size):
            check(cancel)
            batch = texts[i : i + batch_size]
            try:
                result = await self.embedding_provider.embed(batch)
            except (asyncio.CancelledError, ChunkingCancelledError):
                raise
            except Exception as e:
                self.logger.warning("embedding provider failed", error=str(e), batch=len(batch))
                raise EmbeddingProviderError(str(e)) from e
            if result is None or len(result) != len(batch):
                raise EmbeddingProviderError(
                    f"expected {len(batch)} vectors, got {0 if result is None else len(result)}"
                )
            vectors.extend(result)
        check(cancel)
        try:
            matrix = np.asarray(vectors, dtype=np.float32)
        except (TypeError, ValueError) as e:
            raise EmbeddingProviderError(f"malformed vectors: {e}") from e
        if matrix.ndim != 2:
            raise EmbeddingProviderError("vectors must all have the same dimension")
        return matrix

    @staticmethod
    def _pack(units: list[Span], options: ChunkingOptions) -> list[Span]:
        """Join consecutive units greedily up to ``max_chunk_size``."""
        spans: list[Span] = []
        current: Span | None = None
        for unit in units:
            if current is not None and unit.end - current.start <= options.max_chunk_size:
                current = Span(current.start, unit.end)
            else:
                if current is not None:
                    spans.append(current)
                current = unit
        if current is not None:
            spans.append(current)
        return spans

    @staticmethod
    def _join_small(spans: list[Span], options: ChunkingOptions) -> list[Span]:
        joined: list[Span] = []
        for span in spans:
            if (
                joined
                and joined[-1].length < options.min_chunk_size
                and span.end - joined[-1].start <= options.max_chunk_size
            ):
                joined[-1] = Span(joined[-1].start, span.end)
            else:
                joined.append(span)
        return joined
