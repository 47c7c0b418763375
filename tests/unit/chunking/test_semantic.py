"""
Unit tests for embedding-boundary (Semantic) chunking.
"""

from __future__ import annotations

import numpy as np
import pytest
from pagechunk.cancellation import CancellationToken
from pagechunk.chunking.semantic import (
    SemanticChunkingStrategy,
    adjacent_similarities,
    jaccard_similarity,
    local_minima_cuts,
)
from pagechunk.exceptions import ChunkingCancelledError, EmbeddingProviderError, StrategyUnavailableError
from pagechunk.protocols import ChunkingOptions, ChunkingStrategy, ExtractedContent

CATS = "Cats like warm sunny windows."
DATABASES = "Databases store indexed rows."
TWO_TOPICS = " ".join([CATS] * 6 + [DATABASES] * 6)

OPTIONS = ChunkingOptions(
    max_chunk_size=400,
    min_chunk_size=20,
    overlap_size=0,
    semantic_window=2,
    semantic_threshold=0.7,
)


def plain(text: str) -> ExtractedContent:
    return ExtractedContent(url=None, title=None, main_text=text)


class CancellingEmbeddingProvider:
    """Fires the token while the first batch is in flight."""

    def __init__(self, token: CancellationToken) -> None:
        self.token = token

    async def embed(self, texts):
        self.token.cancel("caller went away")
        return [[1.0, 0.0] for _ in texts]


class ShortEmbeddingProvider:
    async def embed(self, texts):
        return [[1.0, 0.0]]


class TestSemanticStrategy:
    def test_requires_provider(self):
        with pytest.raises(StrategyUnavailableError) as exc_info:
            SemanticChunkingStrategy(None)
        assert exc_info.value.strategy == "Semantic"

    def test_satisfies_protocol(self, embedding_provider):
        assert isinstance(SemanticChunkingStrategy(embedding_provider), ChunkingStrategy)

    @pytest.mark.asyncio
    async def test_cuts_at_topic_shift(self, embedding_provider):
        result = await SemanticChunkingStrategy(embedding_provider).chunk(plain(TWO_TOPICS), OPTIONS)

        assert [c.content for c in result.chunks] == [
            " ".join([CATS] * 6),
            " ".join([DATABASES] * 6),
        ]
        assert "1 semantic boundaries across 6 windows" in result.processing_notes
        assert result.strategy_used == "Semantic"
        for chunk in result.chunks:
            assert TWO_TOPICS[chunk.start_position : chunk.end_position] == chunk.content

    @pytest.mark.asyncio
    async def test_embeds_in_batches(self, embedding_provider):
        options = ChunkingOptions(
            max_chunk_size=400, min_chunk_size=20, overlap_size=0, semantic_window=2, embedding_batch_size=4
        )
        await SemanticChunkingStrategy(embedding_provider).chunk(plain(TWO_TOPICS), options)
        assert embedding_provider.calls == [4, 2]

    @pytest.mark.asyncio
    async def test_single_window_skips_embedding(self, embedding_provider):
        result = await SemanticChunkingStrategy(embedding_provider).chunk(plain(CATS), OPTIONS)
        assert [c.content for c in result.chunks] == [CATS]
        assert embedding_provider.calls == []

    @pytest.mark.asyncio
    async def test_provider_failure_surfaces(self, failing_embedding_provider):
        strategy = SemanticChunkingStrategy(failing_embedding_provider)
        with pytest.raises(EmbeddingProviderError, match="unreachable"):
            await strategy.chunk(plain(TWO_TOPICS), OPTIONS)

    @pytest.mark.asyncio
    async def test_wrong_vector_count_is_provider_error(self):
        strategy = SemanticChunkingStrategy(ShortEmbeddingProvider())
        with pytest.raises(EmbeddingProviderError, match="expected"):
            await strategy.chunk(plain(TWO_TOPICS), OPTIONS)

    @pytest.mark.asyncio
    async def test_cancellation_between_batches(self):
        token = CancellationToken()
        strategy = SemanticChunkingStrategy(CancellingEmbeddingProvider(token))
        with pytest.raises(ChunkingCancelledError, match="caller went away"):
            await strategy.chunk(plain(TWO_TOPICS), OPTIONS, token)


class TestBoundaryHelpers:
    def test_local_minima_below_threshold(self):
        sims = np.array([1.0, 0.2, 0.5, 0.1, 0.9], dtype=np.float32)
        assert local_minima_cuts(sims, 0.7) == [1, 3]

    def test_no_cuts_above_threshold(self):
        sims = np.array([0.9, 0.8, 0.95], dtype=np.float32)
        assert local_minima_cuts(sims, 0.7) == []

    def test_zero_vectors_fall_back_to_jaccard(self):
        vectors = np.array([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0]], dtype=np.float32)
        sims = adjacent_similarities(vectors, ["a b", "a c", "x"])
        assert sims[0] == pytest.approx(1 / 3)
        assert sims[1] == pytest.approx(1.0)

    def test_single_vector_has_no_pairs(self):
        assert adjacent_similarities(np.ones((1, 3), dtype=np.float32), ["a"]).size == 0

    def test_jaccard(self):
        assert jaccard_similarity("The cat sat", "the cat ran") == pytest.approx(0.5)
        assert jaccard_similarity("", "words") == 0.0
