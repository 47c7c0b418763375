"""
PageChunk - HTML cleaning, structure extraction and chunking for retrieval.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .cancellation import CancellationToken
from .config import Config, settings
from .engine import ContentPipeline, ProcessedDocument
from .exceptions import (
    ChunkingCancelledError,
    ContractViolationError,
    EmbeddingProviderError,
    PageChunkError,
    StrategyUnavailableError,
)
from .protocols import (
    Chunk,
    ChunkingOptions,
    ChunkResult,
    CleaningOptions,
    ExtractedContent,
    QualityInfo,
    SiteHint,
    StrategyName,
)

__all__ = [
    "__version__",
    "CancellationToken",
    "Chunk",
    "ChunkResult",
    "ChunkingCancelledError",
    "ChunkingOptions",
    "CleaningOptions",
    "Config",
    "ContentPipeline",
    "ContractViolationError",
    "EmbeddingProviderError",
    "ExtractedContent",
    "PageChunkError",
    "ProcessedDocument",
    "QualityInfo",
    "SiteHint",
    "StrategyName",
    "StrategyUnavailableError",
    "settings",
]
