"""
Chunking strategies, the strategy factory and auto-selection.
"""

from .base import BaseChunkingStrategy
from .dom_structure import DomStructureChunkingStrategy
from .factory import (
    ChunkingStrategyFactory,
    StrategyBuild,
    StrategyInfo,
    StrategySelection,
    available_strategies,
)
from .fixed_size import FixedSizeChunkingStrategy
from .memory_optimized import MemoryOptimizedChunkingStrategy, StreamStats
from .paragraph import ParagraphChunkingStrategy
from .selector import Recommendation, StrategySelector, map_hint
from .semantic import SemanticChunkingStrategy
from .smart import SmartChunkingStrategy

__all__ = [
    "BaseChunkingStrategy",
    "ChunkingStrategyFactory",
    "DomStructureChunkingStrategy",
    "FixedSizeChunkingStrategy",
    "MemoryOptimizedChunkingStrategy",
    "ParagraphChunkingStrategy",
    "Recommendation",
    "SemanticChunkingStrategy",
    "SmartChunkingStrategy",
    "StrategyBuild",
    "StrategyInfo",
    "StrategySelection",
    "StrategySelector",
    "StreamStats",
    "available_strategies",
    "map_hint",
]
