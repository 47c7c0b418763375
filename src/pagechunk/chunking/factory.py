"""
Factory for the chunking strategies.

Explicit names are resolved case-insensitively. Anything that cannot be
built (unknown name, Semantic without an embedding provider) falls back to
Paragraph with a note instead of failing the call.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Mapping

import structlog

from pagechunk.chunking.base import BaseChunkingStrategy
from pagechunk.chunking.dom_structure import DomStructureChunkingStrategy
from pagechunk.chunking.fixed_size import FixedSizeChunkingStrategy
from pagechunk.chunking.memory_optimized import MemoryOptimizedChunkingStrategy
from pagechunk.chunking.paragraph import ParagraphChunkingStrategy
from pagechunk.chunking.selector import Recommendation, StrategySelector
from pagechunk.chunking.semantic import SemanticChunkingStrategy
from pagechunk.chunking.smart import SmartChunkingStrategy
from pagechunk.config.config import ChunkingConfig, SelectionConfig
from pagechunk.exceptions import ContractViolationError, StrategyUnavailableError
from pagechunk.protocols import (
    ChunkingOptions,
    EmbeddingProvider,
    ExtractedContent,
    SiteHint,
    SiteHintProvider,
    StrategyName,
)
from pagechunk.quality.evaluator import ContentQualityEvaluator

logger = structlog.get_logger(__name__)


@dataclass(slots=True, frozen=True)
class StrategyInfo:
    name: str
    description: str
    requires_embeddings: bool = False
    preserves_structure: bool = False
    supports_streaming: bool = False


_STRATEGY_INFO: Mapping[StrategyName, StrategyInfo] = MappingProxyType(
    {
        StrategyName.FIXED_SIZE: StrategyInfo(
            StrategyName.FIXED_SIZE.value, FixedSizeChunkingStrategy.description
        ),
        StrategyName.PARAGRAPH: StrategyInfo(
            StrategyName.PARAGRAPH.value, ParagraphChunkingStrategy.description
        ),
        StrategyName.SMART: StrategyInfo(
            StrategyName.SMART.value, SmartChunkingStrategy.description, preserves_structure=True
        ),
        StrategyName.SEMANTIC: StrategyInfo(
            StrategyName.SEMANTIC.value, SemanticChunkingStrategy.description, requires_embeddings=True
        ),
        StrategyName.MEMORY_OPTIMIZED: StrategyInfo(
            StrategyName.MEMORY_OPTIMIZED.value, MemoryOptimizedChunkingStrategy.description, supports_streaming=True
        ),
        StrategyName.DOM_STRUCTURE: StrategyInfo(
            StrategyName.DOM_STRUCTURE.value, DomStructureChunkingStrategy.description, preserves_structure=True
        ),
    }
)


def available_strategies() -> list[StrategyInfo]:
    """Describe every concrete strategy, in declaration order."""
    return list(_STRATEGY_INFO.values())


@dataclass(slots=True, frozen=True)
class StrategyBuild:
    """Outcome of building one strategy: either the instance or the reason it failed."""

    requested: str
    strategy: BaseChunkingStrategy | None = None
    error: StrategyUnavailableError | None = None

    @property
    def ok(self) -> bool:
        return self.strategy is not None


@dataclass(slots=True, frozen=True)
class StrategySelection:
    strategy: BaseChunkingStrategy
    requested: str
    reason: str
    confidence: float = 1.0
    notes: tuple[str, ...] = ()
    hint: SiteHint | None = None

    @property
    def fell_back(self) -> bool:
        return bool(self.notes)


class ChunkingStrategyFactory:
    """Builds strategies by name and picks one for ``Auto`` requests."""

    def __init__(
        self,
        config: ChunkingConfig | None = None,
        selection: SelectionConfig | None = None,
        embedding_provider: EmbeddingProvider | None = None,
        hint_provider: SiteHintProvider | None = None,
        evaluator: ContentQualityEvaluator | None = None,
    ) -> None:
        self.config = config or ChunkingConfig()
        self.embedding_provider = embedding_provider
        self.selector = StrategySelector(
            selection,
            evaluator,
            hint_provider,
            semantic_available=embedding_provider is not None,
        )
        self._constructors: Mapping[StrategyName, Callable[[], BaseChunkingStrategy]] = MappingProxyType(
            {
                StrategyName.FIXED_SIZE: lambda: FixedSizeChunkingStrategy(self.config),
                StrategyName.PARAGRAPH: lambda: ParagraphChunkingStrategy(self.config),
                StrategyName.SMART: lambda: SmartChunkingStrategy(self.config),
                StrategyName.SEMANTIC: lambda: SemanticChunkingStrategy(self.embedding_provider, self.config),
                StrategyName.MEMORY_OPTIMIZED: lambda: MemoryOptimizedChunkingStrategy(self.config),
                StrategyName.DOM_STRUCTURE: lambda: DomStructureChunkingStrategy(self.config),
            }
        )
        self.logger = logger.bind(component="strategy_factory")

    def try_create(self, name: str | StrategyName | None) -> StrategyBuild:
        requested = name.value if isinstance(name, StrategyName) else (name or "")
        strategy = StrategyName.lookup(requested)
        if strategy is None or strategy is StrategyName.AUTO:
            error = StrategyUnavailableError(requested or "<empty>", "unknown strategy name")
            return StrategyBuild(requested, error=error)
        try:
            return StrategyBuild(requested, strategy=self._constructors[strategy]())
        except StrategyUnavailableError as e:
            return StrategyBuild(requested, error=e)

    def create_strategy(self, name: str | StrategyName | None) -> BaseChunkingStrategy:
        """Build a strategy by name, falling back to Paragraph when it cannot be built."""
        build = self.try_create(name)
        if build.ok:
            return build.strategy
        self.logger.warning(
            "strategy unavailable, using Paragraph", requested=build.error.strategy, reason=build.error.reason
        )
        return self._constructors[StrategyName.PARAGRAPH]()

    async def recommend_strategy(self, content: ExtractedContent, options: ChunkingOptions | None = None) -> str:
        return (await self.recommend(content, options)).strategy.value

    async def recommend(self, content: ExtractedContent, options: ChunkingOptions | None = None) -> Recommendation:
        if content is None:
            raise ContractViolationError("content must not be None")
        recommendation = await self.selector.recommend(content, options)
        self.logger.debug(
            "strategy recommended",
            url=content.url,
            strategy=recommendation.strategy.value,
            reason=recommendation.reason,
        )
        return recommendation

    async def create_optimal_strategy(self, content: ExtractedContent, options: ChunkingOptions) -> StrategySelection:
        """Resolve ``options.strategy_name`` (or ``Auto``) into a ready strategy."""
        if options is None:
            raise ContractViolationError("options must not be None")

        hint = None
        if options.is_auto:
            recommendation = await self.recommend(content, options)
            requested = StrategyName.AUTO.value
            build = self.try_create(recommendation.strategy)
            reason, confidence, hint = recommendation.reason, recommendation.confidence, recommendation.hint
        else:
            requested = options.strategy_name
            build = self.try_create(requested)
            reason, confidence = "explicitly requested", 1.0

        if build.ok:
            return StrategySelection(build.strategy, requested, reason, confidence, hint=hint)

        note = f"{build.error.strategy} unavailable ({build.error.reason}); fell back to Paragraph"
        self.logger.warning("falling back to Paragraph", requested=build.error.strategy, reason=build.error.reason)
        return StrategySelection(
            self._constructors[StrategyName.PARAGRAPH](),
            requested,
            f"fallback: {build.error.reason}",
            0.5,
            notes=(note,),
            hint=hint,
        )
