"""
Error taxonomy for PageChunk.

Degraded input (malformed HTML, blank text) never raises. Everything that
does reach the caller is one of the classes below.
"""

from __future__ import annotations


class PageChunkError(Exception):
    """Base class for all PageChunk errors."""

    pass


class ContractViolationError(PageChunkError, ValueError):
    """Raised when the caller passes null content or invalid options."""

    pass


class ChunkingCancelledError(PageChunkError):
    """Raised when a cancellation token fires mid-document."""

    pass


class StrategyUnavailableError(PageChunkError):
    """Raised when a strategy cannot run; the factory falls back to Paragraph."""

    def __init__(self, strategy: str, reason: str):
        super().__init__(f"{strategy} strategy unavailable: {reason}")
        self.strategy = strategy
        self.reason = reason


class EmbeddingProviderError(StrategyUnavailableError):
    """The embedding collaborator failed or returned malformed vectors."""

    def __init__(self, reason: str):
        super().__init__("Semantic", reason)
