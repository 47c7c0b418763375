"""
Protocols and dataclasses shared by every PageChunk component.

The records defined here flow through the whole pipeline:

- raw HTML -> ``clean`` -> cleaned HTML
- cleaned HTML -> ``extract`` -> :class:`ExtractedContent`
- :class:`ExtractedContent` -> ``evaluate`` -> :class:`QualityInfo`
- :class:`ExtractedContent` -> ``chunk`` -> :class:`ChunkResult`

All records are immutable and created fresh per call. The injected
collaborators (embedding provider, site-hint provider) are described as
Protocols so that any object with the right shape can be passed in.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Optional, Protocol, Sequence, runtime_checkable

from pagechunk.exceptions import ContractViolationError

if TYPE_CHECKING:
    from pagechunk.cancellation import CancellationToken

# ============================================================================
# Enums
# ============================================================================


class StrategyName(str, Enum):
    """Known chunking strategies. ``AUTO`` asks the selector to pick one."""

    AUTO = "Auto"
    FIXED_SIZE = "FixedSize"
    PARAGRAPH = "Paragraph"
    SMART = "Smart"
    SEMANTIC = "Semantic"
    MEMORY_OPTIMIZED = "MemoryOptimized"
    DOM_STRUCTURE = "DomStructure"

    @classmethod
    def lookup(cls, name: str | None) -> Optional["StrategyName"]:
        """Case-insensitive lookup; returns None for unknown or empty names."""
        if not name:
            return None
        key = name.strip().lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        return None


class SectionKind(str, Enum):
    """Kind of a block of extracted content."""

    TEXT = "text"
    CODE = "code"
    TABLE = "table"
    LIST = "list"


class ContentGrade(str, Enum):
    """Coarse grade derived from the overall quality score."""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    VERY_POOR = "very_poor"

    @classmethod
    def from_score(cls, score: float) -> "ContentGrade":
        if score >= 0.8:
            return cls.EXCELLENT
        if score >= 0.6:
            return cls.GOOD
        if score >= 0.4:
            return cls.FAIR
        if score >= 0.2:
            return cls.POOR
        return cls.VERY_POOR


# ============================================================================
# Options
# ============================================================================


@dataclass(slots=True, frozen=True)
class CleaningOptions:
    """Options for the density filter."""

    only_main_content: bool = True
    keep_selectors: tuple[str, ...] = ()
    additional_remove_selectors: tuple[str, ...] = ()
    convert_relative_urls: bool = True
    optimize_srcset: bool = True

    def __post_init__(self) -> None:
        # Accept lists from callers but store tuples so the record stays hashable.
        object.__setattr__(self, "keep_selectors", tuple(self.keep_selectors or ()))
        object.__setattr__(self, "additional_remove_selectors", tuple(self.additional_remove_selectors or ()))


@dataclass(slots=True, frozen=True)
class ChunkingOptions:
    """Options for a single chunking call.

    Invariants: ``0 < min_chunk_size <= max_chunk_size`` and
    ``0 <= overlap_size < max_chunk_size``. Violations raise
    :class:`ContractViolationError` at construction time.
    """

    strategy_name: str = StrategyName.AUTO.value
    max_chunk_size: int = 1000
    min_chunk_size: int = 100
    overlap_size: int = 100
    minimize_memory_usage: bool = False
    semantic_threshold: float = 0.7
    semantic_window: int = 2
    embedding_batch_size: int = 32

    def __post_init__(self) -> None:
        if isinstance(self.strategy_name, StrategyName):
            object.__setattr__(self, "strategy_name", self.strategy_name.value)
        if self.min_chunk_size <= 0:
            raise ContractViolationError(f"min_chunk_size must be positive, got {self.min_chunk_size}")
        if self.min_chunk_size > self.max_chunk_size:
            raise ContractViolationError(
                f"min_chunk_size ({self.min_chunk_size}) must not exceed max_chunk_size ({self.max_chunk_size})"
            )
        if not (0 <= self.overlap_size < self.max_chunk_size):
            raise ContractViolationError(
                f"overlap_size must be in [0, max_chunk_size), got {self.overlap_size} for max {self.max_chunk_size}"
            )
        if not (0.0 <= self.semantic_threshold <= 1.0):
            raise ContractViolationError("semantic_threshold must be between 0.0 and 1.0")
        if self.semantic_window < 1 or self.embedding_batch_size < 1:
            raise ContractViolationError("semantic_window and embedding_batch_size must be at least 1")

    @property
    def is_auto(self) -> bool:
        name = (self.strategy_name or "").strip().lower()
        return name in ("", StrategyName.AUTO.value.lower())


# ============================================================================
# Extracted content
# ============================================================================


@dataclass(slots=True, frozen=True)
class Heading:
    text: str
    level: int


@dataclass(slots=True, frozen=True)
class Section:
    """A block of main text under a heading path.

    ``start``/``end`` are offsets into :attr:`ExtractedContent.main_text`. A
    heading line belongs to the first section rendered beneath it.
    """

    heading_path: tuple[str, ...]
    level: int
    text: str
    kind: SectionKind = SectionKind.TEXT
    start: int = 0
    end: int = 0

    @property
    def is_atomic(self) -> bool:
        return self.kind in (SectionKind.CODE, SectionKind.TABLE)


@dataclass(slots=True, frozen=True)
class ExtractedContent:
    """Flat record produced by the structure extractor."""

    url: str | None
    title: str | None
    main_text: str
    headings: tuple[Heading, ...] = ()
    sections: tuple[Section, ...] = ()
    image_refs: tuple[str, ...] = ()
    raw_length: int = 0

    def __post_init__(self) -> None:
        if self.main_text is None:
            raise ContractViolationError("main_text must not be None")
        object.__setattr__(self, "headings", tuple(self.headings))
        object.__setattr__(self, "sections", self._anchor_sections(tuple(self.sections)))
        object.__setattr__(self, "image_refs", tuple(self.image_refs))

    def _anchor_sections(self, sections: tuple[Section, ...]) -> tuple[Section, ...]:
        """Fill in missing offsets by locating each section's text in order.

        Sections built by hand often carry only their text. Chunkers slice
        ``main_text`` by offset, so a section without a valid range is found
        after the previous one; text that is not in ``main_text`` is rejected.
        """
        text_length = len(self.main_text)
        anchored: list[Section] = []
        cursor = 0
        for section in sections:
            if not section.text.strip() or 0 <= section.start < section.end <= text_length:
                anchored.append(section)
                cursor = max(cursor, section.end)
                continue
            found = self.main_text.find(section.text, cursor)
            if found < 0:
                found = self.main_text.find(section.text)
            if found < 0:
                raise ContractViolationError(
                    f"section {'/'.join(section.heading_path) or '<root>'} has no offsets "
                    "and its text does not occur in main_text"
                )
            end = found + len(section.text)
            anchored.append(replace(section, start=found, end=end))
            cursor = end
        return tuple(anchored)

    @property
    def is_empty(self) -> bool:
        return not self.main_text.strip()

    @classmethod
    def from_text(cls, text: str, url: str | None = None, title: str | None = None) -> "ExtractedContent":
        """Build a record from plain or Markdown-like text."""
        from pagechunk.extractor.structure import build_from_text

        return build_from_text(text, url=url, title=title)


# ============================================================================
# Chunk results
# ============================================================================


@dataclass(slots=True, frozen=True)
class Chunk:
    index: int
    content: str
    start_position: int
    end_position: int
    heading_path: tuple[str, ...] = ()
    kind: SectionKind = SectionKind.TEXT
    overlap_length: int = 0
    quality_score: float | None = None

    def __post_init__(self) -> None:
        if self.end_position <= self.start_position:
            raise ValueError("end_position must be greater than start_position")
        if not self.content.strip():
            raise ValueError("Chunk content must not be blank")
        if self.quality_score is not None and not (0.0 <= self.quality_score <= 1.0):
            raise ValueError("quality_score must be between 0.0 and 1.0")

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(slots=True, frozen=True)
class ChunkResult:
    chunks: tuple[Chunk, ...]
    strategy_used: str
    processing_time_ms: float = 0.0
    processing_notes: tuple[str, ...] = ()
    requested_strategy: str | None = None
    selection_reason: str | None = None
    total_characters: int = 0

    @property
    def chunk_count(self) -> int:
        return len(self.chunks)

    @property
    def average_chunk_size(self) -> float:
        if not self.chunks:
            return 0.0
        return sum(c.size for c in self.chunks) / len(self.chunks)


# ============================================================================
# Quality
# ============================================================================


@dataclass(slots=True, frozen=True)
class QualityInfo:
    overall_score: float
    word_count: int
    has_main_content: bool
    has_paywall: bool
    ad_density: float
    content_ratio: float
    detected_language: str
    readability_score: float = 0.0
    requires_login: bool = False
    content_type: str = "unknown"
    estimated_tokens: int = 0
    reading_time_minutes: float = 0.0
    heading_count: int = 0
    has_structured_data: bool = False
    llm_suitability: float = 0.0
    grade: ContentGrade = field(default=ContentGrade.VERY_POOR)

    def __post_init__(self) -> None:
        for name in ("overall_score", "ad_density", "content_ratio", "readability_score", "llm_suitability"):
            value = getattr(self, name)
            if not (0.0 <= value <= 1.0):
                raise ValueError(f"{name} must be between 0.0 and 1.0")


# ============================================================================
# Collaborators
# ============================================================================


@dataclass(slots=True, frozen=True)
class SiteHint:
    """Best-effort site-level preferences returned by a hint provider."""

    preferred_strategy: str | None = None
    max_chunk_size: int | None = None
    min_chunk_size: int | None = None


@runtime_checkable
class EmbeddingProvider(Protocol):
    """External service turning texts into vectors."""

    async def embed(self, texts: Sequence[str]) -> Sequence[Sequence[float]]:
        """Return one vector per input text, in order."""
        ...


@runtime_checkable
class SiteHintProvider(Protocol):
    """External lookup of per-site chunking preferences."""

    async def get_hint(self, url: str) -> SiteHint | None:
        """Return a hint for the url's site, or None."""
        ...


@runtime_checkable
class ChunkingStrategy(Protocol):
    """Common contract of the six chunking strategies."""

    name: str
    description: str

    async def chunk(
        self,
        content: ExtractedContent,
        options: ChunkingOptions,
        cancel: "CancellationToken | None" = None,
    ) -> ChunkResult:
        """Split content into ordered chunks."""
        ...


_WORD_RE = re.compile(r"\b\w+\b", re.UNICODE)


def count_words(text: str) -> int:
    """Count word tokens; shared by the evaluator and the selector."""
    return len(_WORD_RE.findall(text))
