"""
Auto-selection of a chunking strategy from content signals.

Rules are evaluated in a fixed priority order and depend only on the
content, the options and the (optional) site hint, so the same input always
yields the same recommendation.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlparse

import structlog

from pagechunk.config.config import SelectionConfig
from pagechunk.protocols import ChunkingOptions, ExtractedContent, SiteHint, SiteHintProvider, StrategyName
from pagechunk.quality.evaluator import ContentQualityEvaluator

logger = structlog.get_logger(__name__)

_HINT_ALIASES = {
    "semantic": StrategyName.SEMANTIC,
    "structure": StrategyName.SMART,
    "structural": StrategyName.SMART,
    "smart": StrategyName.SMART,
    "dom": StrategyName.DOM_STRUCTURE,
    "dom_structure": StrategyName.DOM_STRUCTURE,
    "domstructure": StrategyName.DOM_STRUCTURE,
    "paragraph": StrategyName.PARAGRAPH,
    "fixed": StrategyName.FIXED_SIZE,
    "fixedsize": StrategyName.FIXED_SIZE,
    "fixed_size": StrategyName.FIXED_SIZE,
    "memory": StrategyName.MEMORY_OPTIMIZED,
    "optimized": StrategyName.MEMORY_OPTIMIZED,
    "memoryoptimized": StrategyName.MEMORY_OPTIMIZED,
}


def map_hint(name: str | None) -> StrategyName | None:
    """Map a free-form hint name onto a concrete strategy."""
    if not name:
        return None
    key = name.strip().lower().replace("-", "_")
    strategy = _HINT_ALIASES.get(key) or StrategyName.lookup(key)
    return None if strategy is StrategyName.AUTO else strategy


@dataclass(slots=True, frozen=True)
class Recommendation:
    strategy: StrategyName
    reason: str
    confidence: float
    hint: SiteHint | None = None


class StrategySelector:
    def __init__(
        self,
        config: SelectionConfig | None = None,
        evaluator: ContentQualityEvaluator | None = None,
        hint_provider: SiteHintProvider | None = None,
        semantic_available: bool = False,
    ) -> None:
        self.config = config or SelectionConfig()
        self.evaluator = evaluator or ContentQualityEvaluator()
        self.hint_provider = hint_provider
        self.semantic_available = semantic_available
        self._keyword_res = [re.compile(rf"\b{re.escape(k.lower())}\b") for k in self.config.technical_keywords]
        self.logger = logger.bind(component="selector")

    async def recommend(self, content: ExtractedContent, options: ChunkingOptions | None = None) -> Recommendation:
        text = content.main_text
        length = len(text)

        if options is not None and options.minimize_memory_usage:
            return Recommendation(StrategyName.MEMORY_OPTIMIZED, "memory minimization requested", 0.95)
        if length > self.config.large_document_threshold:
            return Recommendation(StrategyName.MEMORY_OPTIMIZED, f"large document ({length} chars)", 0.95)

        hint = await self._site_hint(content.url)
        if hint is not None:
            hinted = map_hint(hint.preferred_strategy)
            if hinted is StrategyName.SEMANTIC and not self.semantic_available:
                self.logger.debug("ignoring semantic site hint without embedding provider", url=content.url)
            elif hinted is not None:
                return Recommendation(hinted, f"site hint '{hint.preferred_strategy}'", 0.9, hint)

        quality = await self.evaluator.evaluate_async(content)
        technical = self._technical_signal(content, quality.content_type)
        if technical:
            return Recommendation(StrategyName.SMART, technical, 0.85, hint)
        if (
            len(content.image_refs) >= self.config.min_images_for_structure
            and length > self.config.image_content_threshold
        ):
            return Recommendation(StrategyName.SMART, f"{len(content.image_refs)} images need structural grouping", 0.8, hint)

        if length > self.config.long_form_threshold and quality.has_main_content and self.semantic_available:
            return Recommendation(StrategyName.SEMANTIC, f"long-form prose ({length} chars)", 0.75, hint)

        if self._is_metadata_rich(content.url):
            if len(content.headings) >= self.config.dom_heading_hits:
                return Recommendation(StrategyName.DOM_STRUCTURE, "metadata-rich site with heading hierarchy", 0.7, hint)
            return Recommendation(StrategyName.SMART, "metadata-rich site", 0.65, hint)

        return Recommendation(StrategyName.PARAGRAPH, "default", 0.5, hint)

    # ------------------------------------------------------------------

    async def _site_hint(self, url: str | None) -> SiteHint | None:
        if self.hint_provider is None or not url:
            return None
        try:
            return await self.hint_provider.get_hint(url)
        except Exception as e:
            # Hints are best-effort; selection continues without one.
            self.logger.warning("site hint lookup failed", url=url, error=str(e))
            return None

    def _technical_signal(self, content: ExtractedContent, content_type: str) -> str | None:
        lower = content.main_text.lower()
        keyword_hits = sum(1 for pattern in self._keyword_res if pattern.search(lower))
        if keyword_hits >= self.config.technical_keyword_hits:
            return f"technical vocabulary ({keyword_hits} terms)"
        code_markers = content.main_text.count("```")
        if code_markers >= self.config.code_marker_hits:
            return f"code markers ({code_markers})"
        if len(content.headings) >= self.config.heading_hits:
            return f"heading-rich ({len(content.headings)} headings)"
        if content_type == "documentation":
            return "documentation page"
        return None

    def _is_metadata_rich(self, url: str | None) -> bool:
        if not url:
            return False
        host = (urlparse(url).hostname or "").lower()
        if not host:
            return False
        if any(host == d or host.endswith("." + d) for d in self.config.metadata_rich_domains):
            return True
        return any(host.startswith(prefix) for prefix in self.config.metadata_rich_prefixes)
