"""
Density-based boilerplate filter.

Runs in two passes over a BeautifulSoup tree:

1. Structural cleaning: comments and non-content tags are always stripped;
   layout landmarks (nav/header/footer/aside) go when ``only_main_content``
   is set; well-known boilerplate selectors (ads, cookie banners, share bars,
   related-content widgets...) are removed.
2. Density scoring: a post-order walk accumulates visible-text length and
   anchor-text length per element, then block-level candidates are kept or
   dropped based on text floor, link density and class/id bias.

Keep-selectors override both passes. Relative URLs are rewritten against the
source URL and ``srcset`` lists are collapsed to the best candidate.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Iterable

import soupsieve
import structlog
from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from pagechunk.config.config import CleaningConfig
from pagechunk.extractor.urls import absolutize, best_srcset_candidate
from pagechunk.observability.metrics import increment
from pagechunk.protocols import CleaningOptions

logger = structlog.get_logger(__name__)

ALWAYS_REMOVE_TAGS = ("script", "style", "noscript", "iframe", "svg", "template", "meta", "link", "object", "embed")

LAYOUT_TAGS = ("header", "footer", "nav", "aside")
LAYOUT_SELECTORS = (
    "[role=navigation]",
    "[role=banner]",
    "[role=contentinfo]",
    "[role=complementary]",
    "[role=search]",
)

BOILERPLATE_SELECTORS = (
    # ads
    ".advertisement",
    ".ads",
    ".ad",
    ".ad-container",
    ".ad-wrapper",
    ".adsbygoogle",
    "[id^='ad-']",
    "[class*='ad-slot']",
    "[data-ad-slot]",
    "[data-ad-client]",
    ".sponsored",
    ".promotion",
    # cookie / consent
    ".cookie-banner",
    ".cookie-consent",
    ".cookie-notice",
    "[id*='cookie']",
    "[class*='cookie-policy']",
    ".gdpr-banner",
    ".consent-banner",
    # social
    ".social-share",
    ".share-buttons",
    ".social-links",
    ".share-bar",
    ".sharing-buttons",
    # related content
    ".related-posts",
    ".related-articles",
    ".recommended",
    ".you-might-like",
    ".more-stories",
    # comment threads
    ".comments",
    ".comment-section",
    "#comments",
    "#disqus_thread",
    # newsletter
    ".newsletter",
    ".subscribe",
    ".signup-form",
    ".email-signup",
    ".mailing-list",
    # popups
    ".modal",
    ".popup",
    ".overlay",
    # misc chrome
    ".breadcrumb",
    ".breadcrumbs",
    ".pagination",
    ".sidebar",
    ".widget",
    ".search-form",
    ".site-search",
    ".print-only",
)

BLOCK_TAGS = frozenset(
    {
        "div",
        "section",
        "article",
        "aside",
        "nav",
        "header",
        "footer",
        "main",
        "form",
        "table",
        "ul",
        "ol",
        "dl",
        "figure",
        "details",
        "fieldset",
        "address",
    }
)
STRUCTURAL_TAGS = frozenset({"table", "pre", "code", "ul", "ol"})
_BLOCKISH = BLOCK_TAGS | {"p", "pre", "blockquote", "h1", "h2", "h3", "h4", "h5", "h6"}

_KEYWORD_SPLIT_RE = re.compile(r"[\s\-_]+")


@dataclass(slots=True)
class _NodeStats:
    text: int = 0
    links: int = 0
    images: bool = False
    structural: bool = False
    has_blocks: bool = False

    @property
    def link_density(self) -> float:
        return self.links / self.text if self.text else 0.0


class DensityFilter:
    """Removes boilerplate from raw HTML. Stateless; safe to share."""

    def __init__(self, config: CleaningConfig | None = None, metrics_enabled: bool = True):
        self.config = config or CleaningConfig()
        self.metrics_enabled = metrics_enabled
        self._positive = frozenset(k.lower() for k in self.config.positive_keywords)
        self._negative = frozenset(k.lower() for k in self.config.negative_keywords)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def clean(self, html: str, source_url: str | None = None, options: CleaningOptions | None = None) -> str:
        """Return the cleaned ``<body>`` inner HTML. Blank input gives ``""``."""
        if html is None or not html.strip():
            return ""
        options = options or CleaningOptions()
        log = logger.bind(component="density_filter", url=source_url)

        soup = self._parse(html)
        if soup is None:
            return ""
        root: Tag = soup.body or soup

        removed_structural = self._strip_always(soup)
        protected = self._protected_ids(soup, options.keep_selectors)

        if options.only_main_content:
            removed_structural += self._remove_layout(soup, protected)
        removed_structural += self._remove_matching(soup, BOILERPLATE_SELECTORS, protected)
        removed_structural += self._remove_matching(soup, options.additional_remove_selectors, protected)

        removed_density = self._density_pass(root, protected)

        if options.convert_relative_urls:
            self._rewrite_urls(root, source_url)
        if options.optimize_srcset:
            self._collapse_srcset(root, source_url if options.convert_relative_urls else None)

        if self.metrics_enabled:
            increment("documents_cleaned")
            increment("blocks_removed", removed_structural, labels={"stage": "structural"})
            increment("blocks_removed", removed_density, labels={"stage": "density"})
        log.debug("html cleaned", structural_removed=removed_structural, density_removed=removed_density)

        output = root.decode_contents() if root is not soup else str(soup)
        return output.strip()

    async def clean_async(
        self, html: str, source_url: str | None = None, options: CleaningOptions | None = None
    ) -> str:
        return await asyncio.to_thread(self.clean, html, source_url, options)

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def _parse(self, html: str) -> BeautifulSoup | None:
        parsers = [self.config.parser] + [p for p in ("lxml",) if p != self.config.parser]
        for parser in parsers:
            try:
                return BeautifulSoup(html, parser)
            except Exception as e:
                # html.parser can still choke on pathological declarations
                logger.warning("HTML parse failed, trying next parser", parser=parser, error=str(e))
        logger.warning("All HTML parsers failed, returning empty output")
        return None

    # ------------------------------------------------------------------
    # Structural pass
    # ------------------------------------------------------------------

    @staticmethod
    def _strip_always(soup: BeautifulSoup) -> int:
        removed = 0
        for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
            comment.extract()
        for tag in soup.find_all(list(ALWAYS_REMOVE_TAGS)):
            if tag.decomposed:
                continue
            tag.decompose()
            removed += 1
        return removed

    @staticmethod
    def _select(soup: BeautifulSoup, selector: str) -> list[Tag]:
        try:
            return soup.select(selector)
        except soupsieve.SelectorSyntaxError:
            logger.warning("Ignoring invalid CSS selector", selector=selector)
            return []

    def _protected_ids(self, soup: BeautifulSoup, keep_selectors: Iterable[str]) -> _Protection:
        protection = _Protection()
        for selector in keep_selectors:
            for el in self._select(soup, selector):
                protection.add(el)
        return protection

    def _remove_layout(self, soup: BeautifulSoup, protected: _Protection) -> int:
        removed = 0
        candidates = list(soup.find_all(list(LAYOUT_TAGS)))
        for selector in LAYOUT_SELECTORS:
            candidates.extend(self._select(soup, selector))
        for el in candidates:
            if el.decomposed or protected.blocks_removal(el):
                continue
            el.decompose()
            removed += 1
        return removed

    def _remove_matching(self, soup: BeautifulSoup, selectors: Iterable[str], protected: _Protection) -> int:
        removed = 0
        for selector in selectors:
            for el in self._select(soup, selector):
                if el.decomposed or el.name in ("html", "body") or protected.blocks_removal(el):
                    continue
                el.decompose()
                removed += 1
        return removed

    # ------------------------------------------------------------------
    # Density pass
    # ------------------------------------------------------------------

    def _density_pass(self, root: Tag, protected: _Protection) -> int:
        stats = self._measure(root)
        doomed: list[Tag] = []
        stack: list[tuple[Tag, int]] = [(child, 0) for child in root.children if isinstance(child, Tag)]
        while stack:
            el, depth = stack.pop()
            verdict = self._verdict(el, stats[id(el)], depth, protected)
            if verdict == "remove":
                doomed.append(el)
                continue
            stack.extend((child, depth + 1) for child in el.children if isinstance(child, Tag))
        for el in doomed:
            el.decompose()
        return len(doomed)

    @staticmethod
    def _measure(root: Tag) -> dict[int, _NodeStats]:
        """Post-order walk accumulating text and anchor-text length per element."""
        stats: dict[int, _NodeStats] = {}
        stack: list[tuple[Tag, bool]] = [(root, False)]
        while stack:
            node, visited = stack.pop()
            if not visited:
                stack.append((node, True))
                stack.extend((child, False) for child in node.children if isinstance(child, Tag))
                continue
            st = _NodeStats(images=node.name == "img")
            for child in node.children:
                if isinstance(child, Tag):
                    cs = stats[id(child)]
                    st.text += cs.text
                    st.links += cs.links
                    st.images = st.images or cs.images
                    st.structural = st.structural or cs.structural or child.name in STRUCTURAL_TAGS
                    st.has_blocks = st.has_blocks or cs.has_blocks or child.name in _BLOCKISH
                elif type(child) is NavigableString:
                    st.text += len(" ".join(child.split()))
            if node.name == "a":
                st.links = st.text
            stats[id(node)] = st
        return stats

    def _verdict(self, el: Tag, st: _NodeStats, depth: int, protected: _Protection) -> str:
        """Return ``"keep"``, ``"descend"`` or ``"remove"`` for one element."""
        if el.name not in BLOCK_TAGS or el.name in STRUCTURAL_TAGS:
            return "descend"
        if protected.blocks_removal(el):
            return "descend"

        bias = self.class_id_bias(el)
        if bias < 0 and self.text_richness(st) + bias < 0:
            return "remove"
        if st.text == 0:
            return "descend"
        link_density = st.link_density
        if link_density > self.config.high_link_density:
            return "remove"
        if link_density > self.config.link_density_threshold:
            # Let nested blocks be judged on their own before dropping a wrapper.
            return "descend" if st.has_blocks else "remove"
        if st.text < self.text_floor(depth) and not (st.structural or st.images):
            return "remove"
        return "keep"

    def text_floor(self, depth: int) -> float:
        scaled = self.config.min_text_length * (self.config.depth_decay**depth)
        return max(float(self.config.min_text_floor), scaled)

    def text_richness(self, st: _NodeStats) -> float:
        """Share of non-link text, saturating at ``rich_text_length`` characters.

        Added to the class/id bias, so a long article inside a wrapper with one
        negative keyword survives while a short widget with the same class goes.
        """
        prose = st.text - st.links
        return min(1.0, max(0, prose) / self.config.rich_text_length)

    def class_id_bias(self, el: Tag) -> float:
        classes = el.get("class") or []
        if isinstance(classes, str):
            classes = [classes]
        raw = " ".join(list(classes) + [el.get("id") or ""]).lower()
        if not raw.strip():
            return 0.0
        words = set(_KEYWORD_SPLIT_RE.split(raw))
        positive = len(words & self._positive)
        negative = len(words & self._negative)
        return positive * self.config.positive_weight - negative * self.config.negative_weight

    # ------------------------------------------------------------------
    # URLs
    # ------------------------------------------------------------------

    @staticmethod
    def _rewrite_urls(root: Tag, source_url: str | None) -> None:
        if not source_url:
            return
        for attr in ("href", "src"):
            for el in root.find_all(attrs={attr: True}):
                el[attr] = absolutize(el[attr], source_url)

    @staticmethod
    def _collapse_srcset(root: Tag, source_url: str | None) -> None:
        for el in root.find_all(attrs={"srcset": True}):
            best = best_srcset_candidate(el["srcset"])
            if best is None:
                del el["srcset"]
                continue
            best = absolutize(best, source_url) if source_url else best
            if el.name == "img":
                el["src"] = best
                del el["srcset"]
            else:
                el["srcset"] = best


class _Protection:
    """Tracks keep-selector matches and their ancestors by object id."""

    def __init__(self) -> None:
        self._kept: set[int] = set()
        self._ancestors: set[int] = set()

    def add(self, el: Tag) -> None:
        self._kept.add(id(el))
        for parent in el.parents:
            self._ancestors.add(id(parent))

    def blocks_removal(self, el: Tag) -> bool:
        if not self._kept:
            return False
        if id(el) in self._kept or id(el) in self._ancestors:
            return True
        return any(id(parent) in self._kept for parent in el.parents)
