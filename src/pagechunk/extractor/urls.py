"""
URL helpers for cleaned HTML: absolutizing links and collapsing srcset.
"""

from __future__ import annotations

import re
from urllib.parse import urljoin, urlparse

_SKIP_SCHEMES = ("#", "javascript:", "mailto:", "tel:", "data:", "about:")
_DESCRIPTOR_RE = re.compile(r"^(\d+(?:\.\d+)?)([wx])$", re.IGNORECASE)


def is_absolute_base(url: str | None) -> bool:
    if not url:
        return False
    parsed = urlparse(url)
    return bool(parsed.scheme and parsed.netloc)


def absolutize(value: str, base_url: str | None) -> str:
    """Resolve ``value`` against ``base_url``; leaves anchors and pseudo-schemes alone."""
    value = value.strip()
    if not value or not is_absolute_base(base_url):
        return value
    if value.lower().startswith(_SKIP_SCHEMES):
        return value
    return urljoin(base_url, value)


def parse_srcset(srcset: str) -> list[tuple[str, float]]:
    """Parse a srcset attribute into ``(url, weight)`` pairs.

    Width descriptors weigh their pixel width; density descriptors weigh
    ``density * 1000`` so that a ``2x`` candidate beats an unqualified one.
    """
    candidates: list[tuple[str, float]] = []
    for part in srcset.split(","):
        tokens = part.strip().split()
        if not tokens:
            continue
        url = tokens[0]
        weight = 1000.0
        if len(tokens) > 1:
            match = _DESCRIPTOR_RE.match(tokens[1])
            if match:
                number = float(match.group(1))
                weight = number if match.group(2).lower() == "w" else number * 1000.0
        candidates.append((url, weight))
    return candidates


def best_srcset_candidate(srcset: str) -> str | None:
    candidates = parse_srcset(srcset)
    if not candidates:
        return None
    # max() keeps the first of equal weights
    return max(candidates, key=lambda c: c[1])[0]
