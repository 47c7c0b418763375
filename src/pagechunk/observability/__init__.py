"""Logging and metrics for PageChunk."""

from __future__ import annotations

from .logging import configure_logging
from .metrics import METRICS, gauge, increment, observe

__all__ = ["METRICS", "configure_logging", "gauge", "increment", "observe"]
