"""
Defines the Prometheus metrics recorded by PageChunk.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from prometheus_client import REGISTRY as _PROM_REGISTRY
from prometheus_client import Counter as _OrigCounter
from prometheus_client import Gauge as _OrigGauge
from prometheus_client import Histogram as _OrigHistogram

# ---------------------------------------------------------------------------
# Duplicate-safe Prometheus metric wrappers
# ---------------------------------------------------------------------------
# Re-importing this module (test suites, reloads) must not register the same
# collector twice, so the factories hand back an existing collector by name.


def _duplicate_safe_factory(metric_cls):
    """Return a factory that reuses an existing collector if already present."""

    def _factory(name: str, documentation: str, *args, **kwargs):
        existing = _PROM_REGISTRY._names_to_collectors.get(name)
        if existing is not None:
            return existing

        try:
            return metric_cls(name, documentation, *args, **kwargs)
        except ValueError:
            # Registration lost the race, use the collector that won.
            return _PROM_REGISTRY._names_to_collectors[name]

    return _factory


Counter = _duplicate_safe_factory(_OrigCounter)
Gauge = _duplicate_safe_factory(_OrigGauge)
Histogram = _duplicate_safe_factory(_OrigHistogram)


def _create_metrics() -> Dict[str, Any]:
    return {
        "documents_cleaned": Counter(
            "pagechunk_documents_cleaned_total",
            "Total number of HTML documents run through the density filter",
        ),
        "blocks_removed": Counter(
            "pagechunk_blocks_removed_total",
            "Blocks removed by the density filter",
            ["stage"],
        ),
        "chunks_produced": Counter(
            "pagechunk_chunks_produced_total",
            "Total number of chunks emitted",
            ["strategy"],
        ),
        "strategy_selections": Counter(
            "pagechunk_strategy_selections_total",
            "Strategies chosen by the factory",
            ["strategy"],
        ),
        "strategy_fallbacks": Counter(
            "pagechunk_strategy_fallbacks_total",
            "Times a requested strategy fell back to Paragraph",
            ["requested"],
        ),
        "chunking_duration_seconds": Histogram(
            "pagechunk_chunking_duration_seconds",
            "Time taken to chunk one document",
            ["strategy"],
            buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0],
        ),
        "streaming_peak_buffer": Gauge(
            "pagechunk_streaming_peak_buffer_chars",
            "Peak working-buffer size of the last streaming run",
        ),
        "quality_score": Histogram(
            "pagechunk_quality_score",
            "Distribution of document quality scores",
            buckets=[0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0],
        ),
    }


METRICS: Dict[str, Any] = _create_metrics()


def increment(name: str, value: float = 1.0, labels: Optional[Dict[str, Any]] = None) -> None:
    """Increment a counter metric."""
    metric = METRICS.get(name)
    if metric is None:
        return
    if labels is not None:
        metric.labels(**labels).inc(value)
    else:
        metric.inc(value)


def observe(name: str, value: float, labels: Optional[Dict[str, Any]] = None) -> None:
    """Observe a histogram metric."""
    metric = METRICS.get(name)
    if metric is None:
        return
    if labels is not None:
        metric.labels(**labels).observe(value)
    else:
        metric.observe(value)


def gauge(name: str, value: float) -> None:
    """Set a gauge metric."""
    metric = METRICS.get(name)
    if metric is not None:
        metric.set(value)
