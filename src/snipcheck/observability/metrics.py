"""
Defines Prometheus metrics for snipcheck runs.

A validation run is a short-lived process, so metrics are exported as a
node-exporter textfile rather than served over HTTP.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from prometheus_client import REGISTRY as _PROM_REGISTRY
from prometheus_client import CollectorRegistry
from prometheus_client import Counter as _OrigCounter
from prometheus_client import Histogram as _OrigHistogram
from prometheus_client import write_to_textfile

# ---------------------------------------------------------------------------
# Duplicate-safe Prometheus metric wrappers
# ---------------------------------------------------------------------------
# Importing this module twice (e.g. under a test runner that reloads modules)
# must not register the same collector name twice.


def _duplicate_safe_factory(metric_cls):
    """Return a factory that reuses an existing collector if already present."""

    def _factory(name: str, documentation: str, *args, **kwargs):  # type: ignore[override]
        registry = kwargs.get("registry", _PROM_REGISTRY)
        existing = registry._names_to_collectors.get(name)
        if existing is not None:
            return existing  # type: ignore[return-value]

        try:
            return metric_cls(name, documentation, *args, **kwargs)  # type: ignore[call-arg]
        except ValueError:
            # Registration lost the race, fall back to the now-existing collector.
            return registry._names_to_collectors[name]  # type: ignore[return-value]

    return _factory


Counter = _duplicate_safe_factory(_OrigCounter)  # type: ignore[assignment]
Histogram = _duplicate_safe_factory(_OrigHistogram)  # type: ignore[assignment]


def _create_metrics() -> Dict[str, Any]:
    return {
        "documents_scanned": Counter(
            "snipcheck_documents_scanned_total",
            "Total number of documentation files read by the scanner",
        ),
        "scan_warnings": Counter(
            "snipcheck_scan_warnings_total",
            "Total number of documentation files that could not be read",
        ),
        "snippets": Counter(
            "snipcheck_snippets_total",
            "Total number of snippets validated, by outcome",
            ["outcome"],
        ),
        "check_duration_seconds": Histogram(
            "snipcheck_check_duration_seconds",
            "Time spent in the checker for one snippet",
            ["tag"],
            buckets=[0.001, 0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
        ),
    }


METRICS: Dict[str, Any] = _create_metrics()


def increment(name: str, value: float = 1.0, labels: Optional[Dict[str, Any]] = None) -> None:
    """Increment a counter metric."""
    if name in METRICS:
        metric = METRICS[name]
        if labels is not None:
            metric.labels(**labels).inc(value)
        else:
            metric.inc(value)


def observe(name: str, value: float, labels: Optional[Dict[str, Any]] = None) -> None:
    """Observe a histogram metric."""
    if name in METRICS:
        metric = METRICS[name]
        if labels is not None:
            metric.labels(**labels).observe(value)
        else:
            metric.observe(value)


def write_metrics(path: Path, registry: CollectorRegistry = _PROM_REGISTRY) -> None:
    """Write the registry in Prometheus textfile format (atomic rename)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    write_to_textfile(str(path), registry)
