"""Logging and metrics for snipcheck."""

from __future__ import annotations

from .logging import configure_logging
from .metrics import METRICS, increment, observe, write_metrics

__all__ = ["configure_logging", "METRICS", "increment", "observe", "write_metrics"]
