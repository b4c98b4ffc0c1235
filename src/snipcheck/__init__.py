"""
snipcheck - extract and validate fenced code snippets in documentation.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import Config
from .container import DependencyContainer
from .pipeline import Pipeline
from .report import Report, aggregate

__all__ = ["__version__", "Config", "DependencyContainer", "Pipeline", "Report", "aggregate"]
