"""
Fenced code block extraction for Markdown documentation.
"""

from .extractor import SnippetExtractor, parse_tag, split_lines
from .models import Fence

__all__ = ["Fence", "SnippetExtractor", "parse_tag", "split_lines"]
