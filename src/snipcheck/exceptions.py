"""
Exception hierarchy for snipcheck.

Only ``ConfigurationError`` is fatal to a run. Every other error kind is
captured by the stage that raised it and folded into the report.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from snipcheck.protocols import Snippet


class SnipcheckError(Exception):
    """Base class for all snipcheck errors."""


class ConfigurationError(SnipcheckError, ValueError):
    """Invalid CLI input or configuration; aborts before the pipeline starts."""


class SnippetParseError(SnipcheckError):
    """
    A fenced block could not be parsed (e.g. unterminated at end of file).

    ``snippet`` holds whatever of the block was read, marked truncated.
    """

    def __init__(self, path: str, line: int, message: str, snippet: Optional["Snippet"] = None) -> None:
        super().__init__(f"{path}:{line}: {message}")
        self.path = path
        self.line = line
        self.message = message
        self.snippet = snippet


class CheckerFailure(SnipcheckError):
    """The checker rejected a snippet (syntax or semantic error)."""

    def __init__(self, diagnostic: str) -> None:
        super().__init__(diagnostic)
        self.diagnostic = diagnostic


class CheckerCrashError(SnipcheckError):
    """The checker terminated abnormally, as opposed to reporting a failure."""


class CheckerTimeoutError(SnipcheckError, TimeoutError):
    """A checker invocation exceeded its time budget."""
