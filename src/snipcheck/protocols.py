"""
Core contracts and dataclasses for snipcheck.

This module defines the data flowing through the validation pipeline:

- Document: one documentation file and its raw text
- Snippet: one fenced code block with provenance (path, opening fence line, tag)
- ValidationResult: the outcome of checking one snippet
- ScanWarning: a document that could not be read

All of them are immutable once created. A Snippet only keeps the path of its
Document, never the Document itself, so documents can be released as soon as
extraction is done.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

# ============================================================================
# Enums
# ============================================================================


class Outcome(Enum):
    """Per-snippet validation outcome."""

    PASS = "pass"
    FAIL = "fail"
    SKIPPED = "skipped"


# Reasons attached to SKIPPED results.
SKIP_TRUNCATED = "truncated: unterminated code fence"
SKIP_CANCELLED = "cancelled"
SKIP_NON_EXECUTABLE = "non-executable"

# Diagnostic attached to FAIL results that ran out of time.
DIAGNOSTIC_TIMEOUT = "timeout"


# ============================================================================
# Core Dataclasses
# ============================================================================


@dataclass(frozen=True)
class Document:
    """A documentation file read from disk."""

    path: Path
    text: str


@dataclass(frozen=True)
class Snippet:
    """A fenced code block extracted from a Document."""

    path: Path
    start_line: int  # 1-indexed line of the opening fence
    tag: str  # "" when the fence carries no language
    code: str
    info: str = ""
    index: int = 0
    truncated: bool = False

    def __post_init__(self) -> None:
        if self.start_line < 1:
            raise ValueError("start_line is 1-indexed")

    @property
    def location(self) -> str:
        return f"{self.path}:{self.start_line}"

    @property
    def sort_key(self) -> tuple[str, int, int]:
        return (self.path.as_posix(), self.start_line, self.index)


@dataclass(frozen=True)
class CheckOutcome:
    """What a Checker reports for one piece of code."""

    success: bool
    diagnostic: Optional[str] = None

    @classmethod
    def ok(cls) -> "CheckOutcome":
        return cls(success=True)

    @classmethod
    def error(cls, diagnostic: str) -> "CheckOutcome":
        return cls(success=False, diagnostic=diagnostic or "checker reported failure")


@dataclass(frozen=True)
class ValidationResult:
    """Result of validating a single snippet."""

    snippet: Snippet
    outcome: Outcome
    diagnostic: Optional[str] = None
    duration: float = 0.0

    def __post_init__(self) -> None:
        if self.outcome is Outcome.FAIL and not self.diagnostic:
            raise ValueError("FAIL results must carry a diagnostic")
        if self.outcome is Outcome.PASS and self.diagnostic is not None:
            raise ValueError("PASS results carry no diagnostic")

    @classmethod
    def passed(cls, snippet: Snippet, duration: float = 0.0) -> "ValidationResult":
        return cls(snippet=snippet, outcome=Outcome.PASS, duration=duration)

    @classmethod
    def failed(cls, snippet: Snippet, diagnostic: str, duration: float = 0.0) -> "ValidationResult":
        return cls(snippet=snippet, outcome=Outcome.FAIL, diagnostic=diagnostic, duration=duration)

    @classmethod
    def skipped(cls, snippet: Snippet, reason: Optional[str] = None) -> "ValidationResult":
        return cls(snippet=snippet, outcome=Outcome.SKIPPED, diagnostic=reason)


@dataclass(frozen=True)
class ScanWarning:
    """A document the scanner had to skip."""

    path: Path
    message: str


# ============================================================================
# Cancellation
# ============================================================================


@dataclass
class CancellationToken:
    """
    Cooperative cancellation flag shared between the runner and a checker.

    Checkers run in worker threads, so the flag is a ``threading.Event``
    rather than an asyncio primitive.
    """

    _event: threading.Event = field(default_factory=threading.Event, repr=False)
    reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Block up to ``timeout`` seconds; True if cancelled meanwhile."""
        return self._event.wait(timeout)


# ============================================================================
# Protocol Interfaces
# ============================================================================


@runtime_checkable
class Checker(Protocol):
    """Validates a snippet's code for one language."""

    name: str

    def check(self, code: str, token: CancellationToken) -> CheckOutcome:
        """
        Validate ``code``.

        Returns a CheckOutcome for a reported success or failure. Raising
        ``CheckerFailure`` is equivalent to returning a failed outcome; any
        other exception is treated as a checker crash.
        """
        ...
