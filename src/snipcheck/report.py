"""
Report aggregation and rendering.

Results are folded into an immutable ReportAccumulator one at a time; each
step returns a new accumulator. The final Report sorts failures by
(path, line) so the rendered output does not depend on the order in which
workers finished.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from functools import reduce
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

from snipcheck.protocols import Outcome, ScanWarning, Snippet, ValidationResult

REPORT_SCHEMA_VERSION = 1


def _display_path(path: Path, root: Optional[Path]) -> str:
    if root is not None:
        try:
            return path.relative_to(root).as_posix()
        except ValueError:
            pass
    return path.as_posix()


def _result_key(result: ValidationResult) -> Tuple[str, int, int]:
    return result.snippet.sort_key


@dataclass(frozen=True)
class ReportAccumulator:
    """Running totals of a validation run."""

    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    failures: Tuple[ValidationResult, ...] = ()
    skips: Tuple[ValidationResult, ...] = ()

    def add(self, result: ValidationResult) -> ReportAccumulator:
        if result.outcome is Outcome.PASS:
            return replace(self, total=self.total + 1, passed=self.passed + 1)
        if result.outcome is Outcome.FAIL:
            return replace(self, total=self.total + 1, failed=self.failed + 1, failures=self.failures + (result,))
        return replace(self, total=self.total + 1, skipped=self.skipped + 1, skips=self.skips + (result,))

    def build(self, warnings: Iterable[ScanWarning] = (), root: Optional[Path] = None) -> Report:
        return Report(
            total=self.total,
            passed=self.passed,
            failed=self.failed,
            skipped=self.skipped,
            failures=tuple(sorted(self.failures, key=_result_key)),
            skips=tuple(sorted(self.skips, key=_result_key)),
            warnings=tuple(sorted(warnings, key=lambda w: (w.path.as_posix(), w.message))),
            root=root,
        )


def aggregate(
    results: Iterable[ValidationResult],
    warnings: Iterable[ScanWarning] = (),
    root: Optional[Path] = None,
) -> Report:
    """Fold ``results`` into a Report."""
    accumulator = reduce(lambda acc, result: acc.add(result), results, ReportAccumulator())
    return accumulator.build(warnings, root)


@dataclass(frozen=True)
class Report:
    """Summary of one validation run."""

    total: int
    passed: int
    failed: int
    skipped: int
    failures: Tuple[ValidationResult, ...] = ()
    skips: Tuple[ValidationResult, ...] = ()
    warnings: Tuple[ScanWarning, ...] = ()
    root: Optional[Path] = None

    @property
    def exit_code(self) -> int:
        return 0 if self.failed == 0 else 1

    @property
    def status(self) -> str:
        return "pass" if self.failed == 0 else "fail"

    def location(self, snippet: Snippet) -> str:
        return f"{_display_path(snippet.path, self.root)}:{snippet.start_line}"

    def render_text(self, verbose: bool = False) -> str:
        lines = [f"total={self.total} passed={self.passed} failed={self.failed} skipped={self.skipped}"]
        for result in self.failures:
            first, *rest = (result.diagnostic or "").splitlines() or [""]
            lines.append(f"{self.location(result.snippet)}: {first}")
            lines.extend(f"    {line}" for line in rest)
        if verbose:
            for result in self.skips:
                lines.append(f"{self.location(result.snippet)}: skipped ({result.diagnostic or 'skipped'})")
        for warning in self.warnings:
            lines.append(f"warning: {_display_path(warning.path, self.root)}: {warning.message}")
        return "\n".join(lines) + "\n"

    def to_dict(self) -> Dict[str, Any]:
        def entry(result: ValidationResult) -> Dict[str, Any]:
            return {
                "path": _display_path(result.snippet.path, self.root),
                "line": result.snippet.start_line,
                "tag": result.snippet.tag,
                "outcome": result.outcome.value,
                "diagnostic": result.diagnostic,
            }

        return {
            "schema_version": REPORT_SCHEMA_VERSION,
            "tool": "snipcheck",
            "status": self.status,
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
            "failures": [entry(r) for r in self.failures],
            "skips": [entry(r) for r in self.skips],
            "warnings": [
                {"path": _display_path(w.path, self.root), "message": w.message} for w in self.warnings
            ],
        }

    def render_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, sort_keys=True) + "\n"
