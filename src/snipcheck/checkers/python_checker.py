"""
In-process syntax checker for Python snippets.
"""

from __future__ import annotations

import ast

from snipcheck.protocols import CancellationToken, CheckOutcome


class PythonSyntaxChecker:
    """Compiles the snippet without executing it."""

    name = "python-syntax"

    def __init__(self, allow_top_level_await: bool = True) -> None:
        # Documentation often shows ``await client.fetch()`` at top level
        self.flags = ast.PyCF_ALLOW_TOP_LEVEL_AWAIT if allow_top_level_await else 0

    def check(self, code: str, token: CancellationToken) -> CheckOutcome:
        try:
            compile(code, "<snippet>", "exec", flags=self.flags, dont_inherit=True)
        except SyntaxError as e:
            location = f"line {e.lineno}" if e.lineno else "snippet"
            return CheckOutcome.error(f"{location}: {type(e).__name__}: {e.msg}")
        except ValueError as e:
            # e.g. "source code string cannot contain null bytes"
            return CheckOutcome.error(f"ValueError: {e}")
        return CheckOutcome.ok()
